"""Cache commands -- inspect and clear cached responses.

Provides the ``apiflight cache`` sub-command group. Entries are the values
stored by ``apiflight request --cache-id ID``.
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from apiflight.cache import DiskCacheStorage
from apiflight.client.response import format_api_response
from apiflight.commands import handle_errors
from apiflight.config import load_settings, resolve_cache_dir
from apiflight.exceptions import CacheError
from apiflight.exit_codes import EXIT_NOT_FOUND
from apiflight.output import error, format_response, success


cache_app = typer.Typer(no_args_is_help=True)

_MISSING = object()


def _open_storage() -> DiskCacheStorage:
    settings = load_settings()
    if not settings.cache.enabled:
        raise CacheError("Caching is disabled (cache.enabled is false)")
    return DiskCacheStorage(resolve_cache_dir(settings))


@cache_app.command("show")
def cache_show(cache_id: str = typer.Argument(help="Cache id to print.")) -> None:
    """Print the value cached under CACHE_ID.

    Exits with code 4 when there is no such entry.

    Example::

        apiflight cache show albums --json
    """
    with handle_errors():
        storage = _open_storage()
        try:
            value: Any = asyncio.run(storage.load(cache_id, default=_MISSING))
        finally:
            storage.close()

    if value is _MISSING:
        error(f"No cache entry for '{cache_id}'")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    format_api_response(value)


@cache_app.command("clear")
def cache_clear(cache_id: str = typer.Argument(help="Cache id to remove.")) -> None:
    """Remove the entry cached under CACHE_ID. Missing entries are ignored."""
    with handle_errors():
        storage = _open_storage()
        try:
            asyncio.run(storage.clear(cache_id))
        finally:
            storage.close()
    success(f"Cleared cache entry '{cache_id}'")


@cache_app.command("stats")
def cache_stats() -> None:
    """Show the cache directory, entry count and size on disk."""
    with handle_errors():
        storage = _open_storage()
        try:
            stats = storage.stats()
        finally:
            storage.close()
    format_response(stats)
