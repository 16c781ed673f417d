"""Disk-backed storage for decoded responses.

Uses :mod:`diskcache` to persist decoded values (pydantic models, dicts,
lists...) under caller-chosen cache ids. Unlike an HTTP cache, entries
have no TTL: they are created on the first successful fetch, overwritten
by refreshes and pagination, and removed only by :meth:`clear`.

:mod:`diskcache` is synchronous, so every call is pushed to a worker
thread with :func:`asyncio.to_thread`. Change notifications for
:meth:`observe` are delivered in-process through one
:class:`asyncio.Queue` per observer.

See Also:
    :class:`~apiflight.models.CacheConfig` -- ``enabled`` and ``directory``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Protocol, TypeVar

import diskcache

from apiflight.exceptions import CacheError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class CacheStorage(Protocol):
    """Key/value storage the data service composes around."""

    async def load(self, cache_id: str, default: Any = None) -> Any: ...

    async def save(self, cache_id: str, value: Any) -> None: ...

    async def update(self, cache_id: str, mutator: Callable[[Any], Any]) -> bool: ...

    async def clear(self, cache_id: str) -> None: ...

    def observe(self, cache_id: str) -> AsyncIterator[Any]: ...

    def close(self) -> None: ...


class DiskCacheStorage:
    """:class:`CacheStorage` on a :class:`diskcache.Cache` directory.

    Args:
        cache_dir: Root directory for the cache. A ``data/`` subdirectory is
            created inside it.

    Example::

        storage = DiskCacheStorage("/tmp/apiflight")
        await storage.save("albums", page)
        cached = await storage.load("albums")
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)
        self._cache = diskcache.Cache(str(self._cache_dir / "data"))
        self._observers: dict[str, set[asyncio.Queue[Any]]] = defaultdict(set)

    @property
    def directory(self) -> Path:
        return self._cache_dir / "data"

    async def load(self, cache_id: str, default: Any = None) -> Any:
        """Return the value stored under *cache_id*, or *default* if there is none.

        Pass a sentinel as *default* to tell a missing entry from a stored
        ``None``.

        Raises:
            CacheError: If the entry cannot be read or unpickled.
        """
        try:
            return await asyncio.to_thread(self._cache.get, cache_id, default)
        except Exception as exc:
            raise CacheError(f"Cannot read cache entry '{cache_id}': {exc}") from exc

    async def save(self, cache_id: str, value: Any) -> None:
        """Store *value* under *cache_id*, replacing any previous value."""
        try:
            await asyncio.to_thread(self._cache.set, cache_id, value)
        except Exception as exc:
            raise CacheError(f"Cannot write cache entry '{cache_id}': {exc}") from exc
        self._publish(cache_id, value)

    async def update(self, cache_id: str, mutator: Callable[[Any], Any]) -> bool:
        """Atomically replace the entry with ``mutator(current)``.

        The read-modify-write runs inside a :meth:`diskcache.Cache.transact`
        block, so concurrent updates from other threads or processes cannot
        interleave. When no entry exists *mutator* is not called and nothing
        is stored; use :meth:`save` for the first write.

        Returns:
            ``True`` if an entry existed and was replaced, ``False`` otherwise.
        """
        try:
            value = await asyncio.to_thread(self._update_sync, cache_id, mutator)
        except CacheError:
            raise
        except Exception as exc:
            raise CacheError(f"Cannot update cache entry '{cache_id}': {exc}") from exc
        if value is _MISSING:
            return False
        self._publish(cache_id, value)
        return True

    async def clear(self, cache_id: str) -> None:
        """Remove the entry for *cache_id*. Missing entries are ignored."""
        try:
            await asyncio.to_thread(self._cache.delete, cache_id)
        except Exception as exc:
            raise CacheError(f"Cannot clear cache entry '{cache_id}': {exc}") from exc

    async def observe(self, cache_id: str) -> AsyncIterator[Any]:
        """Yield the current value (if any), then every later save or update.

        The iterator never ends on its own; stop consuming it (or cancel the
        consuming task) to unsubscribe.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._observers[cache_id].add(queue)
        try:
            current = await self.load(cache_id, default=_MISSING)
            if current is not _MISSING:
                yield current
            while True:
                yield await queue.get()
        finally:
            self._observers[cache_id].discard(queue)
            if not self._observers[cache_id]:
                del self._observers[cache_id]

    def observer_count(self, cache_id: str) -> int:
        return len(self._observers.get(cache_id, ()))

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._cache),
            "directory": str(self.directory),
            "volume_bytes": self._cache.volume(),
        }

    def _update_sync(self, cache_id: str, mutator: Callable[[Any], Any]) -> Any:
        with self._cache.transact():
            current = self._cache.get(cache_id, default=_MISSING)
            if current is _MISSING:
                return _MISSING
            value = mutator(current)
            self._cache.set(cache_id, value)
            return value

    def _publish(self, cache_id: str, value: Any) -> None:
        for queue in self._observers.get(cache_id, ()):
            queue.put_nowait(value)
