"""Request commands -- send a single request or a multipart upload.

``apiflight request`` runs one endpoint through the data service, so it
gets the interceptor chain from the configured auth, request coalescing
and, with ``--cache-id``, the disk cache. ``apiflight upload`` streams
files and JSON parts as ``multipart/form-data`` with a progress line.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from apiflight.auth import HeaderInterceptor, build_auth_interceptors
from apiflight.client.codecs import JSONDecoder, TextDecoder
from apiflight.client.endpoint import Endpoint
from apiflight.client.multipart import MultipartContent
from apiflight.client.response import format_api_response
from apiflight.commands import handle_errors
from apiflight.config import load_settings
from apiflight.data import Accessor, DataService, create_data_service
from apiflight.exit_codes import EXIT_INVALID_USAGE
from apiflight.files import File
from apiflight.models import Settings
from apiflight.output import debug, error, get_output, success


def request_command(
    url: str = typer.Argument(help="Absolute URL, or a path relative to base_url."),
    method: str = typer.Option("GET", "-X", "--method", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "-H", "--header", help="Extra header as 'Name: value'. Repeatable."
    ),
    query: Optional[list[str]] = typer.Option(
        None, "-q", "--query", help="Query parameter as name=value. Repeatable."
    ),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON request body."),
    cache_id: Optional[str] = typer.Option(
        None, "--cache-id", help="Cache the decoded response under this id."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Skip the cache read and fetch again."
    ),
    raw: bool = typer.Option(False, "--raw", help="Print the body as text, not JSON."),
) -> None:
    """Send a request and print the decoded response.

    Example::

        apiflight request /albums -q limit=20 --cache-id albums
        apiflight request https://api.example.com/albums -X POST --data '{"title": "New"}'
    """
    headers = _parse_headers(header or [])
    params = _parse_pairs(query or [], "query parameter")
    with handle_errors():
        settings = load_settings()
        endpoint = build_endpoint(
            settings, url, method=method, headers=headers, query=params, data=data
        )
        if raw:
            endpoint = endpoint.replace(decoder=TextDecoder())

        debug(f"{endpoint.method.value} {endpoint.url}")
        value = asyncio.run(_load(settings, Accessor(endpoint, cache_id=cache_id), refresh))
    format_api_response(value)


def upload_command(
    url: str = typer.Argument(help="Absolute URL, or a path relative to base_url."),
    file: Optional[list[str]] = typer.Option(
        None, "--file", "-F", help="File part as name=path[:content/type]. Repeatable."
    ),
    json_part: Optional[list[str]] = typer.Option(
        None, "--json-part", "-J", help="JSON part as name=JSON. Repeatable."
    ),
    method: str = typer.Option("POST", "-X", "--method", help="HTTP method."),
) -> None:
    """Upload files and JSON values as ``multipart/form-data``.

    File parts are sent first, in the order given, followed by JSON parts.

    Example::

        apiflight upload /photos --file photo=cover.jpg --json-part meta='{"title": "Cover"}'
    """
    parts = [_parse_file_part(spec) for spec in file or []]
    for name, raw_value in _parse_pairs(json_part or [], "JSON part"):
        parts.append(MultipartContent.from_json(name, _parse_json(raw_value, name)))
    if not parts:
        error("Nothing to upload: pass at least one --file or --json-part.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    with handle_errors():
        settings = load_settings()
        endpoint = build_endpoint(settings, url, method=method)
        value = asyncio.run(_upload(settings, endpoint, parts))
    success(f"Uploaded {len(parts)} part(s) to {endpoint.url}")
    format_api_response(value)


def build_endpoint(
    settings: Settings,
    url: str,
    method: str = "GET",
    headers: Optional[dict[str, str]] = None,
    query: Optional[list[tuple[str, str]]] = None,
    data: Optional[str] = None,
) -> Endpoint[Any]:
    """Build an endpoint from CLI arguments and *settings*.

    Relative URLs are joined to ``settings.base_url``. The configured auth
    interceptors run after a :class:`HeaderInterceptor` for the ``-H``
    headers. A JSON object passed as *data* becomes the body parameters;
    any other JSON value becomes the typed body.
    """
    if "://" not in url and settings.base_url:
        url = settings.base_url.rstrip("/") + "/" + url.lstrip("/")

    interceptors = []
    if headers:
        interceptors.append(HeaderInterceptor(headers))
    interceptors.extend(build_auth_interceptors(settings.auth))

    body: Any = None
    body_parameters: Optional[dict[str, Any]] = None
    if data is not None:
        parsed = _parse_json(data, "--data")
        if isinstance(parsed, dict):
            body_parameters = parsed
        else:
            body = parsed

    return Endpoint(
        url,
        method=method,
        body=body,
        body_parameters=body_parameters,
        query_parameters=query or None,
        decoder=JSONDecoder(),
        interceptors=interceptors,
        timezone=settings.request.timezone,
    )


async def _load(settings: Settings, accessor: Accessor[Any], refresh: bool) -> Any:
    service = create_data_service(settings)
    try:
        return await service.load(accessor, refresh=refresh)
    finally:
        await service.aclose()


async def _upload(
    settings: Settings, endpoint: Endpoint[Any], parts: list[MultipartContent]
) -> Any:
    service: DataService = create_data_service(settings)
    try:
        return await service.transport.multipart_upload(
            endpoint, parts, on_progress=get_output().progress
        )
    finally:
        await service.aclose()


# ------------------------------------------------------------------ #
# Argument parsing
# ------------------------------------------------------------------ #


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            error(f"Invalid header {value!r}: expected 'Name: value'")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        headers[name.strip()] = content.strip()
    return headers


def _parse_pairs(values: list[str], label: str) -> list[tuple[str, str]]:
    pairs = []
    for value in values:
        name, sep, content = value.partition("=")
        if not sep or not name:
            error(f"Invalid {label} {value!r}: expected name=value")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        pairs.append((name, content))
    return pairs


def _parse_json(value: str, label: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        error(f"Invalid JSON for {label}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


def _parse_file_part(value: str) -> MultipartContent:
    """Parse ``name=path[:content/type]`` into a file part."""
    [(name, location)] = _parse_pairs([value], "file part")
    content_type: Optional[str] = None
    path, sep, suffix = location.rpartition(":")
    if sep and "/" in suffix and path:
        location, content_type = path, suffix
    return MultipartContent.from_file(name, File.from_path(location, content_type))
