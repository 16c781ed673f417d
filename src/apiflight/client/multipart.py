"""Temp-file-backed ``multipart/form-data`` uploads with progress reporting.

The body is never assembled in memory. :func:`upload_multipart` writes
every part to a temporary file (file parts are copied from disk in chunks,
JSON parts are encoded with the endpoint's encoder) and then streams that
file to the server through a :class:`ProgressStream`, which turns the
number of bytes handed to httpx into a fraction in ``[0, 1]``.

Wire layout for each part::

    --<boundary>\\r\\n
    Content-Disposition: form-data; name="<name>"[; filename="<file name>"]\\r\\n
    Content-Type: <type>\\r\\n
    \\r\\n
    <payload>\\r\\n

followed by ``--<boundary>--\\r\\n``.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, BinaryIO, Callable, Optional, Sequence, TypeVar, Union

import httpx

from apiflight.client.codecs import JSONEncoder
from apiflight.client.endpoint import Endpoint
from apiflight.exceptions import ApiflightError, FileError
from apiflight.files import MULTIPART_CONTENT_TYPE, File, FileService

if TYPE_CHECKING:
    from apiflight.client.transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[float], None]

CRLF = b"\r\n"
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FileSource:
    file: File


@dataclass(frozen=True)
class JSONSource:
    value: Any


@dataclass(frozen=True)
class MultipartContent:
    """One named part of a multipart body.

    Build parts with :meth:`from_file` or :meth:`from_json` rather than
    constructing the source by hand::

        parts = [
            MultipartContent.from_file("photo", File.from_path("cover.jpg")),
            MultipartContent.from_json("metadata", {"title": "Cover"}),
        ]
    """

    name: str
    source: Union[FileSource, JSONSource]
    content_type: str

    @classmethod
    def from_file(
        cls, name: str, file: File, content_type: Optional[str] = None
    ) -> MultipartContent:
        return cls(name, FileSource(file), content_type or file.content_type)

    @classmethod
    def from_json(
        cls, name: str, value: Any, content_type: str = "application/json"
    ) -> MultipartContent:
        return cls(name, JSONSource(value), content_type)

    def header(self, boundary: str) -> bytes:
        """Return the boundary line and part headers, blank line included."""
        disposition = f'Content-Disposition: form-data; name="{self.name}"'
        if isinstance(self.source, FileSource):
            disposition += f'; filename="{self.source.file.name}"'
        return (
            f"--{boundary}\r\n"
            f"{disposition}\r\n"
            f"Content-Type: {self.content_type}\r\n\r\n"
        ).encode("utf-8")


def closing_boundary(boundary: str) -> bytes:
    return f"--{boundary}--\r\n".encode("utf-8")


def write_multipart_body(
    path: Path,
    boundary: str,
    parts: Sequence[MultipartContent],
    encoder: Optional[JSONEncoder] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Write the multipart body for *parts* to *path*, in order.

    This is blocking; :func:`upload_multipart` runs it in a worker thread.

    Returns:
        The number of bytes written: header overhead plus every payload.

    Raises:
        FileError: If a part's file cannot be read or *path* cannot be written.
        EncodingError: If a JSON part cannot be encoded.
    """
    encoder = encoder or JSONEncoder()
    try:
        with open(path, "wb") as out:
            for part in parts:
                out.write(part.header(boundary))
                if isinstance(part.source, FileSource):
                    with open(part.source.file.path, "rb") as src:
                        shutil.copyfileobj(src, out, chunk_size)
                else:
                    out.write(encoder.encode(part.source.value))
                out.write(CRLF)
            out.write(closing_boundary(boundary))
            return out.tell()
    except OSError as exc:
        raise FileError(f"Cannot assemble multipart body in {path}: {exc}") from exc


class ProgressStream:
    """Async byte stream over a file that reports upload progress.

    Must be used as an async context manager. The file handle is opened on
    entry; on exit, whatever the outcome, the handle is closed and the
    callback is detached so late chunks are never reported.

    Args:
        path: File to stream.
        total: Expected number of bytes, used as the progress denominator.
        on_progress: Receives the fraction sent after every chunk.
        chunk_size: Bytes per chunk.
    """

    def __init__(
        self,
        path: Path,
        total: int,
        on_progress: Optional[ProgressCallback] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._path = path
        self._total = total
        self._on_progress = on_progress
        self._chunk_size = chunk_size
        self._handle: Optional[BinaryIO] = None
        self.sent = 0

    @property
    def fraction(self) -> float:
        if self._total <= 0:
            return 1.0
        return min(self.sent / self._total, 1.0)

    async def __aenter__(self) -> ProgressStream:
        try:
            self._handle = await asyncio.to_thread(open, self._path, "rb")
        except OSError as exc:
            raise FileError(f"Cannot open {self._path} for upload: {exc}") from exc
        return self

    async def __aexit__(self, *args: object) -> None:
        self._on_progress = None
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._handle is None:
            raise FileError("ProgressStream must be entered before it is read")
        while True:
            chunk = await asyncio.to_thread(self._handle.read, self._chunk_size)
            if not chunk:
                break
            self.sent += len(chunk)
            if self._on_progress is not None:
                self._on_progress(self.fraction)
            yield chunk


async def upload_multipart(
    transport: Transport,
    endpoint: Endpoint[T],
    parts: Sequence[MultipartContent],
    on_progress: Optional[ProgressCallback] = None,
) -> T:
    """Upload *parts* to *endpoint* as ``multipart/form-data``.

    Runs the endpoint's interceptors, writes the body to a temp file from
    ``transport.file_service``, streams it with progress reporting and
    decodes the response with the endpoint's decoder. The temp file is
    deleted whether the upload succeeds or fails.

    Args:
        transport: Transport used to send the request.
        endpoint: Target endpoint; its method, URL, headers and codecs apply.
        parts: Parts in wire order.
        on_progress: Optional callback receiving fractions in ``[0, 1]``.

    Raises:
        FileError: On temp-file or disk failures.
        ServerError: On a non-2xx status.
        DecodeError: When the body does not match the decoder.
        TransportError: On network failures.
    """
    boundary = uuid.uuid4().hex
    prepared = await transport.intercept(endpoint)
    url = prepared.resolve_url()
    # The multipart type replaces every caller or interceptor Content-Type.
    headers = [("Content-Type", f"{MULTIPART_CONTENT_TYPE}; boundary={boundary}")]
    headers.extend(
        (name, value)
        for name, value in prepared.header_items()
        if name.lower() != "content-type"
    )

    temp = await transport.file_service.create_file(b"", MULTIPART_CONTENT_TYPE)
    try:
        size = await asyncio.to_thread(
            write_multipart_body, temp.path, boundary, parts, prepared.encoder, transport.chunk_size
        )
        logger.debug("Multipart body for %s: %d parts, %d bytes", url, len(parts), size)
        async with ProgressStream(temp.path, size, on_progress, transport.chunk_size) as stream:
            request = httpx.Request(
                prepared.method.value,
                url,
                headers=[*headers, ("Content-Length", str(size))],
                content=stream,
            )
            response = await transport.send(request)
    finally:
        await _discard(transport.file_service, temp)

    return transport.handle_response(response, prepared.decoder)


async def _discard(file_service: FileService, file: File) -> None:
    try:
        await file_service.delete(file)
    except (ApiflightError, OSError) as exc:
        logger.error("Failed to delete multipart temp file %s: %s", file.path, exc)
