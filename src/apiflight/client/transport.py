"""Asynchronous HTTP transport built on :class:`httpx.AsyncClient`.

:class:`Transport` turns an :class:`~apiflight.client.endpoint.Endpoint`
into a decoded value. It layers on:

- **Interceptors** -- :meth:`Transport.call` runs the endpoint's
  interceptor chain before building the request.
- **Status mapping** -- any 2xx is success; everything else raises
  :class:`~apiflight.exceptions.ServerError` with the numeric status.
- **Unauthorized broadcast** -- a 401 fires :attr:`Transport.unauthorized`
  once, then raises.
- **Decoding** -- delegated to the endpoint's decoder strategy.
- **File variants** -- :meth:`data`, :meth:`download`, :meth:`upload` and
  :meth:`multipart_upload`.

Network failures (DNS, TLS, refused connections, timeouts) surface as
:class:`~apiflight.exceptions.TransportError`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence, TypeVar

import httpx

from apiflight.auth.base import InterceptorChain
from apiflight.client.codecs import Decoder
from apiflight.client.endpoint import Endpoint
from apiflight.client.multipart import MultipartContent, ProgressStream, upload_multipart
from apiflight.client.response import LoadState, error_message
from apiflight.client.signals import Signal
from apiflight.exceptions import FileError, ServerError, TransportError
from apiflight.files import OCTET_STREAM, File, FileService, TempFileService
from apiflight.models import RequestConfig, UploadConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Transport:
    """Executes endpoints over HTTP and maps responses to values or errors.

    Can be used as an async context manager, which closes the underlying
    :class:`httpx.AsyncClient` on exit. A client passed in by the caller
    (for example one built on :class:`httpx.MockTransport`) is never closed
    by the transport.

    Args:
        config: Timeout, SSL verification and redirect settings.
        upload_config: Chunk size for streamed uploads.
        file_service: Creates and deletes temp files for multipart bodies
            and downloads.
        client: Pre-built client to use instead of creating one.

    Example::

        async with Transport(RequestConfig(timeout=10)) as transport:
            transport.unauthorized.subscribe(session.expire)
            album = await transport.call(album_endpoint)
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        upload_config: Optional[UploadConfig] = None,
        file_service: Optional[FileService] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._upload_config = upload_config or UploadConfig()
        self.file_service: FileService = file_service or TempFileService()
        self._client = client
        self._owns_client = client is None
        self._chain = InterceptorChain()
        self.unauthorized = Signal("unauthorized")

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Transport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def chunk_size(self) -> int:
        return self._upload_config.chunk_size

    # ------------------------------------------------------------------ #
    # Endpoint calls
    # ------------------------------------------------------------------ #

    async def intercept(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        """Run the endpoint's interceptor chain once and return the result."""
        return await self._chain.apply(endpoint)

    async def call(self, endpoint: Endpoint[T]) -> T:
        """Intercept, send and decode *endpoint*.

        Raises:
            MalformedRequestError: On a bad URL.
            EncodingError: On a body that cannot be serialised.
            InterceptorError: When an interceptor fails.
            ServerError: On a non-2xx status.
            DecodeError: When the body does not match the decoder.
            TransportError: On network failures.
        """
        prepared = await self.intercept(endpoint)
        return await self.execute(prepared)

    async def execute(self, endpoint: Endpoint[T]) -> T:
        """Send an already-intercepted endpoint and decode the response."""
        request = endpoint.build()
        response = await self.send(request)
        return self.handle_response(response, endpoint.decoder)

    async def call_load_state(self, endpoint: Endpoint[T]) -> LoadState[T]:
        """Like :meth:`call`, but capture the outcome instead of raising."""
        try:
            return LoadState.success(await self.call(endpoint))
        except Exception as exc:
            return LoadState.failure(exc)

    # ------------------------------------------------------------------ #
    # File and raw-bytes variants
    # ------------------------------------------------------------------ #

    async def data(self, url: str) -> bytes:
        """GET *url* and return the raw body after the status check."""
        response = await self.send(httpx.Request("GET", url))
        self.check_status(response)
        return response.content

    async def download(self, url: str, content_type: str = OCTET_STREAM) -> File:
        """Stream the body of *url* into a temp file and return it.

        The caller owns the returned file and should release it with
        ``transport.file_service.delete(file)``.
        """
        client = self._ensure_client()
        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    await response.aread()
                    self.check_status(response)
                file = await self.file_service.create_file(b"", content_type)
                try:
                    with open(file.path, "wb") as handle:
                        async for chunk in response.aiter_bytes(self.chunk_size):
                            await asyncio.to_thread(handle.write, chunk)
                except BaseException:
                    await self.file_service.delete(file)
                    raise
        except OSError as exc:
            raise FileError(f"Cannot write download of {url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Download of {url} failed: {exc}") from exc
        return file

    async def upload(self, url: str, file: File) -> None:
        """PUT the contents of *file* to *url*, streamed from disk."""
        try:
            size = file.path.stat().st_size
        except OSError as exc:
            raise FileError(f"Cannot read {file.path}: {exc}") from exc

        async with ProgressStream(file.path, size, chunk_size=self.chunk_size) as stream:
            request = httpx.Request(
                "PUT",
                url,
                headers={"Content-Type": file.content_type, "Content-Length": str(size)},
                content=stream,
            )
            response = await self.send(request)
        self.check_status(response)

    async def multipart_upload(
        self,
        endpoint: Endpoint[T],
        parts: Sequence[MultipartContent],
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> T:
        """Upload *parts* as ``multipart/form-data``; see :func:`upload_multipart`."""
        return await upload_multipart(self, endpoint, parts, on_progress)

    # ------------------------------------------------------------------ #
    # Low-level helpers
    # ------------------------------------------------------------------ #

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and read the body, mapping network errors."""
        client = self._ensure_client()
        try:
            return await client.send(request)
        except httpx.TransportError as exc:
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc

    def check_status(self, response: httpx.Response) -> None:
        """Raise :class:`ServerError` for a non-2xx status.

        A 401 also fires :attr:`unauthorized` exactly once before raising.
        """
        status = response.status_code
        if status == 401:
            self.unauthorized.emit()
        if 200 <= status < 300:
            return
        logger.debug("HTTP %s from %s", status, response.request.url)
        raise ServerError(status, error_message(response))

    def handle_response(self, response: httpx.Response, decoder: Decoder[T]) -> T:
        self.check_status(response)
        return decoder.decode(response.content)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=self._config.follow_redirects,
            )
            self._owns_client = True
        return self._client
