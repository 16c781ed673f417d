"""Cache-backed data access around the transport.

:class:`DataService` is the entry point applications use to read and write
remote data. It composes four collaborators:

- the :class:`~apiflight.client.transport.Transport` that performs calls,
- a :class:`~apiflight.data.coordinator.SingleFlight` so concurrent
  identical requests share one network call,
- a :class:`~apiflight.cache.CacheStorage` holding decoded results,
- detached background tasks for post-actions and cache clears, whose
  failures are logged and never reach the caller.

See Also:
    :class:`~apiflight.data.accessor.Accessor` -- what every method takes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Coroutine, Optional, TypeVar

from apiflight.cache.storage import CacheStorage, DiskCacheStorage
from apiflight.client.transport import Transport
from apiflight.config import resolve_cache_dir
from apiflight.data.accessor import Accessor, PostAction, merge_page
from apiflight.data.coordinator import SingleFlight
from apiflight.exceptions import CacheError
from apiflight.files import TempFileService
from apiflight.models import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class DataService:
    """Loads, sends, paginates and caches data described by accessors.

    Args:
        transport: Executes requests.
        storage: Cache for decoded results. ``None`` disables caching: cache
            ids are ignored and :meth:`load_more` becomes a no-op.
        coordinator: Shared single-flight coordinator. A private one is
            created when omitted.
        cursor_parameter: Query parameter name used by :meth:`load_more`.

    Example::

        service = DataService(transport, DiskCacheStorage(cache_dir))
        page = await service.load(albums)
        await service.load_more(albums, cursor=page.next_cursor)
    """

    def __init__(
        self,
        transport: Transport,
        storage: Optional[CacheStorage] = None,
        coordinator: Optional[SingleFlight] = None,
        cursor_parameter: str = "cursor",
    ) -> None:
        self.transport = transport
        self.storage = storage
        self.coordinator = coordinator or SingleFlight()
        self.cursor_parameter = cursor_parameter
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def observe(self, cache_id: str) -> AsyncIterator[Any]:
        """Stream the cached value for *cache_id* and its later changes."""
        if self.storage is None:
            raise CacheError("Caching is disabled for this data service")
        return self.storage.observe(cache_id)

    async def load(self, accessor: Accessor[T], refresh: bool = False) -> T:
        """Return the cached value for *accessor*, fetching it on a miss.

        With ``refresh=True`` the cache is not read; the value is always
        fetched and then written back. A failing cache read counts as a
        miss.

        Raises:
            Any error of :meth:`send`, and :class:`CacheError` when the
            result cannot be written to the cache.
        """
        storage = self.storage
        cache_id = self._cache_id(accessor)
        if storage is not None and cache_id is not None and not refresh:
            cached = await self._read_cache(storage, cache_id)
            if cached is not _MISSING:
                logger.debug("Cache hit for '%s'", cache_id)
                return cached

        value = await self.send(accessor)

        if storage is not None and cache_id is not None:
            await storage.save(cache_id, value)
        return value

    async def send(self, accessor: Accessor[T]) -> T:
        """Send the accessor's request, sharing the call with identical in-flight requests.

        Interceptors run once, before the canonical request key is derived.
        Requests without a derivable key bypass deduplication. After each
        successful network call the post-actions of the accessor that
        started it are scheduled in the background, once, however many
        callers joined the call. This method does not wait for them.

        Raises:
            MalformedRequestError, EncodingError, InterceptorError,
            ServerError, DecodeError, TransportError.
        """
        prepared = await self.transport.intercept(accessor.endpoint)

        async def perform() -> T:
            value = await self.transport.execute(prepared)
            for action in accessor.post_actions:
                self._spawn(self._run_post_action(action))
            return value

        return await self.coordinator.run(prepared.request_key, perform)

    async def load_more(self, accessor: Accessor[Any], cursor: str) -> None:
        """Fetch the page after *cursor* and append it to the cached value.

        The endpoint gets ``<cursor_parameter>=<cursor>`` appended to its
        query. The cached entry is then replaced atomically by the new page
        with ``items`` set to the cached items followed by the page's items.
        If nothing is cached yet the page is stored as-is. Does nothing when
        the accessor has no cache id.
        """
        storage = self.storage
        cache_id = self._cache_id(accessor)
        if storage is None or cache_id is None:
            return

        endpoint = accessor.endpoint.with_query_parameter(self.cursor_parameter, cursor)
        page = await self.send(accessor.with_endpoint(endpoint))

        merged = await storage.update(cache_id, lambda cached: merge_page(cached, page))
        if not merged:
            await storage.save(cache_id, page)

    def clear_cache(self, accessor: Accessor[Any]) -> Optional[asyncio.Task[None]]:
        """Remove the accessor's cache entry in the background.

        Never raises. Failures, including a call made outside a running
        event loop, are logged.

        Returns:
            The background task, which callers may await, or ``None`` when
            there is nothing to clear or no loop to clear it on.
        """
        storage = self.storage
        cache_id = self._cache_id(accessor)
        if storage is None or cache_id is None:
            return None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Cannot clear cache entry '%s' without a running event loop", cache_id)
            return None
        return self._spawn(self._clear(storage, cache_id))

    async def wait_for_background(self) -> None:
        """Wait until every scheduled post-action and cache clear has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain background work, then close the transport and the storage."""
        await self.wait_for_background()
        await self.transport.aclose()
        if self.storage is not None:
            self.storage.close()

    @property
    def pending_background_tasks(self) -> int:
        return len(self._background)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _cache_id(self, accessor: Accessor[Any]) -> Optional[str]:
        if self.storage is None:
            return None
        return accessor.cache_id

    async def _read_cache(self, storage: CacheStorage, cache_id: str) -> Any:
        try:
            return await storage.load(cache_id, default=_MISSING)
        except Exception as exc:
            logger.warning("Cache read for '%s' failed, fetching instead: %s", cache_id, exc)
            return _MISSING

    async def _clear(self, storage: CacheStorage, cache_id: str) -> None:
        try:
            await storage.clear(cache_id)
        except Exception as exc:
            logger.error("Failed to clear cache entry '%s': %s", cache_id, exc)

    async def _run_post_action(self, action: PostAction) -> None:
        try:
            result = action(self)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            name = getattr(action, "__qualname__", repr(action))
            logger.error("Post-action %s failed: %s", name, exc)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task


def create_data_service(settings: Settings) -> DataService:
    """Build a :class:`DataService` wired from *settings*.

    Uses a :class:`~apiflight.cache.DiskCacheStorage` in the resolved cache
    directory (unless caching is disabled) and keeps multipart temp files
    in its ``tmp/`` subdirectory.
    """
    cache_dir = resolve_cache_dir(settings)
    transport = Transport(
        config=settings.request,
        upload_config=settings.upload,
        file_service=TempFileService(cache_dir / "tmp"),
    )
    storage = DiskCacheStorage(cache_dir) if settings.cache.enabled else None
    return DataService(transport, storage)
