"""Cache-aware request descriptors and page merging.

An :class:`Accessor` bundles an :class:`~apiflight.client.endpoint.Endpoint`
with the metadata the data service needs: where to cache the result and
which side effects to fire after a successful send.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel

from apiflight.client.endpoint import Endpoint
from apiflight.exceptions import DecodeError

if TYPE_CHECKING:
    from apiflight.data.service import DataService

T = TypeVar("T")

PostAction = Callable[["DataService"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class Accessor(Generic[T]):
    """An endpoint plus caching and post-processing metadata.

    Args:
        endpoint: The request to send.
        cache_id: Storage key for the decoded result. ``None`` disables
            caching for this accessor.
        post_actions: Callables receiving the data service, run as detached
            background tasks after every successful send. They may be plain
            functions or coroutine functions.

    Example::

        albums = Accessor(
            Endpoint("https://api.example.com/albums", decoder=JSONDecoder(AlbumPage)),
            cache_id="albums",
            post_actions=[lambda service: service.clear_cache(recent_accessor)],
        )
    """

    endpoint: Endpoint[T]
    cache_id: Optional[str] = None
    post_actions: Sequence[PostAction] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "post_actions", tuple(self.post_actions))

    def with_endpoint(self, endpoint: Endpoint[T]) -> Accessor[T]:
        return dataclasses.replace(self, endpoint=endpoint)


def page_items(value: Any) -> list[Any]:
    """Return the ``items`` sequence of a paginated value.

    Raises:
        DecodeError: If *value* carries no ``items`` sequence.
    """
    if isinstance(value, Mapping):
        items = value.get("items")
    else:
        items = getattr(value, "items", None)
    if items is None or isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        raise DecodeError(f"{type(value).__name__} does not carry an 'items' sequence")
    return list(items)


def merge_page(cached: Any, page: Any) -> Any:
    """Append *page* to *cached*.

    The result is *page* with ``items`` replaced by the cached items
    followed by the page's items; every other field comes from *page*.
    Pydantic models, dataclasses, mappings and plain objects are supported.
    """
    merged = page_items(cached) + page_items(page)
    if isinstance(page, BaseModel):
        return page.model_copy(update={"items": merged})
    if isinstance(page, Mapping):
        return {**page, "items": merged}
    if dataclasses.is_dataclass(page) and not isinstance(page, type):
        return dataclasses.replace(page, items=merged)
    result = copy.copy(page)
    result.items = merged
    return result
