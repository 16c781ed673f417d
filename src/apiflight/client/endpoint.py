"""Immutable request descriptions and canonical request keys.

An :class:`Endpoint` describes one HTTP call: URL, method, headers, query,
body and the codecs used on either side of the wire, plus the ordered
interceptors that run before it is sent. Endpoints never change in place;
interceptors and pagination derive modified copies with
:meth:`Endpoint.with_header`, :meth:`Endpoint.with_query_parameter` and
:meth:`Endpoint.replace`.

The :attr:`Endpoint.request_key` property renders the canonical identity
of the request::

    METHOD|URL|sortedHeaderKey=value&...|base64(body)

which the data service uses as its single-flight key.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Generic, Optional, Sequence, TypeVar, Union

import httpx

from apiflight.client.codecs import Decoder, JSONDecoder, JSONEncoder
from apiflight.exceptions import ApiflightError, EncodingError, MalformedRequestError
from apiflight.models import HTTPMethod

if TYPE_CHECKING:
    from apiflight.auth.base import Interceptor

T = TypeVar("T")

QueryItems = Sequence[tuple[str, str]]


def local_timezone_name() -> str:
    """Return the identifier sent in the ``Timezone`` request header.

    Prefers the ``TZ`` environment variable (an IANA name such as
    ``Europe/Berlin``) and falls back to the abbreviation of the local zone.
    """
    tz = os.environ.get("TZ", "")
    if tz and not tz.startswith(":"):
        return tz
    return datetime.now().astimezone().tzname() or "UTC"


@dataclass(frozen=True)
class Endpoint(Generic[T]):
    """Immutable description of an HTTP request and how to decode its response.

    Args:
        url: Absolute URL. Any query component is replaced when
            *query_parameters* is given.
        method: HTTP method (an :class:`~apiflight.models.HTTPMethod` or its name).
        body: Typed body encoded with *encoder*. Wins over *body_parameters*.
        body_parameters: Untyped mapping serialised with :func:`json.dumps`.
        headers: Extra headers, added after the defaults.
        query_parameters: Ordered ``(name, value)`` pairs.
        encoder: Body encoder.
        decoder: Response decoder strategy.
        interceptors: Request mutators applied in order before sending.
        timezone: Value for the ``Timezone`` header; defaults to the local zone.

    Example::

        endpoint = Endpoint(
            "https://api.example.com/albums",
            query_parameters=[("limit", "20")],
            decoder=JSONDecoder(AlbumPage),
            interceptors=[BearerTokenInterceptor("env:API_TOKEN")],
        )
    """

    url: str
    method: Union[HTTPMethod, str] = HTTPMethod.GET
    body: Any = None
    body_parameters: Optional[dict[str, Any]] = None
    headers: dict[str, str] = field(default_factory=dict)
    query_parameters: Optional[QueryItems] = None
    encoder: JSONEncoder = field(default_factory=JSONEncoder)
    decoder: Decoder[T] = field(default_factory=JSONDecoder)
    interceptors: Sequence[Interceptor] = ()
    timezone: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            method = HTTPMethod(str(getattr(self.method, "value", self.method)).upper())
        except ValueError as exc:
            raise MalformedRequestError(f"Unsupported HTTP method: {self.method}") from exc
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "interceptors", tuple(self.interceptors))
        if self.query_parameters is not None:
            object.__setattr__(
                self,
                "query_parameters",
                tuple((str(name), str(value)) for name, value in self.query_parameters),
            )

    # ------------------------------------------------------------------ #
    # Derived copies
    # ------------------------------------------------------------------ #

    def replace(self, **changes: Any) -> Endpoint[T]:
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)

    def with_header(self, name: str, value: str) -> Endpoint[T]:
        """Return a copy with header *name* set to *value*."""
        return self.replace(headers={**self.headers, name: value})

    def with_query_parameter(self, name: str, value: str) -> Endpoint[T]:
        """Return a copy with ``(name, value)`` appended to the query parameters."""
        params = list(self.query_parameters or ())
        params.append((name, value))
        return self.replace(query_parameters=params)

    # ------------------------------------------------------------------ #
    # Request building
    # ------------------------------------------------------------------ #

    def resolve_url(self) -> httpx.URL:
        """Return the final URL, with the query parameters applied.

        Raises:
            MalformedRequestError: If the URL cannot be parsed or lacks a
                scheme or host.
        """
        try:
            url = httpx.URL(self.url)
            if self.query_parameters is not None:
                url = url.copy_with(params=list(self.query_parameters))
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise MalformedRequestError(f"Could not build a URL from {self.url!r}: {exc}") from exc

        if not url.scheme or not url.host:
            raise MalformedRequestError(f"URL must be absolute: {self.url!r}")
        return url

    def header_items(self) -> list[tuple[str, str]]:
        """Return request headers in send order, duplicates preserved."""
        items = [
            ("Content-Type", "application/json"),
            ("Timezone", self.timezone or local_timezone_name()),
        ]
        items.extend(self.headers.items())
        return items

    def encode_body(self) -> Optional[bytes]:
        """Serialise the request body.

        Raises:
            EncodingError: If either body cannot be encoded.
        """
        content: Optional[bytes] = None
        if self.body_parameters is not None:
            try:
                content = json.dumps(self.body_parameters).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise EncodingError(f"Cannot encode body parameters: {exc}") from exc
        # The typed body is applied last so it overrides the untyped map.
        if self.body is not None:
            content = self.encoder.encode(self.body)
        return content

    def build(self) -> httpx.Request:
        """Build the :class:`httpx.Request` for this endpoint.

        Raises:
            MalformedRequestError: On a bad URL.
            EncodingError: On a body that cannot be serialised.
        """
        return httpx.Request(
            self.method.value,
            self.resolve_url(),
            headers=self.header_items(),
            content=self.encode_body(),
        )

    @property
    def request_key(self) -> Optional[str]:
        """Canonical identity of this request, or ``None`` if it cannot be built."""
        try:
            url = self.resolve_url()
            content = self.encode_body()
        except ApiflightError:
            return None

        headers = "&".join(f"{name}={value}" for name, value in sorted(self.header_items()))
        body = base64.b64encode(content).decode("ascii") if content else ""
        return f"{self.method.value}|{url}|{headers}|{body}"
