"""Built-in credential and header interceptors.

- :class:`BearerTokenInterceptor` -- ``Authorization: Bearer <token>``.
- :class:`APIKeyInterceptor` -- API key in a header or query parameter.
- :class:`HeaderInterceptor` -- static headers on every request.

Credentials are resolved lazily, on every call, through
:func:`~apiflight.config.resolve_credential`, so a rotated ``env:`` or
``file:`` source is picked up without rebuilding the endpoint.
"""

from __future__ import annotations

from typing import TypeVar

from apiflight.auth.base import Interceptor
from apiflight.client.endpoint import Endpoint
from apiflight.config import resolve_credential
from apiflight.exceptions import ConfigError
from apiflight.models import AuthConfig

T = TypeVar("T")


class BearerTokenInterceptor(Interceptor):
    """Inject an ``Authorization: Bearer <token>`` header.

    Args:
        source: Credential source, e.g. ``"env:API_TOKEN"``.
    """

    def __init__(self, source: str) -> None:
        self.source = source

    async def intercept(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        token = resolve_credential(self.source)
        return endpoint.with_header("Authorization", f"Bearer {token}")


class APIKeyInterceptor(Interceptor):
    """Inject an API key as a header (default) or as a query parameter.

    Args:
        source: Credential source, e.g. ``"file:~/.config/acme/key"``.
        header: Header name when ``location="header"``.
        param_name: Query parameter name when ``location="query"``.
        location: ``"header"`` or ``"query"``.
    """

    def __init__(
        self,
        source: str,
        header: str = "X-API-Key",
        param_name: str = "api_key",
        location: str = "header",
    ) -> None:
        if location not in ("header", "query"):
            raise ConfigError(f"API key location must be 'header' or 'query', got {location!r}")
        self.source = source
        self.header = header
        self.param_name = param_name
        self.location = location

    async def intercept(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        key = resolve_credential(self.source)
        if self.location == "query":
            return endpoint.with_query_parameter(self.param_name, key)
        return endpoint.with_header(self.header, key)


class HeaderInterceptor(Interceptor):
    """Add fixed headers (user agent, client version...) to every request."""

    def __init__(self, headers: dict[str, str]) -> None:
        self.headers = dict(headers)

    async def intercept(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        return endpoint.replace(headers={**endpoint.headers, **self.headers})


def build_auth_interceptors(auth: AuthConfig | None) -> list[Interceptor]:
    """Map an :class:`~apiflight.models.AuthConfig` to interceptors.

    Returns an empty list when *auth* is ``None``.

    Raises:
        ConfigError: For an unknown auth type.
    """
    if auth is None:
        return []
    if auth.type == "bearer":
        return [BearerTokenInterceptor(auth.source)]
    if auth.type == "api_key":
        return [
            APIKeyInterceptor(
                auth.source,
                header=auth.header or "X-API-Key",
                param_name=auth.param_name or "api_key",
                location=auth.location,
            )
        ]
    raise ConfigError(f"Unknown auth type '{auth.type}'. Available types: api_key, bearer")
