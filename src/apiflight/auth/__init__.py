"""Request interceptors for apiflight.

Interceptors mutate an :class:`~apiflight.client.endpoint.Endpoint` right
before it is sent; the built-in ones inject credentials resolved from an
``env:``, ``file:`` or ``prompt`` source.

Public API:
    :class:`Interceptor` -- abstract base class for request mutators.
    :class:`InterceptorChain` -- applies interceptors in order.
    :class:`BearerTokenInterceptor`, :class:`APIKeyInterceptor`,
    :class:`HeaderInterceptor` -- built-in interceptors.
    :func:`build_auth_interceptors` -- interceptors for an ``AuthConfig``.
"""

from apiflight.auth.base import Interceptor, InterceptorChain
from apiflight.auth.interceptors import (
    APIKeyInterceptor,
    BearerTokenInterceptor,
    HeaderInterceptor,
    build_auth_interceptors,
)

__all__ = [
    "APIKeyInterceptor",
    "BearerTokenInterceptor",
    "HeaderInterceptor",
    "Interceptor",
    "InterceptorChain",
    "build_auth_interceptors",
]
