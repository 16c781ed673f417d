"""Request interceptor interface and the chain that runs it.

This module defines the two foundational types of the request-mutation
subsystem:

- :class:`Interceptor` -- the abstract base class every request mutator
  extends. An interceptor receives an
  :class:`~apiflight.client.endpoint.Endpoint` and returns a (possibly
  modified) copy, or raises to abort the request.
- :class:`InterceptorChain` -- applies an endpoint's interceptors in
  registration order, each one receiving the output of the previous one.

To implement a new mutator, subclass :class:`Interceptor`, set
:attr:`~Interceptor.name`, and implement :meth:`~Interceptor.intercept`.

See Also:
    :mod:`apiflight.auth.interceptors` for the built-in credential
    injectors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

from apiflight.exceptions import ApiflightError, InterceptorError

if TYPE_CHECKING:
    from apiflight.client.endpoint import Endpoint

T = TypeVar("T")


class Interceptor(ABC):
    """Abstract base class for request interceptors.

    Interceptors run once per call, immediately before the request key is
    derived and the request is transmitted. A typical interceptor injects
    an ``Authorization`` header; any field of the endpoint may be rewritten.
    """

    @property
    def name(self) -> str:
        """Identifier used in error messages. Defaults to the class name."""
        return type(self).__name__

    @abstractmethod
    async def intercept(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        """Return the endpoint to send in place of *endpoint*.

        Args:
            endpoint: The endpoint as produced by the previous interceptor.

        Returns:
            The endpoint to pass to the next interceptor.

        Raises:
            Exception: Any failure aborts the request before it is sent.
        """
        ...


class InterceptorChain:
    """Applies interceptors to an endpoint in registration order.

    The chain follows a pipeline pattern: each interceptor receives the
    endpoint returned by the previous one. The first failure stops the
    chain and no request is built from a partially intercepted endpoint.
    """

    async def apply(self, endpoint: Endpoint[T]) -> Endpoint[T]:
        """Run ``endpoint.interceptors`` and return the final endpoint.

        Raises:
            ApiflightError: Library errors raised by an interceptor
                (e.g. :class:`~apiflight.exceptions.ConfigError` for a
                missing credential) propagate unchanged.
            InterceptorError: Wraps any other exception, chained as
                ``__cause__``.
        """
        current = endpoint
        for interceptor in endpoint.interceptors:
            try:
                current = await interceptor.intercept(current)
            except ApiflightError:
                raise
            except Exception as exc:
                raise InterceptorError(
                    f"Interceptor '{interceptor.name}' failed: {exc}"
                ) from exc
        return current
