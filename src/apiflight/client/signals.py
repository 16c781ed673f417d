"""Multi-subscriber broadcast signals.

The transport exposes one :class:`Signal`, ``unauthorized``, which fires
once for every HTTP 401 response. Applications subscribe to it to start a
re-authentication flow; it is a side channel and never changes the result
of the call that triggered it.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Signal:
    """Zero-argument broadcast notification.

    Example::

        unsubscribe = transport.unauthorized.subscribe(session.expire)
        ...
        unsubscribe()
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self) -> None:
        """Call every listener once, in subscription order.

        A failing listener is logged and does not prevent the others from
        running.
        """
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Listener for signal '%s' failed", self.name)

    def __len__(self) -> int:
        return len(self._listeners)
