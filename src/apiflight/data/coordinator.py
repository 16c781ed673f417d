"""Single-flight coordination of concurrent identical requests.

When several coroutines ask for the same key at the same time, only the
first one starts the work; the others join it and all of them receive the
same result, or the same exception instance.

Each key moves through ``idle -> running -> fulfilled | failed -> idle``.
Creating or joining an entry and removing it after completion both happen
under one :class:`asyncio.Lock`, so no caller can start a duplicate while
an entry is running and no joiner can miss the outcome. The work itself
runs outside the lock, so slow keys do not block other keys.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FlightStats:
    """Counters for :class:`SingleFlight`."""

    total: int = 0  # work started
    deduplicated: int = 0  # callers that joined running work
    in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        calls = self.total + self.deduplicated
        if calls == 0:
            return 0.0
        return self.deduplicated / calls

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "deduplicated": self.deduplicated,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }


class SingleFlight:
    """Runs at most one instance of a piece of work per key.

    Usage::

        flight = SingleFlight()

        async def fetch_album(album_id: str):
            return await flight.run(
                f"album:{album_id}",
                lambda: transport.call(album_endpoint(album_id)),
            )

    A caller that is cancelled while waiting only abandons its own wait;
    the shared task keeps running for the other waiters.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._stats = FlightStats()

    async def run(self, key: Optional[str], work: Callable[[], Awaitable[T]]) -> T:
        """Run *work* for *key*, or join the run already in progress.

        Args:
            key: Deduplication key. ``None`` bypasses coordination and
                always runs *work* directly.
            work: Zero-argument coroutine function producing the result.

        Returns:
            The result of the single execution of *work* for this key.

        Raises:
            Exception: Whatever *work* raised, delivered to every waiter.
        """
        if key is None:
            return await work()

        async with self._lock:
            task = self._in_flight.get(key)
            if task is None:
                self._stats.total += 1
                logger.debug("Starting request %s", key[:80])
                task = asyncio.create_task(self._execute(key, work))
                task.add_done_callback(_retrieve_exception)
                self._in_flight[key] = task
            else:
                self._stats.deduplicated += 1
                logger.debug("Joining in-flight request %s", key[:80])

        return await asyncio.shield(task)

    async def _execute(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            return await work()
        finally:
            async with self._lock:
                self._in_flight.pop(key, None)

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def in_flight_keys(self) -> list[str]:
        return list(self._in_flight)

    def stats(self) -> FlightStats:
        self._stats.in_flight = len(self._in_flight)
        return self._stats


def _retrieve_exception(task: asyncio.Task[Any]) -> None:
    # Marks the exception as retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()
