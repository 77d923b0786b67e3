"""
Per-host spacing of unauthenticated explorer queries.

Explorers without an API key enforce strict rate limits, so queries to the
same host are spaced at least BLOCK_EXPLORER_RATE_LIMIT_MS apart across every
caller sharing a throttle.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import ClassVar, Optional

# Once every 5.1 seconds
BLOCK_EXPLORER_RATE_LIMIT_MS: int = 5100


def now_ms() -> float:
    """Wall clock in milliseconds since epoch."""
    return time.time() * 1000


class HostTimestampTable:
    """
    Host to last-request instant (milliseconds since epoch).

    Grows with the number of distinct explorer hosts and is never pruned.
    """

    def __init__(self) -> None:
        self._last_queried: dict[str, float] = {}

    def get(self, host: str) -> float | None:
        return self._last_queried.get(host)

    def set(self, host: str, instant: float) -> None:
        self._last_queried[host] = instant

    def __contains__(self, host: str) -> bool:
        return host in self._last_queried

    def __len__(self) -> int:
        return len(self._last_queried)


class HostThrottle:
    """
    Enforces a minimum spacing between unauthenticated queries per host.

    Reading the last instant and reserving the next slot happen without
    suspending, so concurrent callers on one event loop get distinct slots.
    """

    _shared: ClassVar[Optional["HostThrottle"]] = None

    def __init__(
        self,
        min_spacing_ms: float = BLOCK_EXPLORER_RATE_LIMIT_MS,
        *,
        table: HostTimestampTable | None = None,
        clock: Callable[[], float] = now_ms,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the throttle.

        Args:
            min_spacing_ms: Minimum spacing between queries to one host
            table: Timestamp store, a fresh one if not provided
            clock: Returns the current instant in milliseconds
            sleep: Suspends for a number of seconds
        """
        self.min_spacing_ms = min_spacing_ms
        self.table = table if table is not None else HostTimestampTable()
        self._clock = clock
        self._sleep = sleep
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def shared(cls) -> "HostThrottle":
        """Process-wide throttle used when no throttle is injected."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    def last_queried(self, host: str) -> float | None:
        return self.table.get(host)

    def wait_time_ms(self, host: str) -> float:
        """Milliseconds a query to host issued now would have to wait."""
        last = self.table.get(host)
        if last is None:
            return 0.0
        return max(0.0, self.min_spacing_ms - (self._clock() - last))

    async def wait_if_needed(self, host: str) -> float:
        """
        Suspend until a query to host is allowed and reserve its slot.

        Args:
            host: Explorer hostname

        Returns:
            Milliseconds waited
        """
        now = self._clock()
        wait_ms = self.wait_time_ms(host)
        # Reserve before suspending so the next caller queues behind us
        self.table.set(host, now + wait_ms)
        if wait_ms > 0:
            self.logger.debug(f"Throttling query to {host} for {wait_ms:.0f}ms")
            await self._sleep(wait_ms / 1000)
        return wait_ms

    def record_queried(self, host: str, instant: float | None = None) -> None:
        """
        Record that a query to host settled.

        Never moves a reservation made by a later caller backwards.
        """
        instant = self._clock() if instant is None else instant
        last = self.table.get(host)
        self.table.set(host, instant if last is None else max(last, instant))

    @asynccontextmanager
    async def throttled(self, host: str) -> AsyncIterator[None]:
        """Wait for host, run the body, then record the query even on failure."""
        await self.wait_if_needed(host)
        try:
            yield
        finally:
            self.record_queried(host)
