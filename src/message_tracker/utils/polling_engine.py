"""
Polling engine for re-running a query on a fixed interval.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Schedules callbacks after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class PollingState(Enum):
    """Lifecycle state of a polling session."""
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PollSnapshot(Generic[T]):
    """Observable state of a polling session.

    Attributes:
        is_fetching: A query is in flight
        is_error: The most recent applied query failed
        has_run: At least one query succeeded
        result: Most recent successful result, kept when later queries fail
        error: Exception of the most recent applied failure
    """
    is_fetching: bool = False
    is_error: bool = False
    has_run: bool = False
    result: T | None = None
    error: Exception | None = None


class PollingSession(Generic[T]):
    """
    Runs a query once on start, then again with cache bypass every interval.

    Responses are applied in the order queries were initiated: a response
    older than the last applied one is discarded, as is any response arriving
    after the session stopped. Stopping clears the timer but does not abort
    a query already in flight. A stopped session cannot be restarted.
    """

    def __init__(
        self,
        query_fn: Callable[[bool], Awaitable[T]],
        interval: float,
        *,
        stop_predicate: Callable[[T], bool] | None = None,
        scheduler: Scheduler | None = None,
        on_update: Callable[[PollSnapshot[T]], Any] | None = None,
        fetch_on_start: bool = True,
        name: str = "poll",
    ) -> None:
        """
        Initialize the polling session.

        Args:
            query_fn: Runs the query; receives True when the cache must be bypassed
            interval: Seconds between ticks
            stop_predicate: Stops the session when it returns True for a result
            scheduler: Timer source, the running event loop if not provided
            on_update: Called with the new snapshot whenever it changes
            fetch_on_start: Run the query immediately on start
            name: Label used in log messages
        """
        if interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {interval}")
        self.query_fn = query_fn
        self.interval = interval
        self.stop_predicate = stop_predicate
        self.scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.on_update = on_update
        self.fetch_on_start = fetch_on_start
        self.name = name

        self.state = PollingState.IDLE
        self.tick_count = 0
        self._snapshot: PollSnapshot[T] = PollSnapshot()
        self._timer: TimerHandle | None = None
        self._initiated_seq = 0
        self._applied_seq = 0
        self._pending = 0
        self._in_flight: set[asyncio.Task] = set()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def snapshot(self) -> PollSnapshot[T]:
        return self._snapshot

    @property
    def is_active(self) -> bool:
        return self.state is PollingState.ACTIVE

    def start(self) -> None:
        """
        Start polling.

        Raises:
            RuntimeError: If the session was already stopped
        """
        if self.state is PollingState.ACTIVE:
            self.logger.warning(f"Polling {self.name} already running")
            return
        if self.state is PollingState.STOPPED:
            raise RuntimeError(f"Polling {self.name} was stopped; create a new session")

        self.state = PollingState.ACTIVE
        self.logger.debug(f"Starting polling {self.name} every {self.interval} seconds")
        self._schedule_next()
        if self.fetch_on_start:
            self._launch(bypass_cache=False)

    def stop(self) -> None:
        """Stop polling. Safe to call any number of times."""
        if self.state is PollingState.STOPPED:
            return
        self.state = PollingState.STOPPED
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._snapshot = replace(self._snapshot, is_fetching=False)
        self.logger.debug(f"Stopped polling {self.name} after {self.tick_count} ticks")

    async def drain(self) -> None:
        """Wait for every query in flight to settle."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "tick_count": self.tick_count,
            "in_flight": len(self._in_flight),
            "has_run": self._snapshot.has_run,
            "is_error": self._snapshot.is_error,
        }

    def _schedule_next(self) -> None:
        self._timer = self.scheduler.call_later(self.interval, self._on_tick)

    def _on_tick(self) -> None:
        if self.state is not PollingState.ACTIVE:
            return
        self.tick_count += 1
        self._schedule_next()
        self._launch(bypass_cache=True)

    def _launch(self, bypass_cache: bool) -> None:
        self._initiated_seq += 1
        self._pending += 1
        task = asyncio.get_running_loop().create_task(self._run(self._initiated_seq, bypass_cache))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self._update()

    async def _run(self, seq: int, bypass_cache: bool) -> None:
        error: Exception | None = None
        try:
            result = await self.query_fn(bypass_cache)
        except Exception as e:
            error = e
        finally:
            self._pending -= 1

        if not self._accept(seq):
            self.logger.debug(f"Discarding stale response #{seq} for {self.name}")
            self._update()
            return

        if error is not None:
            self.logger.warning(f"Polling {self.name} query failed: {error}")
            self._update(is_error=True, error=error)
            return

        self._update(is_error=False, error=None, has_run=True, result=result)
        if self._is_terminal(result):
            self.logger.info(f"Polling {self.name} reached a terminal result")
            self.stop()

    def _is_terminal(self, result: T) -> bool:
        if self.stop_predicate is None:
            return False
        try:
            return bool(self.stop_predicate(result))
        except Exception as e:
            self.logger.error(f"Stop predicate of {self.name} failed: {e}", exc_info=True)
            return False

    def _accept(self, seq: int) -> bool:
        if self.state is PollingState.STOPPED or seq <= self._applied_seq:
            return False
        self._applied_seq = seq
        return True

    def _update(self, **changes: Any) -> None:
        if self.state is PollingState.STOPPED:
            return
        changes.setdefault("is_fetching", self._pending > 0)
        snapshot = replace(self._snapshot, **changes)
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        if self.on_update is None:
            return
        try:
            self.on_update(snapshot)
        except Exception as e:
            self.logger.error(f"Update callback of {self.name} failed: {e}", exc_info=True)
