"""
Core Module - Periodic Scheduler.

============================================================
RESPONSIBILITY
============================================================
Drives a monitor cycle (reconciliation scan, health battery) on a
fixed interval.

- start() runs one cycle immediately, then arms a repeating timer
- stop() cancels the timer only; a cycle already running completes
- A run-lock keeps cycles of one scheduler from overlapping
- Independent schedulers run concurrently

============================================================
TIMING
============================================================
The timer sleeps through an injectable Ticker. Production uses
AsyncioTicker; tests drive time with ManualTicker.advance().

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


# ============================================================
# TICKERS
# ============================================================

class Ticker(ABC):
    """Source of timer delays for the scheduler loop."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass


class AsyncioTicker(Ticker):
    """Real-time ticker backed by asyncio.sleep."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class _Sleeper:
    __slots__ = ("deadline", "future")

    def __init__(self, deadline: float, future: asyncio.Future):
        self.deadline = deadline
        self.future = future


class ManualTicker(Ticker):
    """
    Virtual-time ticker for tests.

    Sleeps only complete when advance() moves virtual time past
    their deadline. Sleeps re-armed while advancing are honoured
    within the same advance() call.
    """

    def __init__(self, settle_rounds: int = 20):
        self._now = 0.0
        self._sleepers: List[_Sleeper] = []
        self._settle_rounds = settle_rounds

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of sleeps currently waiting."""
        return len(self._sleepers)

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        sleeper = _Sleeper(self._now + seconds, future)
        self._sleepers.append(sleeper)
        try:
            await future
        finally:
            if sleeper in self._sleepers:
                self._sleepers.remove(sleeper)

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking every sleep that falls due."""
        target = self._now + seconds
        while True:
            due = [s for s in self._sleepers if s.deadline <= target]
            if not due:
                break
            sleeper = min(due, key=lambda s: s.deadline)
            self._sleepers.remove(sleeper)
            self._now = sleeper.deadline
            if not sleeper.future.done():
                sleeper.future.set_result(None)
            await self.settle()
        self._now = target
        await self.settle()

    async def settle(self) -> None:
        """Yield to the event loop so woken tasks can run."""
        for _ in range(self._settle_rounds):
            await asyncio.sleep(0)


# ============================================================
# SCHEDULER
# ============================================================

class SchedulerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class PeriodicScheduler:
    """
    Runs an async cycle immediately on start, then every interval.

    The cycle callable takes no arguments. Its return value is kept
    as last_result.
    """

    def __init__(
        self,
        name: str,
        cycle: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        ticker: Optional[Ticker] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize scheduler.

        Args:
            name: Name used in logs and status
            cycle: Coroutine function executed each tick
            interval_seconds: Default delay between ticks
            ticker: Timer source (defaults to real time)
            clock: Clock used to stamp cycle completion
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._name = name
        self._cycle = cycle
        self._interval = interval_seconds
        self._ticker = ticker or AsyncioTicker()
        self._clock = clock or SystemClock()

        self._state = SchedulerState.STOPPED
        self._run_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()

        self._runs = 0
        self._skipped = 0
        self._failures = 0
        self._last_run_at: Optional[datetime] = None
        self._last_result: Any = None

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_run_at(self) -> Optional[datetime]:
        return self._last_run_at

    @property
    def last_result(self) -> Any:
        return self._last_result

    @property
    def cycle_in_progress(self) -> bool:
        return self._run_lock.locked()

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self, interval_seconds: Optional[float] = None) -> bool:
        """
        Start the scheduler.

        No-op (returns False) when already running. Otherwise runs
        one full cycle, then arms the repeating timer.
        """
        if self.is_running:
            logger.info(f"[{self._name}] Already running, start ignored")
            return False

        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValueError("interval_seconds must be > 0")
            self._interval = interval_seconds

        self._state = SchedulerState.RUNNING
        logger.info(f"[{self._name}] Starting with interval {self._interval}s")

        await self._guarded_cycle(wait_for_lock=True)

        # stop() may have been called while the first cycle ran
        if self.is_running:
            self._loop_task = asyncio.create_task(
                self._run_loop(), name=f"{self._name}-timer"
            )
        return True

    async def stop(self) -> bool:
        """
        Stop the scheduler.

        Cancels the timer. A cycle that is already running is left
        to finish. Returns False when already stopped.
        """
        if not self.is_running:
            return False

        self._state = SchedulerState.STOPPED

        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        logger.info(f"[{self._name}] Stopped")
        return True

    async def run_now(self) -> Any:
        """
        Run one cycle outside the timer.

        Waits for an in-flight cycle to finish rather than skipping.
        Exceptions from the cycle propagate to the caller.
        """
        async with self._run_lock:
            return await self._execute(raise_errors=True)

    async def wait_idle(self) -> None:
        """Wait for every spawned cycle to finish."""
        while self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)
        async with self._run_lock:
            pass

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _run_loop(self) -> None:
        while self.is_running:
            await self._ticker.sleep(self._interval)
            if not self.is_running:
                break
            task = asyncio.create_task(
                self._guarded_cycle(wait_for_lock=False),
                name=f"{self._name}-cycle",
            )
            self._cycle_tasks.add(task)
            task.add_done_callback(self._cycle_tasks.discard)

    async def _guarded_cycle(self, wait_for_lock: bool) -> None:
        if not wait_for_lock and self._run_lock.locked():
            self._skipped += 1
            logger.warning(
                f"[{self._name}] Previous cycle still running, tick skipped "
                f"(skipped={self._skipped})"
            )
            return

        async with self._run_lock:
            await self._execute(raise_errors=False)

    async def _execute(self, raise_errors: bool) -> Any:
        started = self._clock.monotonic()
        try:
            result = await self._cycle()
        except Exception as e:
            self._failures += 1
            logger.error(f"[{self._name}] Cycle failed: {e}", exc_info=True)
            if raise_errors:
                raise
            return None

        self._runs += 1
        self._last_result = result
        self._last_run_at = self._clock.now()
        logger.debug(
            f"[{self._name}] Cycle {self._runs} completed in "
            f"{self._clock.elapsed_ms(started):.1f}ms"
        )
        return result

    def status(self) -> Dict[str, Any]:
        """Get scheduler status."""
        return {
            "name": self._name,
            "state": self._state.value,
            "interval_seconds": self._interval,
            "runs": self._runs,
            "skipped": self._skipped,
            "failures": self._failures,
            "cycle_in_progress": self.cycle_in_progress,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
        }


__all__ = [
    "Ticker",
    "AsyncioTicker",
    "ManualTicker",
    "SchedulerState",
    "PeriodicScheduler",
]
