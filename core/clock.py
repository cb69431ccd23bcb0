"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Provides the time abstraction used by every monitor.

- Wall-clock timestamps for records (sync stamps, alerts, snapshots)
- Monotonic readings for measuring probe and cycle durations
- Deterministic mock clock for tests

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only
- Injected into components, never looked up globally
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the service clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Get a monotonic reading in seconds, for measuring durations."""
        pass

    def elapsed_ms(self, started: float) -> float:
        """Milliseconds elapsed since a previous monotonic() reading."""
        return (self.monotonic() - started) * 1000.0


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    All times are in UTC.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Wall time and the monotonic reading advance together, and only
    when advance() is called.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        initial_time = initial_time or datetime.now(timezone.utc)
        if initial_time.tzinfo is None:
            initial_time = initial_time.replace(tzinfo=timezone.utc)
        self._time = initial_time
        self._monotonic = 0.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            delta = timedelta(seconds=seconds, **kwargs)
            self._time = self._time + delta
            self._monotonic += delta.total_seconds()


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Protocols
    "ClockProtocol",

    # Implementations
    "SystemClock",
    "MockClock",
]
