"""
Monitoring - Health History.

Bounded ring buffer of SystemHealth snapshots with the aggregates
computed over it. Readers always receive copies.
"""

from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from core.constants import HEALTH_HISTORY_SIZE
from monitoring.models import HealthMetrics, HealthState, SystemHealth, UptimeStats


class HealthHistory:
    """Most recent health snapshots, oldest first."""

    def __init__(self, max_size: int = HEALTH_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._entries: Deque[SystemHealth] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, health: SystemHealth) -> None:
        self._entries.append(health)

    def latest(self) -> Optional[SystemHealth]:
        return self._entries[-1] if self._entries else None

    def get_all(self) -> List[SystemHealth]:
        return list(self._entries)

    def get_recent(self, limit: int) -> List[SystemHealth]:
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def clear(self) -> None:
        self._entries.clear()

    # --------------------------------------------------------
    # AGGREGATES
    # --------------------------------------------------------

    def uptime_stats(self) -> UptimeStats:
        total = len(self._entries)
        successful = sum(1 for h in self._entries if h.overall is not HealthState.CRITICAL)
        percentage = (successful / total) * 100 if total else 0.0
        return UptimeStats(
            uptime_percentage=percentage,
            total_checks=total,
            successful_checks=successful,
        )

    def metrics(self, now: datetime) -> HealthMetrics:
        uptime = self.uptime_stats()

        averages = [
            h.performance.average_response_time
            for h in self._entries
            if h.performance.average_response_time is not None
        ]
        incidents = [h.last_updated for h in self._entries if h.overall is HealthState.CRITICAL]

        return HealthMetrics(
            total_checks=uptime.total_checks,
            successful_checks=uptime.successful_checks,
            failed_checks=uptime.total_checks - uptime.successful_checks,
            average_response_time=sum(averages) / len(averages) if averages else 0.0,
            uptime_percentage=uptime.uptime_percentage,
            last_incident=max(incidents) if incidents else None,
            timestamp=now,
        )
