"""
Monitoring - Health Monitor.

Periodic health checking on top of HealthAggregator, plus the read
operations over its history.
"""

import logging
from typing import List, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import HEALTH_INTERVAL_SECONDS
from core.scheduler import PeriodicScheduler, Ticker
from monitoring.health_checks import HealthAggregator
from monitoring.models import (
    HealthMetrics,
    HealthMonitorStatus,
    SystemHealth,
    UptimeStats,
)


logger = logging.getLogger(__name__)


class HealthMonitor:
    """Runs the probe battery every interval_seconds."""

    def __init__(
        self,
        aggregator: HealthAggregator,
        interval_seconds: float = HEALTH_INTERVAL_SECONDS,
        ticker: Optional[Ticker] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._aggregator = aggregator
        self._clock = clock or SystemClock()
        self._scheduler = PeriodicScheduler(
            name="health",
            cycle=aggregator.check_all,
            interval_seconds=interval_seconds,
            ticker=ticker,
            clock=self._clock,
        )

    @property
    def aggregator(self) -> HealthAggregator:
        return self._aggregator

    @property
    def scheduler(self) -> PeriodicScheduler:
        return self._scheduler

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self, interval_seconds: Optional[float] = None) -> bool:
        """Run one check now, then every interval. False if already running."""
        started = await self._scheduler.start(interval_seconds)
        if started:
            logger.info(f"Health monitoring started (every {self._scheduler.interval_seconds}s)")
        return started

    async def stop(self) -> bool:
        stopped = await self._scheduler.stop()
        if stopped:
            logger.info("Health monitoring stopped")
        return stopped

    async def check_now(self) -> SystemHealth:
        return await self._scheduler.run_now()

    async def wait_idle(self) -> None:
        await self._scheduler.wait_idle()

    # --------------------------------------------------------
    # READ ACCESS
    # --------------------------------------------------------

    def get_current_health(self) -> Optional[SystemHealth]:
        """Latest SystemHealth, or None before the first check."""
        return self._aggregator.get_last_health()

    def get_health_history(self, limit: Optional[int] = None) -> List[SystemHealth]:
        """Recorded checks, oldest first. The list is a copy."""
        history = self._aggregator.history
        if limit is None:
            return history.get_all()
        return history.get_recent(limit)

    def get_uptime_stats(self) -> UptimeStats:
        return self._aggregator.history.uptime_stats()

    def get_health_metrics(self) -> HealthMetrics:
        return self._aggregator.history.metrics(self._clock.now())

    def get_monitoring_status(self) -> HealthMonitorStatus:
        current = self.get_current_health()
        return HealthMonitorStatus(
            active=self._scheduler.is_running,
            last_check=current.last_updated if current else None,
            interval_seconds=self._scheduler.interval_seconds,
        )
