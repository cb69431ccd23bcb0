"""
Reconciliation Monitor.

Public control surface of the periodic reconciliation: start, stop,
manual scan and status. Scheduling is delegated to PeriodicScheduler;
each cycle is one BatchScanner.scan_active() pass.
"""

import logging
from typing import List, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import RECONCILE_INTERVAL_SECONDS
from core.scheduler import PeriodicScheduler, Ticker
from reconciliation.models import MonitoringStatus, ScanMetrics
from reconciliation.scanner import BatchScanner


logger = logging.getLogger(__name__)


class ReconciliationMonitor:
    """Periodic reconciliation of active orders."""

    def __init__(
        self,
        scanner: BatchScanner,
        interval_seconds: float = RECONCILE_INTERVAL_SECONDS,
        ticker: Optional[Ticker] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._scanner = scanner
        self._scheduler = PeriodicScheduler(
            name="reconciliation",
            cycle=scanner.scan_active,
            interval_seconds=interval_seconds,
            ticker=ticker,
            clock=clock or SystemClock(),
        )

    @property
    def scanner(self) -> BatchScanner:
        return self._scanner

    @property
    def scheduler(self) -> PeriodicScheduler:
        return self._scheduler

    async def start_monitoring(self, interval_seconds: Optional[float] = None) -> bool:
        """
        Start periodic reconciliation.

        Runs one scan immediately. Returns False if already running.
        """
        started = await self._scheduler.start(interval_seconds)
        if started:
            logger.info(
                f"Reconciliation monitoring started (every {self._scheduler.interval_seconds}s)"
            )
        return started

    async def stop_monitoring(self) -> bool:
        """Stop the timer. A scan already running is allowed to finish."""
        stopped = await self._scheduler.stop()
        if stopped:
            logger.info("Reconciliation monitoring stopped")
        return stopped

    async def trigger_manual_scan(self) -> ScanMetrics:
        """Run one scan now, after any scan already in progress."""
        logger.info("Manual reconciliation scan triggered")
        return await self._scheduler.run_now()

    def get_monitoring_status(self) -> MonitoringStatus:
        return MonitoringStatus(
            active=self._scheduler.is_running,
            last_scan=self._scanner.last_scan_at,
            interval_seconds=self._scheduler.interval_seconds,
            scan_in_progress=self._scheduler.cycle_in_progress,
            last_metrics=self._scanner.last_metrics,
            scheduler=self._scheduler.status(),
        )

    def get_scan_history(self, limit: Optional[int] = None) -> List[ScanMetrics]:
        return self._scanner.get_history(limit)

    async def wait_idle(self) -> None:
        await self._scheduler.wait_idle()
