"""
Batch Scanner.

============================================================
RESPONSIBILITY
============================================================
One reconciliation pass over every active (OPEN / PENDING) order:

1. Query the store for active orders
2. Reconcile them in groups through the engine
3. Aggregate ScanMetrics
4. Persist the metrics snapshot (merge into "monitoring")
5. Hand every result to the classifier for alerting

A failed query yields zeroed metrics; sink failures are logged.
scan_active() never raises for domain errors.

============================================================
"""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import MONITORING_SNAPSHOT_KEY
from core.exceptions import EscrowSyncError, PersistenceFailure
from reconciliation.classifier import AlertClassifier
from reconciliation.engine import ReconciliationEngine
from reconciliation.models import ScanMetrics
from storage.records import OrderStatus
from storage.sinks import MetricsSink, log_sink_failure
from storage.store import OffchainStore


logger = logging.getLogger(__name__)


class BatchScanner:
    """
    Reconciles all active orders and records the outcome.

    Keeps a bounded in-memory history of ScanMetrics; readers get copies.
    """

    def __init__(
        self,
        store: OffchainStore,
        engine: ReconciliationEngine,
        classifier: AlertClassifier,
        metrics_sink: Optional[MetricsSink] = None,
        clock: Optional[ClockProtocol] = None,
        history_size: int = 100,
    ):
        self._store = store
        self._engine = engine
        self._classifier = classifier
        self._metrics_sink = metrics_sink
        self._clock = clock or SystemClock()
        self._history: Deque[ScanMetrics] = deque(maxlen=history_size)

    # --------------------------------------------------------
    # READ ACCESS
    # --------------------------------------------------------

    @property
    def last_metrics(self) -> Optional[ScanMetrics]:
        return self._history[-1] if self._history else None

    @property
    def last_scan_at(self) -> Optional[datetime]:
        last = self.last_metrics
        return last.timestamp if last else None

    def get_history(self, limit: Optional[int] = None) -> List[ScanMetrics]:
        """Most recent scans, oldest first."""
        history = list(self._history)
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    # --------------------------------------------------------
    # SCAN
    # --------------------------------------------------------

    async def scan_active(self) -> ScanMetrics:
        """Run one pass over the active orders."""
        started = self._clock.monotonic()

        try:
            orders = await self._store.find_orders_by_status(OrderStatus.active())
        except EscrowSyncError as e:
            logger.error(f"Active order query failed, scan aborted: {e.message}")
            return self._record(ScanMetrics.empty(self._clock.now(), self._clock.elapsed_ms(started)))

        if not orders:
            logger.info("No active orders to reconcile")
            return self._record(ScanMetrics.empty(self._clock.now(), self._clock.elapsed_ms(started)))

        logger.info(f"Reconciling {len(orders)} active orders")
        results = await self._engine.batch_reconcile(orders)

        metrics = ScanMetrics.from_results(
            results,
            timestamp=self._clock.now(),
            duration_ms=self._clock.elapsed_ms(started),
        )
        self._record(metrics)

        logger.info(
            f"Scan complete: total={metrics.total_orders} synced={metrics.synced_orders} "
            f"failed={metrics.failed_orders} mismatches={metrics.total_mismatches} "
            f"avg_divergence={metrics.average_divergence}"
        )

        await self._persist(metrics)
        await self._classifier.generate_alerts(results)
        return metrics

    def _record(self, metrics: ScanMetrics) -> ScanMetrics:
        self._history.append(metrics)
        return metrics

    async def _persist(self, metrics: ScanMetrics) -> None:
        if self._metrics_sink is None:
            return
        try:
            await self._metrics_sink.write_snapshot(
                MONITORING_SNAPSHOT_KEY,
                {
                    "last_sync_metrics": metrics.to_dict(),
                    "last_updated": metrics.timestamp.isoformat(),
                },
                updated_at=metrics.timestamp,
                merge=True,
            )
        except PersistenceFailure as e:
            log_sink_failure(logger, e, "scan metrics")
