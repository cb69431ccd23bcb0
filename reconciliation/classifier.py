"""
Mismatch Alert Classifier.

============================================================
RESPONSIBILITY
============================================================
Turns reconciliation divergences into severity-classified
alerts and persists the ones worth raising.

RULES:
- divergence >= high   -> HIGH
- divergence >= medium -> MEDIUM
- otherwise            -> LOW (not persisted)

Thresholds are absolute token amounts and must stay ordered,
so severity never decreases as divergence grows.

============================================================
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.config import AlertThresholds
from core.exceptions import PersistenceFailure
from reconciliation.models import AlertSeverity, MismatchAlert, SyncResult
from storage.sinks import AlertSink, log_sink_failure


logger = logging.getLogger(__name__)


class AlertClassifier:
    """
    Classifies divergences and writes mismatch alerts.

    All alerts produced by one generate_alerts() call are written in
    a single AlertSink call, so they are stored together or not at all.
    """

    def __init__(
        self,
        sink: Optional[AlertSink] = None,
        thresholds: Optional[AlertThresholds] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._sink = sink
        self._thresholds = thresholds or AlertThresholds()
        self._clock = clock or SystemClock()

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    # --------------------------------------------------------
    # CLASSIFICATION
    # --------------------------------------------------------

    def classify(self, divergence: Decimal) -> AlertSeverity:
        """Map an absolute divergence to a severity."""
        thresholds = self._thresholds
        if divergence >= thresholds.high:
            return AlertSeverity.HIGH
        if divergence >= thresholds.medium:
            return AlertSeverity.MEDIUM
        return AlertSeverity.LOW

    def update_thresholds(
        self,
        low: Optional[Decimal] = None,
        medium: Optional[Decimal] = None,
        high: Optional[Decimal] = None,
    ) -> AlertThresholds:
        """
        Replace some or all thresholds.

        Raises:
            ConfigurationError: If the result would not be ordered.
                The current thresholds are kept.
        """
        current = self._thresholds
        updated = AlertThresholds(
            low=current.low if low is None else low,
            medium=current.medium if medium is None else medium,
            high=current.high if high is None else high,
        )
        self._thresholds = updated
        logger.info(f"Alert thresholds updated: {updated.to_dict()}")
        return updated

    # --------------------------------------------------------
    # ALERTS
    # --------------------------------------------------------

    def build_alerts(self, results: Sequence[SyncResult]) -> List[MismatchAlert]:
        """Medium and high alerts for successful results with a positive divergence."""
        timestamp = self._clock.now()
        alerts: List[MismatchAlert] = []

        for result in results:
            if not result.has_mismatch:
                continue

            severity = self.classify(result.divergence)
            if severity is AlertSeverity.LOW:
                continue

            alerts.append(MismatchAlert(
                order_id=result.order_id,
                on_chain_id=result.on_chain_id,
                store_amount=result.store_amount,
                ledger_amount=result.ledger_amount,
                divergence=result.divergence,
                severity=severity,
                timestamp=timestamp,
            ))

        return alerts

    async def generate_alerts(self, results: Sequence[SyncResult]) -> List[MismatchAlert]:
        """
        Build alerts and persist them in one write.

        A rejected write is logged; the built alerts are still returned.
        """
        alerts = self.build_alerts(results)
        if not alerts:
            return alerts

        high = sum(1 for a in alerts if a.severity is AlertSeverity.HIGH)
        logger.warning(
            f"{len(alerts)} balance mismatches detected ({high} high, {len(alerts) - high} medium)"
        )

        if self._sink is None:
            return alerts

        try:
            await self._sink.write_alerts([alert.to_record() for alert in alerts])
        except PersistenceFailure as e:
            log_sink_failure(logger, e, f"{len(alerts)} mismatch alerts")

        return alerts
