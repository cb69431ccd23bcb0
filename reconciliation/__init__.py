"""
Reconciliation Package - Keeps cached order balances in line with the ledger.

Pipeline:
    ReconciliationMonitor (timer)
      -> BatchScanner.scan_active()
        -> ReconciliationEngine.batch_reconcile()   (groups of 5)
        -> MetricsSink (monitoring snapshot)
        -> AlertClassifier.generate_alerts() -> AlertSink

Trade flow:
    ReconciliationEngine.validate_order_state()
    AtomicMutationCoordinator.commit_trade_with_order_updates()
"""

from reconciliation.classifier import AlertClassifier
from reconciliation.coordinator import AtomicMutationCoordinator
from reconciliation.engine import ReconciliationEngine
from reconciliation.models import (
    AlertSeverity,
    CommitResult,
    MismatchAlert,
    MonitoringStatus,
    OrderBalanceUpdate,
    OrderValidation,
    ScanMetrics,
    SyncResult,
)
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.scanner import BatchScanner


__all__ = [
    # Components
    "ReconciliationEngine",
    "AlertClassifier",
    "BatchScanner",
    "AtomicMutationCoordinator",
    "ReconciliationMonitor",

    # Models
    "AlertSeverity",
    "SyncResult",
    "MismatchAlert",
    "ScanMetrics",
    "OrderValidation",
    "OrderBalanceUpdate",
    "CommitResult",
    "MonitoringStatus",
]
