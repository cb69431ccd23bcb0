"""
Reconciliation Data Models.

============================================================
PURPOSE
============================================================
Result and metric shapes produced by the reconciliation
subsystem.

PRINCIPLES:
- Amounts are Decimal in token units
- to_dict() output is JSON-safe (amounts as strings)
- Failed reconciliations are values, not exceptions

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from core.constants import MISMATCH_ALERT_TYPE


def _amount(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _when(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============================================================
# ENUMS
# ============================================================

class AlertSeverity(str, Enum):
    """Mismatch severity, ordered LOW < MEDIUM < HIGH."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================
# SYNC RESULT
# ============================================================

@dataclass
class SyncResult:
    """
    Outcome of reconciling one order.

    store_amount is the cached value BEFORE any correction, so the
    divergence can be reported after the cache was overwritten.
    """
    order_id: str
    on_chain_id: int
    success: bool
    updated: bool = False
    ledger_amount: Optional[Decimal] = None
    store_amount: Optional[Decimal] = None
    divergence: Optional[Decimal] = None
    raw_ledger_amount: Optional[int] = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def failure(
        cls,
        order_id: str,
        on_chain_id: int,
        error: str,
        timestamp: Optional[datetime] = None,
    ) -> "SyncResult":
        return cls(
            order_id=order_id,
            on_chain_id=on_chain_id,
            success=False,
            updated=False,
            error=error,
            timestamp=timestamp,
        )

    @property
    def has_mismatch(self) -> bool:
        return self.success and self.divergence is not None and self.divergence > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "on_chain_id": self.on_chain_id,
            "success": self.success,
            "updated": self.updated,
            "ledger_amount": _amount(self.ledger_amount),
            "store_amount": _amount(self.store_amount),
            "divergence": _amount(self.divergence),
            "raw_ledger_amount": str(self.raw_ledger_amount) if self.raw_ledger_amount is not None else None,
            "error": self.error,
            "timestamp": _when(self.timestamp),
        }


# ============================================================
# MISMATCH ALERT
# ============================================================

@dataclass
class MismatchAlert:
    """Alert for a medium or high divergence."""
    order_id: str
    on_chain_id: int
    store_amount: Decimal
    ledger_amount: Decimal
    divergence: Decimal
    severity: AlertSeverity
    timestamp: datetime
    resolved: bool = False
    alert_type: str = MISMATCH_ALERT_TYPE

    def to_record(self) -> Dict[str, Any]:
        """Row shape written to the AlertSink."""
        return {
            "type": self.alert_type,
            "order_id": self.order_id,
            "on_chain_id": self.on_chain_id,
            "store_amount": self.store_amount,
            "ledger_amount": self.ledger_amount,
            "divergence": self.divergence,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "resolved": self.resolved,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.alert_type,
            "order_id": self.order_id,
            "on_chain_id": self.on_chain_id,
            "store_amount": str(self.store_amount),
            "ledger_amount": str(self.ledger_amount),
            "divergence": str(self.divergence),
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
        }


# ============================================================
# SCAN METRICS
# ============================================================

@dataclass
class ScanMetrics:
    """Aggregate outcome of one scan over the active orders."""
    total_orders: int
    synced_orders: int
    failed_orders: int
    total_mismatches: int
    average_divergence: Decimal
    timestamp: datetime
    duration_ms: float = 0.0

    @classmethod
    def empty(cls, timestamp: datetime, duration_ms: float = 0.0) -> "ScanMetrics":
        return cls(
            total_orders=0,
            synced_orders=0,
            failed_orders=0,
            total_mismatches=0,
            average_divergence=Decimal("0"),
            timestamp=timestamp,
            duration_ms=duration_ms,
        )

    @classmethod
    def from_results(
        cls,
        results: List[SyncResult],
        timestamp: datetime,
        duration_ms: float = 0.0,
    ) -> "ScanMetrics":
        mismatches = [r.divergence for r in results if r.has_mismatch]
        average = sum(mismatches, Decimal("0")) / len(mismatches) if mismatches else Decimal("0")
        return cls(
            total_orders=len(results),
            synced_orders=sum(1 for r in results if r.success and r.updated),
            failed_orders=sum(1 for r in results if not r.success),
            total_mismatches=len(mismatches),
            average_divergence=average,
            timestamp=timestamp,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_orders": self.total_orders,
            "synced_orders": self.synced_orders,
            "failed_orders": self.failed_orders,
            "total_mismatches": self.total_mismatches,
            "average_divergence": str(self.average_divergence),
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": round(self.duration_ms, 3),
        }


# ============================================================
# TRADE-FLOW RESULTS
# ============================================================

@dataclass
class OrderValidation:
    """Whether the ledger still holds enough for a requested trade."""
    valid: bool
    available_amount: Decimal
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "available_amount": str(self.available_amount),
            "error": self.error,
        }


@dataclass
class OrderBalanceUpdate:
    """New remaining amount for one order, part of a trade commit."""
    order_id: str
    remaining_amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.remaining_amount, Decimal):
            self.remaining_amount = Decimal(str(self.remaining_amount))


@dataclass
class CommitResult:
    """A trade and its balance updates were committed together."""
    trade_id: str
    updated_orders: List[str]
    closed_orders: List[str]
    timestamp: datetime
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "trade_id": self.trade_id,
            "updated_orders": list(self.updated_orders),
            "closed_orders": list(self.closed_orders),
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# MONITOR STATUS
# ============================================================

@dataclass
class MonitoringStatus:
    """Reconciliation monitor state."""
    active: bool
    last_scan: Optional[datetime]
    interval_seconds: float
    scan_in_progress: bool = False
    last_metrics: Optional[ScanMetrics] = None
    scheduler: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "last_scan": _when(self.last_scan),
            "interval_seconds": self.interval_seconds,
            "scan_in_progress": self.scan_in_progress,
            "last_metrics": self.last_metrics.to_dict() if self.last_metrics else None,
            "scheduler": dict(self.scheduler),
        }
