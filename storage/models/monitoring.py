"""
Monitoring Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for storing reconciliation alerts and the latest
monitoring / health snapshots.

============================================================
DATA LIFECYCLE ROLE
============================================================
- MismatchAlertModel: APPEND-ONLY, one row per alert
- MonitoringSnapshotModel: OVERWRITE, one row per key

============================================================
MODELS
============================================================
- MismatchAlertModel: Ledger/store divergence alert
- MonitoringSnapshotModel: Keyed JSON document ("monitoring",
  "health") holding the latest snapshot

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import BigInteger, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import AMOUNT_PRECISION, Base, JsonDocument, as_utc


class MismatchAlertModel(Base):
    """
    Mismatch alert.

    ============================================================
    PURPOSE
    ============================================================
    Written when a reconciliation finds a medium or high
    divergence. All alerts of one scan are inserted in a single
    transaction.

    ============================================================
    """

    __tablename__ = "alerts"

    alert_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate key"
    )

    alert_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Alert kind, remainingAmount_mismatch"
    )

    order_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Store order id"
    )

    on_chain_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Escrow contract order id"
    )

    store_amount: Mapped[Decimal] = mapped_column(
        AMOUNT_PRECISION,
        nullable=False,
        comment="Cached amount before correction"
    )

    ledger_amount: Mapped[Decimal] = mapped_column(
        AMOUNT_PRECISION,
        nullable=False,
        comment="Amount read from the ledger"
    )

    divergence: Mapped[Decimal] = mapped_column(
        AMOUNT_PRECISION,
        nullable=False,
        comment="Absolute difference"
    )

    severity: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="low, medium, high"
    )

    timestamp: Mapped[datetime] = mapped_column(
        nullable=False,
        comment="When the mismatch was detected"
    )

    resolved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Whether an operator resolved the alert"
    )

    __table_args__ = (
        Index("ix_alerts_order_id", "order_id"),
        Index("ix_alerts_resolved_timestamp", "resolved", "timestamp"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "type": self.alert_type,
            "order_id": self.order_id,
            "on_chain_id": self.on_chain_id,
            "store_amount": str(self.store_amount),
            "ledger_amount": str(self.ledger_amount),
            "divergence": str(self.divergence),
            "severity": self.severity,
            "timestamp": as_utc(self.timestamp).isoformat(),
            "resolved": self.resolved,
        }


class MonitoringSnapshotModel(Base):
    """Latest snapshot document under a well-known key. Writes overwrite."""

    __tablename__ = "platform_config"

    key: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Document key (monitoring, health)"
    )

    payload: Mapped[dict[str, Any]] = mapped_column(
        JsonDocument,
        nullable=False,
        comment="Snapshot document"
    )

    last_updated: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the snapshot was written"
    )
