"""
Storage ORM Models Package.

============================================================
PURPOSE
============================================================
SQLAlchemy 2.0 declarative models for the off-chain store.
Importing this package registers every table on Base.metadata.

============================================================
TABLES
============================================================
- orders:          OrderModel
- trades:          TradeModel
- alerts:          MismatchAlertModel
- platform_config: MonitoringSnapshotModel

============================================================
"""

from storage.models.base import (
    AMOUNT_PRECISION,
    Base,
    JsonDocument,
    TimestampMixin,
    TokenAmount,
    as_utc,
)
from storage.models.escrow import OrderModel, TradeModel
from storage.models.monitoring import MismatchAlertModel, MonitoringSnapshotModel


__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "JsonDocument",
    "TokenAmount",
    "AMOUNT_PRECISION",
    "as_utc",

    # Escrow
    "OrderModel",
    "TradeModel",

    # Monitoring
    "MismatchAlertModel",
    "MonitoringSnapshotModel",
]
