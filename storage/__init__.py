"""
Storage Package.

This package manages the off-chain store and monitoring output.

Modules:
- database: Async engine and transaction management
- records: Order / trade data shapes
- store: OffchainStore interface and batch write operations
- sql_store: SQLAlchemy-backed OffchainStore
- sinks: MetricsSink / AlertSink interfaces and SQL implementations
- models/: ORM models
- repositories/: Data access layer
"""

from storage.database import Database, DatabasePersistenceError
from storage.records import OrderRecord, OrderStatus, TradeRecord
from storage.sinks import AlertSink, MetricsSink, SqlAlertSink, SqlMetricsSink, log_sink_failure
from storage.sql_store import SqlOffchainStore
from storage.store import (
    ORDER_UPDATE_FIELDS,
    InsertTrade,
    OffchainStore,
    UpdateOrder,
    WriteOperation,
)


__all__ = [
    "Database",
    "DatabasePersistenceError",
    "OrderRecord",
    "OrderStatus",
    "TradeRecord",
    "OffchainStore",
    "SqlOffchainStore",
    "InsertTrade",
    "UpdateOrder",
    "WriteOperation",
    "ORDER_UPDATE_FIELDS",
    "MetricsSink",
    "AlertSink",
    "SqlMetricsSink",
    "SqlAlertSink",
    "log_sink_failure",
]
