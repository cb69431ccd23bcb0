"""
Metrics and Alert Sinks.

============================================================
PURPOSE
============================================================
Write-side outlets for monitoring output.

- MetricsSink: latest ScanMetrics / SystemHealth snapshot under a key
- AlertSink: mismatch alerts, all alerts of one call in ONE write

Sinks raise PersistenceFailure; callers log it and keep the
result of the operation that produced the payload.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import PersistenceFailure, PersistenceKind
from storage.database import Database
from storage.models.monitoring import MismatchAlertModel
from storage.repositories import MonitoringRepository, RepositoryException
from storage.sql_store import raise_persistence_failure


logger = logging.getLogger(__name__)


# ============================================================
# INTERFACES
# ============================================================

class MetricsSink(ABC):
    """Receives monitoring snapshots."""

    @abstractmethod
    async def write_snapshot(
        self,
        key: str,
        payload: Mapping[str, Any],
        updated_at: datetime,
        merge: bool = True,
    ) -> None:
        """
        Store the snapshot under key.

        Raises:
            PersistenceFailure: If the write is rejected
        """
        pass

    async def read_snapshot(self, key: str) -> Optional[dict[str, Any]]:
        """Latest snapshot under key, if the sink can read back."""
        return None


class AlertSink(ABC):
    """Receives mismatch alerts."""

    @abstractmethod
    async def write_alerts(self, alerts: Sequence[Mapping[str, Any]]) -> None:
        """
        Store every alert atomically.

        Each mapping carries: type, order_id, on_chain_id, store_amount,
        ledger_amount, divergence, severity, timestamp, resolved.

        Raises:
            PersistenceFailure: If the write is rejected (nothing stored)
        """
        pass


# ============================================================
# SQL IMPLEMENTATIONS
# ============================================================

def _commit_failure(error: SQLAlchemyError, target: str) -> PersistenceFailure:
    return PersistenceFailure(
        f"Commit failed: {error}",
        kind=PersistenceKind.UNKNOWN,
        target=target,
        cause=error,
    )


class SqlMetricsSink(MetricsSink):
    """Snapshots in the platform_config table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def write_snapshot(
        self,
        key: str,
        payload: Mapping[str, Any],
        updated_at: datetime,
        merge: bool = True,
    ) -> None:
        try:
            async with self._database.transaction() as session:
                await MonitoringRepository(session).write_snapshot(
                    key, dict(payload), updated_at, merge=merge
                )
        except RepositoryException as e:
            raise_persistence_failure(e, f"platform_config/{key}")
        except SQLAlchemyError as e:
            raise _commit_failure(e, f"platform_config/{key}") from e

    async def read_snapshot(self, key: str) -> Optional[dict[str, Any]]:
        try:
            async with self._database.session() as session:
                return await MonitoringRepository(session).get_snapshot(key)
        except RepositoryException as e:
            raise_persistence_failure(e, f"platform_config/{key}")


class SqlAlertSink(AlertSink):
    """Alerts in the alerts table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def write_alerts(self, alerts: Sequence[Mapping[str, Any]]) -> None:
        if not alerts:
            return

        models = [
            MismatchAlertModel(
                alert_type=alert["type"],
                order_id=alert["order_id"],
                on_chain_id=alert["on_chain_id"],
                store_amount=alert["store_amount"],
                ledger_amount=alert["ledger_amount"],
                divergence=alert["divergence"],
                severity=alert["severity"],
                timestamp=alert["timestamp"],
                resolved=alert.get("resolved", False),
            )
            for alert in alerts
        ]

        try:
            async with self._database.transaction() as session:
                await MonitoringRepository(session).add_alerts(models)
        except RepositoryException as e:
            raise_persistence_failure(e, "alerts")
        except SQLAlchemyError as e:
            raise _commit_failure(e, "alerts") from e

        logger.debug(f"Stored {len(models)} alerts")

    async def list_alerts(self, resolved: Optional[bool] = None, limit: int = 100) -> list[dict[str, Any]]:
        try:
            async with self._database.session() as session:
                rows = await MonitoringRepository(session).list_alerts(resolved=resolved, limit=limit)
                return [row.to_dict() for row in rows]
        except RepositoryException as e:
            raise_persistence_failure(e, "alerts")


# ============================================================
# FAILURE LOGGING
# ============================================================

def log_sink_failure(log: logging.Logger, error: PersistenceFailure, what: str) -> None:
    """Log a rejected sink write, distinguishing permission and availability problems."""
    if error.kind is PersistenceKind.PERMISSION_DENIED:
        log.error(
            f"Permission denied writing {what} to {error.target}; "
            f"check the store's access rules for the monitoring role: {error.message}"
        )
    elif error.kind is PersistenceKind.UNAVAILABLE:
        log.error(
            f"Store unavailable while writing {what} to {error.target}; "
            f"will retry on the next cycle: {error.message}"
        )
    else:
        log.error(f"Failed to write {what} to {error.target}: {error.message}")
