"""
Monitoring Domain Repository.

============================================================
PURPOSE
============================================================
Persistence for mismatch alerts and keyed monitoring snapshots.

- Alerts are append-only
- Snapshots merge into (or replace) the document under their key

============================================================
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.monitoring import MismatchAlertModel, MonitoringSnapshotModel
from storage.repositories.base import BaseRepository


class MonitoringRepository(BaseRepository[MismatchAlertModel]):
    """Repository for alerts and monitoring snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, MismatchAlertModel, "MonitoringRepository")

    # ---------------------------------------------------------
    # ALERTS
    # ---------------------------------------------------------

    async def add_alerts(self, alerts: List[MismatchAlertModel]) -> None:
        await self._add_all(alerts)

    async def list_alerts(
        self,
        resolved: Optional[bool] = None,
        limit: int = 100,
    ) -> List[MismatchAlertModel]:
        stmt = select(MismatchAlertModel)
        if resolved is not None:
            stmt = stmt.where(MismatchAlertModel.resolved == resolved)
        stmt = stmt.order_by(MismatchAlertModel.timestamp.desc()).limit(limit)
        return await self._execute_query(stmt)

    # ---------------------------------------------------------
    # SNAPSHOTS
    # ---------------------------------------------------------

    async def write_snapshot(
        self,
        key: str,
        payload: dict[str, Any],
        updated_at: datetime,
        merge: bool = True,
    ) -> None:
        """
        Write payload under key, creating the document if absent.

        With merge=False the stored document is replaced wholesale.
        """
        try:
            existing = await self._session.get(MonitoringSnapshotModel, key)
            if existing is None:
                self._session.add(
                    MonitoringSnapshotModel(key=key, payload=dict(payload), last_updated=updated_at)
                )
            else:
                existing.payload = {**(existing.payload or {}), **payload} if merge else dict(payload)
                existing.last_updated = updated_at
            await self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "write_snapshot", {"key": key})

    async def get_snapshot(self, key: str) -> Optional[dict[str, Any]]:
        stmt = select(MonitoringSnapshotModel).where(MonitoringSnapshotModel.key == key)
        rows = await self._execute_query(stmt)
        return dict(rows[0].payload) if rows else None
