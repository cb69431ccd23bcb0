"""
Escrow Domain Repositories.

============================================================
REPOSITORIES
============================================================
- OrderRepository: cached orders (query, get, field updates)
- TradeRepository: trades (append-only)

Session is injected; the caller owns the transaction.

============================================================
"""

from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.escrow import OrderModel, TradeModel
from storage.records import OrderRecord, OrderStatus, TradeRecord
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import RecordNotFoundError


def _column_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Map record-level field values onto column values."""
    values: dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, OrderStatus):
            value = value.value
        elif name == "remaining_amount" and not isinstance(value, Decimal):
            value = Decimal(str(value))
        values[name] = value
    return values


class OrderRepository(BaseRepository[OrderModel]):
    """Repository for cached escrow orders."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, OrderModel, "OrderRepository")

    async def add(self, order: OrderRecord) -> OrderModel:
        return await self._add(OrderModel.from_record(order))

    async def get(self, order_id: str) -> Optional[OrderModel]:
        return await self._get_by_id(order_id)

    async def find_by_statuses(self, statuses: Sequence[OrderStatus]) -> List[OrderModel]:
        """Orders in any of the given statuses, oldest first."""
        stmt = (
            select(OrderModel)
            .where(OrderModel.status.in_([s.value for s in statuses]))
            .order_by(OrderModel.created_at, OrderModel.id)
        )
        return await self._execute_query(stmt)

    async def update_fields(self, order_id: str, fields: Mapping[str, Any]) -> None:
        """
        Update columns of one order.

        Raises:
            RecordNotFoundError: If no order has this id
        """
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(**_column_values(fields))
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, "update_fields")
        if result.rowcount == 0:
            raise RecordNotFoundError(
                repository_name=self._repository_name,
                record_id=order_id,
                operation="update_fields",
            )
        self._logger.debug(f"Updated order {order_id}: {sorted(fields)}")


class TradeRepository(BaseRepository[TradeModel]):
    """Repository for trades. Append-only."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TradeModel, "TradeRepository")

    async def add(self, trade: TradeRecord) -> TradeModel:
        return await self._add(TradeModel.from_record(trade))

    async def get(self, trade_id: str) -> Optional[TradeRecord]:
        model = await self._get_by_id(trade_id)
        return model.to_record() if model else None

    async def list_for_order(self, order_id: str) -> List[TradeRecord]:
        stmt = (
            select(TradeModel)
            .where(TradeModel.order_id == order_id)
            .order_by(TradeModel.created_at)
        )
        return [m.to_record() for m in await self._execute_query(stmt)]
