"""
SQL Off-chain Store.

============================================================
PURPOSE
============================================================
OffchainStore implementation over SQLAlchemy async sessions.

- Reads use a plain session
- Every write runs inside Database.transaction()
- batch_write applies all operations in ONE transaction; an
  update that matches no order aborts and rolls back the batch

Repository exceptions are translated into the domain taxonomy
(RecordNotFound, PersistenceFailure with its kind).

============================================================
"""

import logging
from typing import Any, List, Mapping, NoReturn, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import PersistenceFailure, PersistenceKind, RecordNotFound
from storage.database import Database
from storage.records import OrderRecord, OrderStatus, TradeRecord
from storage.repositories import (
    OrderRepository,
    RecordNotFoundError,
    RepositoryException,
    TradeRepository,
)
from storage.store import InsertTrade, OffchainStore, UpdateOrder, WriteOperation


logger = logging.getLogger(__name__)


def raise_persistence_failure(error: RepositoryException, target: str) -> NoReturn:
    """Re-raise a repository exception as a domain PersistenceFailure."""
    raise PersistenceFailure(
        str(error),
        kind=error.kind,
        target=target,
        cause=error,
    ) from error


class SqlOffchainStore(OffchainStore):
    """Off-chain store backed by the orders and trades tables."""

    def __init__(self, database: Database) -> None:
        self._database = database

    # ---------------------------------------------------------
    # READS
    # ---------------------------------------------------------

    async def find_orders_by_status(
        self,
        statuses: Sequence[OrderStatus],
    ) -> List[OrderRecord]:
        try:
            async with self._database.session() as session:
                models = await OrderRepository(session).find_by_statuses(statuses)
                return [m.to_record() for m in models]
        except RepositoryException as e:
            raise_persistence_failure(e, "orders")

    async def get_order(self, order_id: str) -> Optional[OrderRecord]:
        try:
            async with self._database.session() as session:
                model = await OrderRepository(session).get(order_id)
                return model.to_record() if model else None
        except RepositoryException as e:
            raise_persistence_failure(e, "orders")

    async def get_trade(self, trade_id: str) -> Optional[TradeRecord]:
        try:
            async with self._database.session() as session:
                return await TradeRepository(session).get(trade_id)
        except RepositoryException as e:
            raise_persistence_failure(e, "trades")

    async def list_trades(self, order_id: str) -> List[TradeRecord]:
        try:
            async with self._database.session() as session:
                return await TradeRepository(session).list_for_order(order_id)
        except RepositoryException as e:
            raise_persistence_failure(e, "trades")

    # ---------------------------------------------------------
    # WRITES
    # ---------------------------------------------------------

    async def add_order(self, order: OrderRecord) -> None:
        """Insert a new cached order."""
        try:
            async with self._database.transaction() as session:
                await OrderRepository(session).add(order)
        except RepositoryException as e:
            raise_persistence_failure(e, "orders")

    async def update_order(self, order_id: str, fields: Mapping[str, Any]) -> None:
        await self.batch_write([UpdateOrder(order_id=order_id, fields=dict(fields))])

    async def batch_write(self, operations: Sequence[WriteOperation]) -> None:
        if not operations:
            return

        try:
            async with self._database.transaction() as session:
                orders = OrderRepository(session)
                trades = TradeRepository(session)
                for operation in operations:
                    if isinstance(operation, InsertTrade):
                        await trades.add(operation.trade)
                    elif isinstance(operation, UpdateOrder):
                        await orders.update_fields(operation.order_id, operation.fields)
                    else:
                        raise TypeError(f"Unsupported write operation: {operation!r}")
        except RecordNotFoundError as e:
            raise RecordNotFound("orders", e.record_id) from e
        except RepositoryException as e:
            raise_persistence_failure(e, "batch_write")
        except SQLAlchemyError as e:
            # Commit-time failures surface outside the repositories
            raise PersistenceFailure(
                f"Batch commit failed: {e}",
                kind=PersistenceKind.UNKNOWN,
                target="batch_write",
                cause=e,
            ) from e

        logger.debug(f"Batch of {len(operations)} operations committed")

    async def ping(self) -> None:
        try:
            await self._database.health_check()
        except SQLAlchemyError as e:
            raise PersistenceFailure(
                f"Store unreachable: {e}",
                kind=PersistenceKind.UNAVAILABLE,
                target="ping",
                cause=e,
            ) from e
