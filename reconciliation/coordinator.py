"""
Atomic Mutation Coordinator.

============================================================
RESPONSIBILITY
============================================================
Commits a new trade together with the balance updates of the
orders it consumes, as ONE atomic store write.

- Each order gets its new remaining_amount and last_updated
- An order whose new amount is <= 0 is also CLOSED
- On rejection nothing is applied and AtomicCommitError is raised

============================================================
"""

import logging
from typing import List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.exceptions import AtomicCommitError, EscrowSyncError
from reconciliation.models import CommitResult, OrderBalanceUpdate
from storage.records import OrderStatus, TradeRecord
from storage.store import InsertTrade, OffchainStore, UpdateOrder, WriteOperation


logger = logging.getLogger(__name__)


class AtomicMutationCoordinator:
    """Trade + balance commit. The only component that raises to its caller."""

    def __init__(
        self,
        store: OffchainStore,
        clock: Optional[ClockProtocol] = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()

    def _build_operations(
        self,
        trade: TradeRecord,
        order_updates: Sequence[OrderBalanceUpdate],
    ) -> List[WriteOperation]:
        """Write operations for one trade commit, trade insert first."""
        now = self._clock.now()
        operations: List[WriteOperation] = [InsertTrade(trade=trade)]

        for update in order_updates:
            fields = {
                "remaining_amount": update.remaining_amount,
                "last_updated": now,
            }
            if update.remaining_amount <= 0:
                fields["status"] = OrderStatus.CLOSED
            operations.append(UpdateOrder(order_id=update.order_id, fields=fields))

        return operations

    async def commit_trade_with_order_updates(
        self,
        trade: TradeRecord,
        order_updates: Sequence[OrderBalanceUpdate],
    ) -> CommitResult:
        """
        Insert the trade and apply every balance update atomically.

        Args:
            trade: New trade record
            order_updates: New remaining amount per consumed order

        Returns:
            CommitResult listing updated and closed orders

        Raises:
            AtomicCommitError: If the store rejected the batch (nothing applied)
        """
        operations = self._build_operations(trade, order_updates)

        try:
            await self._store.batch_write(operations)
        except EscrowSyncError as e:
            logger.error(f"Trade {trade.id} commit rolled back: {e.message}")
            raise AtomicCommitError(
                f"Trade {trade.id} was not committed: {e.message}",
                trade_id=trade.id,
                cause=e,
            ) from e

        closed = [u.order_id for u in order_updates if u.remaining_amount <= 0]
        result = CommitResult(
            trade_id=trade.id,
            updated_orders=[u.order_id for u in order_updates],
            closed_orders=closed,
            timestamp=self._clock.now(),
        )

        logger.info(
            f"Trade {trade.id} committed with {len(order_updates)} order updates"
            + (f", closed {closed}" if closed else "")
        )
        return result
