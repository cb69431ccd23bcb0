"""
Reconciliation Engine.

============================================================
RESPONSIBILITY
============================================================
Reconciles one cached order against the ledger.

1. Read the raw remaining amount from the ledger
2. Read the cached order from the store
3. Descale by token decimals and compute the divergence
4. Overwrite the cache when divergence exceeds the tolerance
   (or when forced), stamping the sync time and source

============================================================
ERROR POLICY
============================================================
Ledger, store and not-found failures are returned inside the
SyncResult (success=False). They are never raised.

============================================================
"""

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.constants import (
    DEFAULT_CHAIN_ID,
    RECONCILE_BATCH_SIZE,
    SYNC_SOURCE_LEDGER,
    SYNC_TOLERANCE,
)
from core.exceptions import EscrowSyncError, RecordNotFound, ValidationFailure
from ledger.registry import LedgerRegistry
from reconciliation.models import OrderValidation, SyncResult
from storage.records import OrderRecord
from storage.store import OffchainStore


logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Compares cached order balances with the ledger and repairs drift.

    Usage:
        engine = ReconciliationEngine(ledgers, store)
        result = await engine.reconcile("order-1", on_chain_id=7, token_decimals=6)
        if result.updated:
            ...
    """

    def __init__(
        self,
        ledgers: LedgerRegistry,
        store: OffchainStore,
        clock: Optional[ClockProtocol] = None,
        tolerance: Decimal = SYNC_TOLERANCE,
        batch_size: int = RECONCILE_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._ledgers = ledgers
        self._store = store
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._batch_size = batch_size

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # --------------------------------------------------------
    # SINGLE ORDER
    # --------------------------------------------------------

    async def reconcile(
        self,
        order_id: str,
        on_chain_id: int,
        token_decimals: int,
        chain_id: int = DEFAULT_CHAIN_ID,
        force_update: bool = False,
    ) -> SyncResult:
        """
        Reconcile one order.

        Args:
            order_id: Store identifier
            on_chain_id: Contract identifier
            token_decimals: Decimals used to descale the raw ledger amount
            chain_id: Chain of the escrow contract
            force_update: Overwrite the cache even when within tolerance

        Returns:
            SyncResult; success=False carries the error message
        """
        try:
            reader = self._ledgers.get(chain_id)
            snapshot = await reader.read_order(on_chain_id)
            raw_amount = snapshot.remaining_amount

            order = await self._store.get_order(order_id)
            if order is None:
                raise RecordNotFound("orders", order_id)

            ledger_amount = snapshot.descaled(token_decimals)
            store_amount = order.remaining_amount
            divergence = abs(ledger_amount - store_amount)
            needs_sync = divergence > self._tolerance or force_update

            if not needs_sync:
                return SyncResult(
                    order_id=order_id,
                    on_chain_id=on_chain_id,
                    success=True,
                    updated=False,
                    ledger_amount=ledger_amount,
                    store_amount=store_amount,
                    divergence=divergence,
                    raw_ledger_amount=raw_amount,
                    timestamp=self._clock.now(),
                )

            synced_at = self._clock.now()
            await self._store.update_order(order_id, {
                "remaining_amount": ledger_amount,
                "last_sync_timestamp": synced_at,
                "sync_source": SYNC_SOURCE_LEDGER,
            })

            logger.info(
                f"Order {order_id} synced: store={store_amount} ledger={ledger_amount} "
                f"divergence={divergence}{' (forced)' if force_update else ''}"
            )

            return SyncResult(
                order_id=order_id,
                on_chain_id=on_chain_id,
                success=True,
                updated=True,
                ledger_amount=ledger_amount,
                store_amount=store_amount,
                divergence=divergence,
                raw_ledger_amount=raw_amount,
                timestamp=synced_at,
            )

        except (EscrowSyncError, ValueError) as e:
            message = e.message if isinstance(e, EscrowSyncError) else str(e)
            logger.warning(f"Reconciliation failed for order {order_id}: {message}")
            return SyncResult.failure(order_id, on_chain_id, message, self._clock.now())

    # --------------------------------------------------------
    # GROUPED
    # --------------------------------------------------------

    async def batch_reconcile(
        self,
        orders: Sequence[OrderRecord],
        force_update: bool = False,
    ) -> List[SyncResult]:
        """
        Reconcile orders in fixed-size groups.

        Orders within a group run concurrently; groups run one after
        another. Results keep the input order.
        """
        results: List[SyncResult] = []

        for start in range(0, len(orders), self._batch_size):
            group = orders[start:start + self._batch_size]
            outcomes = await asyncio.gather(
                *[
                    self.reconcile(
                        order.id,
                        order.on_chain_id,
                        order.token_decimals,
                        order.chain_id,
                        force_update=force_update,
                    )
                    for order in group
                ],
                return_exceptions=True,
            )

            for order, outcome in zip(group, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.error(
                        f"Unexpected error reconciling order {order.id}: {outcome}",
                        exc_info=outcome,
                    )
                    outcome = SyncResult.failure(
                        order.id, order.on_chain_id, str(outcome), self._clock.now()
                    )
                results.append(outcome)

        return results

    # --------------------------------------------------------
    # TRADE VALIDATION
    # --------------------------------------------------------

    async def validate_order_state(
        self,
        order_id: str,
        required_amount: Decimal,
    ) -> OrderValidation:
        """
        Check that the ledger still holds enough for a trade.

        Reconciles the order first so the cache reflects the ledger.
        """
        try:
            order = await self._store.get_order(order_id)
        except EscrowSyncError as e:
            return OrderValidation(valid=False, available_amount=Decimal("0"), error=e.message)

        if order is None:
            return OrderValidation(valid=False, available_amount=Decimal("0"), error="Order not found")

        result = await self.reconcile(
            order.id, order.on_chain_id, order.token_decimals, order.chain_id
        )
        if not result.success:
            return OrderValidation(valid=False, available_amount=Decimal("0"), error=result.error)

        available = result.ledger_amount
        if available < required_amount:
            return OrderValidation(
                valid=False,
                available_amount=available,
                error=f"Insufficient remaining amount. Available: {available}, Required: {required_amount}",
            )

        return OrderValidation(valid=True, available_amount=available)

    async def ensure_available(self, order_id: str, required_amount: Decimal) -> Decimal:
        """
        Like validate_order_state, but raises.

        Returns:
            The available ledger amount

        Raises:
            ValidationFailure: If the ledger holds less than required
            RecordNotFound: If the order does not exist
            LedgerUnavailable / PersistenceFailure: If it cannot be checked
        """
        order = await self._store.get_order(order_id)
        if order is None:
            raise RecordNotFound("orders", order_id)

        reader = self._ledgers.get(order.chain_id)
        snapshot = await reader.read_order(order.on_chain_id)
        available = snapshot.descaled(order.token_decimals)

        if available < required_amount:
            raise ValidationFailure(available, required_amount, order_id=order_id)
        return available
