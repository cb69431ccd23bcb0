"""
Off-chain Store Interface.

============================================================
PURPOSE
============================================================
Abstract document-store operations the reconciliation subsystem
consumes:

- query:  find_orders_by_status
- get:    get_order
- update: update_order
- atomic: batch_write (all operations or none)
- ping:   liveness probe for health checks

============================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from storage.records import OrderRecord, OrderStatus, TradeRecord


# Order fields writers are allowed to touch.
ORDER_UPDATE_FIELDS = frozenset({
    "remaining_amount",
    "status",
    "last_updated",
    "last_sync_timestamp",
    "sync_source",
})


# ============================================================
# WRITE OPERATIONS
# ============================================================

@dataclass(frozen=True)
class InsertTrade:
    """Insert a new trade record."""
    trade: TradeRecord


@dataclass(frozen=True)
class UpdateOrder:
    """Update fields of an existing order. The order must exist."""
    order_id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.fields) - ORDER_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported order fields: {sorted(unknown)}")


WriteOperation = Union[InsertTrade, UpdateOrder]


# ============================================================
# STORE INTERFACE
# ============================================================

class OffchainStore(ABC):
    """
    Abstract off-chain store.

    Implementations raise RecordNotFound for updates of missing
    orders and PersistenceFailure for rejected writes.
    """

    @abstractmethod
    async def find_orders_by_status(
        self,
        statuses: Sequence[OrderStatus],
    ) -> List[OrderRecord]:
        """Return every order whose status is in statuses."""
        pass

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[OrderRecord]:
        """Return an order, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_order(self, order_id: str, fields: Mapping[str, Any]) -> None:
        """
        Update fields of a single order.

        Raises:
            RecordNotFound: If the order does not exist
            PersistenceFailure: If the write is rejected
        """
        pass

    @abstractmethod
    async def batch_write(self, operations: Sequence[WriteOperation]) -> None:
        """
        Apply every operation atomically.

        Either all operations become visible or none do.

        Raises:
            RecordNotFound: If an UpdateOrder targets a missing order
            PersistenceFailure: If the batch is rejected
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """
        Perform a trivial read.

        Raises:
            PersistenceFailure: If the store is unreachable
        """
        pass
