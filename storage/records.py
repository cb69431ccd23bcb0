"""
Store Records - Plain data shapes exchanged with the off-chain store.

These are what the reconciliation and coordinator code see; ORM
models stay behind the SQL store implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from core.constants import DEFAULT_CHAIN_ID


class OrderStatus(str, Enum):
    """Lifecycle status of a sell order."""
    OPEN = "OPEN"
    PENDING = "PENDING"
    CLOSED = "CLOSED"
    CANCELED = "CANCELED"

    @classmethod
    def active(cls) -> tuple["OrderStatus", ...]:
        """Statuses a reconciliation scan covers."""
        return (cls.OPEN, cls.PENDING)


@dataclass
class OrderRecord:
    """
    Cached view of an escrow order.

    remaining_amount is in token units and may drift from the ledger;
    the reconciliation engine corrects it.
    """
    id: str
    on_chain_id: int
    token_decimals: int
    chain_id: int = DEFAULT_CHAIN_ID
    status: OrderStatus = OrderStatus.OPEN
    remaining_amount: Decimal = Decimal("0")
    last_sync_timestamp: Optional[datetime] = None
    sync_source: Optional[str] = None
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "on_chain_id": self.on_chain_id,
            "token_decimals": self.token_decimals,
            "chain_id": self.chain_id,
            "status": self.status.value,
            "remaining_amount": str(self.remaining_amount),
            "last_sync_timestamp": self.last_sync_timestamp.isoformat() if self.last_sync_timestamp else None,
            "sync_source": self.sync_source,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass
class TradeRecord:
    """A trade against an order. data carries the caller's extra fields."""
    id: str
    order_id: str
    buyer_address: str
    amount: Decimal
    status: str = "PENDING"
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "buyer_address": self.buyer_address,
            "amount": str(self.amount),
            "status": self.status,
            "data": dict(self.data),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
