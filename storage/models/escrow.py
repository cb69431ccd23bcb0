"""
Escrow Domain ORM Models.

============================================================
PURPOSE
============================================================
Off-chain cache of escrow orders and the trades executed
against them.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: OPERATIONAL
- Mutability: MUTABLE (orders), APPEND-ONLY (trades)
- Source: Order creation, trade creation, reconciliation
- Consumers: Trade flow, reconciliation scans

============================================================
MODELS
============================================================
- OrderModel: Cached sell order with remaining amount
- TradeModel: Trade against an order

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import AMOUNT_PRECISION, Base, JsonDocument, TimestampMixin, as_utc
from storage.records import OrderRecord, OrderStatus, TradeRecord


class OrderModel(Base, TimestampMixin):
    """
    Cached escrow order.

    ============================================================
    PURPOSE
    ============================================================
    Mirrors an order locked in the escrow contract. The
    remaining_amount column is a cache of the ledger value and
    is overwritten by reconciliation.

    ============================================================
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Order identifier in the store"
    )

    on_chain_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Order identifier in the escrow contract"
    )

    chain_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="EVM chain id of the escrow contract"
    )

    token_decimals: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Decimals of the escrowed token"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=OrderStatus.OPEN.value,
        comment="OPEN, PENDING, CLOSED, CANCELED"
    )

    remaining_amount: Mapped[Decimal] = mapped_column(
        AMOUNT_PRECISION,
        nullable=False,
        comment="Cached remaining amount in token units"
    )

    last_sync_timestamp: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When reconciliation last overwrote remaining_amount"
    )

    sync_source: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Origin of the last remaining_amount write"
    )

    last_updated: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When a trade last changed the balance"
    )

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_chain_on_chain_id", "chain_id", "on_chain_id"),
    )

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            id=self.id,
            on_chain_id=self.on_chain_id,
            token_decimals=self.token_decimals,
            chain_id=self.chain_id,
            status=OrderStatus(self.status),
            remaining_amount=Decimal(self.remaining_amount),
            last_sync_timestamp=as_utc(self.last_sync_timestamp),
            sync_source=self.sync_source,
            last_updated=as_utc(self.last_updated),
        )

    @classmethod
    def from_record(cls, record: OrderRecord) -> "OrderModel":
        return cls(
            id=record.id,
            on_chain_id=record.on_chain_id,
            chain_id=record.chain_id,
            token_decimals=record.token_decimals,
            status=record.status.value,
            remaining_amount=record.remaining_amount,
            last_sync_timestamp=record.last_sync_timestamp,
            sync_source=record.sync_source,
            last_updated=record.last_updated,
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.id} {self.status} remaining={self.remaining_amount}>"


class TradeModel(Base, TimestampMixin):
    """Trade executed against an order. Inserted atomically with its balance updates."""

    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Trade identifier"
    )

    order_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Order the trade consumes"
    )

    buyer_address: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Buyer wallet address"
    )

    amount: Mapped[Decimal] = mapped_column(
        AMOUNT_PRECISION,
        nullable=False,
        comment="Traded amount in token units"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="Trade status"
    )

    data: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JsonDocument,
        nullable=True,
        comment="Opaque trade payload"
    )

    def to_record(self) -> TradeRecord:
        return TradeRecord(
            id=self.id,
            order_id=self.order_id,
            buyer_address=self.buyer_address,
            amount=Decimal(self.amount),
            status=self.status,
            data=dict(self.data or {}),
            created_at=as_utc(self.created_at),
        )

    @classmethod
    def from_record(cls, record: TradeRecord) -> "TradeModel":
        return cls(
            id=record.id,
            order_id=record.order_id,
            buyer_address=record.buyer_address,
            amount=record.amount,
            status=record.status,
            data=dict(record.data),
        )
