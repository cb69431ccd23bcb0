"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base and common mixins used by the
escrow and monitoring ORM models.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- TimestampMixin: Common timestamp columns
- JsonDocument: JSON column type (JSONB on PostgreSQL)
- TokenAmount: Lossless Decimal column (NUMERIC(38, 18), TEXT on SQLite)
- AMOUNT_PRECISION: Shared TokenAmount instance used for token amounts

============================================================
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


# Portable JSON column; PostgreSQL gets JSONB.
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class TokenAmount(TypeDecorator):
    """
    Decimal token amount that survives a round trip exactly.

    PostgreSQL stores NUMERIC(38, 18): up to 20 integer digits with
    18 decimals. SQLite has no decimal storage and SQLAlchemy's Numeric
    passes through a float there, so the value is kept as plain text.
    """

    impl = Numeric(38, 18, asdecimal=True)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(80))
        return dialect.type_descriptor(Numeric(38, 18, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if dialect.name == "sqlite":
            return format(amount, "f")
        return amount

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(str(value))


AMOUNT_PRECISION = TokenAmount()


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    Decimal annotations map to the token amount type.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        Decimal: AMOUNT_PRECISION,
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last update timestamp (UTC)"
    )


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
