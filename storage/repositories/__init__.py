"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to the SQL tables.
SqlOffchainStore and the SQL sinks go through these classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per domain
2. Session Injection: AsyncSessions are injected, not created internally
3. Explicit Methods: clear method names, no generic execute
4. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
USAGE
============================================================

    async with database.transaction() as session:
        orders = OrderRepository(session)
        await orders.update_fields("order-1", {"remaining_amount": Decimal("5")})

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.escrow import OrderRepository, TradeRepository
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    PermissionDeniedError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)
from storage.repositories.monitoring import MonitoringRepository


__all__ = [
    # Base
    "BaseRepository",

    # Repositories
    "OrderRepository",
    "TradeRepository",
    "MonitoringRepository",

    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "ConnectionError",
    "PermissionDeniedError",
    "QueryError",
]
