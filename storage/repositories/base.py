"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories including:
- Async session handling
- Error handling wrappers
- Common query operations
- Logging setup

============================================================
USAGE
============================================================
All domain repositories inherit from BaseRepository.
The AsyncSession is injected via constructor; transaction
boundaries belong to the caller (Database.transaction()).

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    PermissionDeniedError,
    QueryError,
    RepositoryException,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)

# Driver messages that mean the role lacks rights rather than the server being down
_PERMISSION_MARKERS = (
    "permission denied",
    "insufficient privilege",
    "readonly database",
    "read-only",
    "not authorized",
)


def _classify(error: Exception, lowered: str) -> Type[RepositoryException]:
    """Pick the repository exception for a SQLAlchemy error."""
    if isinstance(error, DBAPIError) and any(m in lowered for m in _PERMISSION_MARKERS):
        return PermissionDeniedError
    if isinstance(error, OperationalError) or (
        isinstance(error, DBAPIError) and error.connection_invalidated
    ):
        return ConnectionError
    if isinstance(error, SQLAlchemyIntegrityError) and ("duplicate" in lowered or "unique" in lowered):
        return DuplicateRecordError
    return QueryError


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Provides common CRUD patterns
    - Wraps database errors in repository exceptions
    - Manages logging for all operations

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: AsyncSession):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: AsyncSession,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy async session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> NoReturn:
        """
        Handle database errors by wrapping in repository exceptions.

        Args:
            error: The original exception
            operation: Name of the operation that failed
            context: Additional context for logging

        Raises:
            RepositoryException: Always raises appropriate exception
        """
        context = context or {}
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
        )

        message = str(error)
        raise _classify(error, message.lower())(
            repository_name=self._repository_name,
            operation=operation,
            original_error=message,
            details=context,
        ) from error

    async def _add(self, entity: T) -> T:
        try:
            self._session.add(entity)
            await self._session.flush()
            self._logger.debug(f"Added entity: {entity}")
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add", {"entity": str(entity)})

    async def _add_all(self, entities: List[T]) -> None:
        try:
            self._session.add_all(entities)
            await self._session.flush()
            self._logger.debug(f"Added {len(entities)} entities")
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add_all", {"count": len(entities)})

    async def _get_by_id(self, record_id: Any) -> Optional[T]:
        try:
            return await self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": str(record_id)})

    async def _execute_query(self, stmt: Any) -> List[T]:
        try:
            result = await self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")

    async def _execute(self, stmt: Any, operation: str) -> Any:
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
