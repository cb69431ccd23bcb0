"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Every SQLAlchemy error raised inside a repository is wrapped in
one of these. Each carries a `kind` that the store and sinks
forward into PersistenceFailure:

- PermissionDeniedError -> permission_denied
- ConnectionError       -> unavailable
- everything else       -> unknown

============================================================
"""

from typing import Any, Optional

from core.exceptions import PersistenceKind


class RepositoryException(Exception):
    """Base exception for all repository operations."""

    kind: PersistenceKind = PersistenceKind.UNKNOWN
    prefix: str = ""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str = "",
        details: Optional[dict] = None
    ) -> None:
        self.repository_name = repository_name
        self.operation = operation
        self.message = f"{self.prefix}{original_error}"
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {self.message}")


class RecordNotFoundError(RepositoryException):
    """An update matched no row."""

    def __init__(self, repository_name: str, record_id: Any, operation: str) -> None:
        super().__init__(
            repository_name,
            operation,
            f"no record with id={record_id}",
            details={"id": str(record_id)},
        )
        self.record_id = record_id


class DuplicateRecordError(RepositoryException):
    """A unique constraint rejected an insert (e.g. a replayed trade id)."""

    prefix = "Duplicate record: "


class ConnectionError(RepositoryException):
    """The database could not be reached (refused, timed out, file locked)."""

    kind = PersistenceKind.UNAVAILABLE
    prefix = "Database connection failed: "


class PermissionDeniedError(RepositoryException):
    """The database refused the operation for the current role."""

    kind = PersistenceKind.PERMISSION_DENIED
    prefix = "Permission denied: "


class QueryError(RepositoryException):
    """A statement failed for any other reason."""

    prefix = "Query failed: "
