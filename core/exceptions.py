"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the domain exceptions for escrow reconciliation and
health monitoring.

- Provides a clear exception hierarchy
- Separates recovered-locally failures from hard failures
- Carries context for logging and alert payloads

============================================================
EXCEPTION HIERARCHY
============================================================
EscrowSyncError (base)
├── ConfigurationError
├── LedgerUnavailable
│   └── ChainNotSupported
├── RecordNotFound
├── PersistenceFailure
├── ValidationFailure
└── AtomicCommitError

Only AtomicCommitError is meant to reach the caller of a public
operation. The rest are converted into SyncResult / HealthStatus
values or logged by the component that observed them.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging and alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class EscrowSyncError(Exception):
    """
    Base exception for all reconciliation and monitoring errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(EscrowSyncError):
    """Error in configuration."""

    default_severity = Severity.HIGH

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]
        super().__init__(message, context=context, **kwargs)
        self.config_key = config_key


# ============================================================
# LEDGER ERRORS
# ============================================================

class LedgerUnavailable(EscrowSyncError):
    """The ledger RPC or contract call failed."""

    default_severity = Severity.HIGH

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if chain_id is not None:
            context["chain_id"] = chain_id
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context, **kwargs)
        self.chain_id = chain_id
        self.operation = operation


class ChainNotSupported(LedgerUnavailable):
    """No ledger reader is configured for the requested chain."""

    def __init__(self, chain_id: int):
        super().__init__(
            f"Unsupported chain ID: {chain_id}",
            chain_id=chain_id,
            operation="resolve_reader",
        )


# ============================================================
# STORE ERRORS
# ============================================================

class RecordNotFound(EscrowSyncError):
    """A store record expected to exist is absent."""

    default_severity = Severity.MEDIUM

    def __init__(self, collection: str, record_id: Any):
        super().__init__(
            f"{collection} record {record_id} not found",
            context={"collection": collection, "record_id": str(record_id)},
        )
        self.collection = collection
        self.record_id = record_id


class PersistenceKind(Enum):
    """Distinguishes why a sink write was rejected."""

    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class PersistenceFailure(EscrowSyncError):
    """A metrics/alert sink or store write failed."""

    default_severity = Severity.HIGH

    def __init__(
        self,
        message: str,
        kind: PersistenceKind = PersistenceKind.UNKNOWN,
        target: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["kind"] = kind.value
        if target:
            context["target"] = target
        super().__init__(message, context=context, **kwargs)
        self.kind = kind
        self.target = target


# ============================================================
# TRADE ERRORS
# ============================================================

class ValidationFailure(EscrowSyncError):
    """The ledger does not hold enough remaining amount for a trade."""

    default_severity = Severity.MEDIUM

    def __init__(self, available: Decimal, required: Decimal, order_id: Optional[str] = None):
        super().__init__(
            f"Insufficient remaining amount. Available: {available}, Required: {required}",
            context={
                "available": str(available),
                "required": str(required),
                "order_id": order_id,
            },
        )
        self.available = available
        self.required = required
        self.order_id = order_id


class AtomicCommitError(EscrowSyncError):
    """
    A trade + order-balance batch was rejected and rolled back.

    This is the only hard failure the subsystem surfaces.
    """

    default_severity = Severity.CRITICAL

    def __init__(self, message: str, trade_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if trade_id:
            context["trade_id"] = trade_id
        super().__init__(message, context=context, **kwargs)
        self.trade_id = trade_id


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "Severity",
    "EscrowSyncError",
    "ConfigurationError",
    "LedgerUnavailable",
    "ChainNotSupported",
    "RecordNotFound",
    "PersistenceKind",
    "PersistenceFailure",
    "ValidationFailure",
    "AtomicCommitError",
]
