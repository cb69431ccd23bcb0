"""
Core Module Package.

This package contains the infrastructure components that the
ledger, storage, reconciliation and monitoring packages depend on.

Components:
- clock: Unified time abstraction
- scheduler: Periodic cycle driver with run-lock
- config: Dataclass configuration (env / YAML)
- exceptions: Domain exception hierarchy
- constants: Service-wide defaults
- logging_setup: Root logger configuration
"""

from .clock import ClockProtocol, MockClock, SystemClock
from .exceptions import (
    AtomicCommitError,
    ChainNotSupported,
    ConfigurationError,
    EscrowSyncError,
    LedgerUnavailable,
    PersistenceFailure,
    PersistenceKind,
    RecordNotFound,
    ValidationFailure,
)
from .scheduler import AsyncioTicker, ManualTicker, PeriodicScheduler, Ticker


__all__ = [
    # Clock
    "ClockProtocol",
    "SystemClock",
    "MockClock",

    # Scheduler
    "Ticker",
    "AsyncioTicker",
    "ManualTicker",
    "PeriodicScheduler",

    # Exceptions
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
