"""
Shared fixtures.

All fixtures are in-memory; nothing here touches the network or disk.
"""

from datetime import datetime, timezone

import pytest

from core.clock import MockClock
from core.scheduler import ManualTicker
from ledger.registry import LedgerRegistry
from tests.fakes import (
    FakeLedgerReader,
    InMemoryStore,
    RecordingAlertSink,
    RecordingMetricsSink,
)


START_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Mock clock frozen at START_TIME."""
    return MockClock(START_TIME)


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def ledger(clock):
    return FakeLedgerReader(clock=clock)


@pytest.fixture
def ledgers(ledger):
    registry = LedgerRegistry()
    registry.register(ledger)
    return registry


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def metrics_sink():
    return RecordingMetricsSink()


@pytest.fixture
def alert_sink():
    return RecordingAlertSink()

