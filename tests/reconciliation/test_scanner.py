"""
Tests for BatchScanner.
"""

from decimal import Decimal

import pytest

from core.constants import MONITORING_SNAPSHOT_KEY
from core.exceptions import PersistenceFailure, PersistenceKind
from reconciliation.classifier import AlertClassifier
from reconciliation.engine import ReconciliationEngine
from reconciliation.scanner import BatchScanner
from storage.records import OrderStatus
from tests.fakes import make_order


@pytest.fixture
def scanner(ledgers, store, metrics_sink, alert_sink, clock):
    engine = ReconciliationEngine(ledgers, store, clock=clock)
    classifier = AlertClassifier(alert_sink, clock=clock)
    return BatchScanner(store, engine, classifier, metrics_sink, clock=clock, history_size=3)


class TestScanActive:
    """Tests for scan_active()."""

    @pytest.mark.asyncio
    async def test_aggregates_results(self, scanner, ledger, store, metrics_sink, alert_sink):
        store.add(make_order("o1", 1, "100"))
        store.add(make_order("o2", 2, "50"))
        ledger.amounts[1] = 99_500_000

        metrics = await scanner.scan_active()

        assert metrics.total_orders == 2
        assert metrics.synced_orders == 1
        assert metrics.failed_orders == 1
        assert metrics.total_mismatches == 1
        assert metrics.average_divergence == Decimal("0.5")

        assert len(alert_sink.alerts) == 1
        assert alert_sink.alerts[0]["order_id"] == "o1"

    @pytest.mark.asyncio
    async def test_only_active_orders_are_scanned(self, scanner, ledger, store):
        store.add(make_order("open", 1, "1"))
        store.add(make_order("pending", 2, "1", status=OrderStatus.PENDING))
        store.add(make_order("closed", 3, "0", status=OrderStatus.CLOSED))
        ledger.amounts.update({1: 1_000_000, 2: 1_000_000, 3: 0})

        metrics = await scanner.scan_active()

        assert metrics.total_orders == 2
        assert sorted(ledger.read_calls) == [1, 2]

    @pytest.mark.asyncio
    async def test_persists_snapshot_with_merge(self, scanner, ledger, store, metrics_sink, clock):
        store.add(make_order("o1", 1, "100"))
        ledger.amounts[1] = 100_000_000
        metrics_sink.snapshots[MONITORING_SNAPSHOT_KEY] = {"owner_note": "kept"}

        metrics = await scanner.scan_active()

        write = metrics_sink.writes[-1]
        assert write["key"] == MONITORING_SNAPSHOT_KEY
        assert write["merge"] is True
        assert write["updated_at"] == clock.now()

        snapshot = metrics_sink.snapshots[MONITORING_SNAPSHOT_KEY]
        assert snapshot["owner_note"] == "kept"
        assert snapshot["last_sync_metrics"] == metrics.to_dict()
        assert snapshot["last_updated"] == clock.now().isoformat()

    @pytest.mark.asyncio
    async def test_no_active_orders(self, scanner, metrics_sink, alert_sink):
        metrics = await scanner.scan_active()

        assert metrics.total_orders == 0
        assert metrics.average_divergence == Decimal("0")
        assert metrics_sink.writes == []
        assert alert_sink.batches == []
        assert scanner.last_metrics is metrics

    @pytest.mark.asyncio
    async def test_query_failure_yields_empty_metrics(self, scanner, store, metrics_sink):
        store.query_error = PersistenceFailure("store down", kind=PersistenceKind.UNAVAILABLE)

        metrics = await scanner.scan_active()

        assert metrics.total_orders == 0
        assert metrics_sink.writes == []
        assert scanner.get_history() == [metrics]

    @pytest.mark.asyncio
    async def test_snapshot_failure_does_not_abort_scan(self, scanner, ledger, store, metrics_sink, alert_sink):
        store.add(make_order("o1", 1, "100"))
        ledger.amounts[1] = 90_000_000
        metrics_sink.error = PersistenceFailure("denied", kind=PersistenceKind.PERMISSION_DENIED)

        metrics = await scanner.scan_active()

        assert metrics.synced_orders == 1
        assert len(alert_sink.alerts) == 1

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, scanner, clock):
        for _ in range(5):
            await scanner.scan_active()
            clock.advance(60)

        history = scanner.get_history()
        assert len(history) == 3
        assert history[-1].timestamp == scanner.last_scan_at
        assert scanner.get_history(limit=1) == history[-1:]
        assert scanner.get_history(limit=0) == []
