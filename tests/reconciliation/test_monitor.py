"""
Tests for ReconciliationMonitor.
"""

import asyncio

import pytest

from reconciliation.classifier import AlertClassifier
from reconciliation.engine import ReconciliationEngine
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.scanner import BatchScanner
from tests.fakes import make_order


@pytest.fixture
def monitor(ledgers, store, metrics_sink, alert_sink, ticker, clock):
    engine = ReconciliationEngine(ledgers, store, clock=clock)
    scanner = BatchScanner(store, engine, AlertClassifier(alert_sink, clock=clock), metrics_sink, clock=clock)
    return ReconciliationMonitor(scanner, interval_seconds=300, ticker=ticker, clock=clock)


class TestReconciliationMonitor:
    """Tests for the monitoring control surface."""

    @pytest.mark.asyncio
    async def test_start_scans_immediately(self, monitor, store, ticker, clock):
        assert await monitor.start_monitoring() is True
        await ticker.settle()

        status = monitor.get_monitoring_status()
        assert status.active
        assert status.last_scan == clock.now()
        assert status.interval_seconds == 300
        assert store.query_calls == 1

        await monitor.stop_monitoring()

    @pytest.mark.asyncio
    async def test_double_start_keeps_one_timer(self, monitor, store, ticker):
        await monitor.start_monitoring()
        assert await monitor.start_monitoring() is False
        await ticker.settle()

        assert ticker.pending == 1

        await ticker.advance(300)
        await monitor.wait_idle()
        assert store.query_calls == 2

        await monitor.stop_monitoring()

    @pytest.mark.asyncio
    async def test_stop_cancels_further_scans(self, monitor, store, ticker):
        await monitor.start_monitoring(interval_seconds=60)
        await ticker.settle()

        assert await monitor.stop_monitoring() is True
        assert await monitor.stop_monitoring() is False

        await ticker.advance(600)
        assert store.query_calls == 1
        assert not monitor.get_monitoring_status().active

    @pytest.mark.asyncio
    async def test_manual_scan_works_while_stopped(self, monitor, ledger, store):
        store.add(make_order("o1", 1, "100"))
        ledger.amounts[1] = 99_000_000

        metrics = await monitor.trigger_manual_scan()

        assert metrics.synced_orders == 1
        assert monitor.get_scan_history() == [metrics]
        assert not monitor.get_monitoring_status().active

    @pytest.mark.asyncio
    async def test_manual_scans_do_not_overlap(self, monitor, store, ticker):
        gate = asyncio.Event()
        in_flight = []
        original = store.find_orders_by_status

        async def slow_query(statuses):
            in_flight.append(True)
            assert len(in_flight) == 1
            await gate.wait()
            in_flight.pop()
            return await original(statuses)

        store.find_orders_by_status = slow_query

        first = asyncio.create_task(monitor.trigger_manual_scan())
        second = asyncio.create_task(monitor.trigger_manual_scan())
        await ticker.settle()
        assert monitor.get_monitoring_status().scan_in_progress

        gate.set()
        await asyncio.gather(first, second)
        assert len(monitor.get_scan_history()) == 2

    @pytest.mark.asyncio
    async def test_status_serializes(self, monitor, ticker):
        await monitor.trigger_manual_scan()
        data = monitor.get_monitoring_status().to_dict()

        assert data["active"] is False
        assert data["last_metrics"]["total_orders"] == 0
        assert data["scheduler"]["name"] == "reconciliation"
