"""
Tests for the monitoring HTTP API.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from aiohttp import test_utils

from monitoring.api import BadRequest, MonitoringAPI, create_monitoring_app, parse_trade_request
from monitoring.health_checks import HealthAggregator
from monitoring.health_monitor import HealthMonitor
from monitoring.models import HealthState
from monitoring.probes import HealthProbe, ProbeOutcome
from reconciliation.classifier import AlertClassifier
from reconciliation.coordinator import AtomicMutationCoordinator
from reconciliation.engine import ReconciliationEngine
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.scanner import BatchScanner
from storage.records import OrderStatus
from tests.fakes import make_order


class HealthyProbe(HealthProbe):
    async def _probe(self) -> ProbeOutcome:
        return ProbeOutcome(state=HealthState.HEALTHY)


def trade_body(amount="10", updates=None, validate=False):
    return {
        "trade": {
            "id": "t1",
            "order_id": "o1",
            "buyer_address": "0x" + "ee" * 20,
            "amount": amount,
        },
        "order_updates": updates if updates is not None else [
            {"order_id": "o1", "remaining_amount": "90"},
        ],
        "validate": validate,
    }


@pytest.fixture
def monitors(ledgers, store, metrics_sink, alert_sink, ticker, clock):
    engine = ReconciliationEngine(ledgers, store, clock=clock)
    scanner = BatchScanner(store, engine, AlertClassifier(alert_sink, clock=clock), metrics_sink, clock=clock)
    reconciliation = ReconciliationMonitor(scanner, interval_seconds=300, ticker=ticker, clock=clock)
    health = HealthMonitor(
        HealthAggregator([HealthyProbe("store", clock)], metrics_sink, clock=clock),
        interval_seconds=60,
        ticker=ticker,
        clock=clock,
    )
    return engine, reconciliation, health


@pytest_asyncio.fixture
async def client(monitors, store, clock):
    engine, reconciliation, health = monitors
    api = MonitoringAPI(
        reconciliation,
        health,
        AtomicMutationCoordinator(store, clock=clock),
        engine=engine,
        clock=clock,
    )
    client = test_utils.TestClient(test_utils.TestServer(create_monitoring_app(api)))
    await client.start_server()
    yield client
    await reconciliation.stop_monitoring()
    await client.close()


# ============================================================
# REQUEST PARSING
# ============================================================

class TestParseTradeRequest:
    """Tests for parse_trade_request()."""

    def test_parses_trade_and_updates(self):
        trade, updates, validate = parse_trade_request(trade_body(validate=True))

        assert trade.amount == Decimal("10")
        assert trade.status == "PENDING"
        assert updates[0].remaining_amount == Decimal("90")
        assert validate is True

    @pytest.mark.parametrize("body", [
        [],
        {},
        {"trade": {"id": "t1"}},
        {"trade": trade_body()["trade"], "order_updates": "o1"},
        {"trade": dict(trade_body()["trade"], amount="ten")},
    ])
    def test_rejects_malformed_bodies(self, body):
        with pytest.raises(BadRequest):
            parse_trade_request(body)


# ============================================================
# MONITORING CONTROL
# ============================================================

class TestMonitoringControl:
    """Tests for POST/GET /api/monitoring."""

    @pytest.mark.asyncio
    async def test_start_then_status(self, client):
        response = await client.post("/api/monitoring", json={"action": "start", "interval_seconds": 120})
        data = await response.json()
        assert response.status == 200
        assert data == {"success": True, "message": "Monitoring started"}

        response = await client.post("/api/monitoring", json={"action": "start"})
        assert (await response.json())["message"] == "Monitoring already running"

        response = await client.get("/api/monitoring")
        data = await response.json()
        assert data["is_active"] is True
        assert data["last_scan"] is not None
        assert data["status"]["interval_seconds"] == 120

    @pytest.mark.asyncio
    async def test_stop(self, client):
        await client.post("/api/monitoring", json={"action": "start"})

        response = await client.post("/api/monitoring", json={"action": "stop"})
        data = await response.json()

        assert data["message"] == "Monitoring stopped"
        status = await (await client.post("/api/monitoring", json={"action": "status"})).json()
        assert status["is_active"] is False

    @pytest.mark.asyncio
    async def test_manual_scan_returns_metrics(self, client, ledger, store):
        store.add(make_order("o1", 1, "100"))
        ledger.amounts[1] = 99_500_000

        response = await client.post("/api/monitoring", json={"action": "scan"})
        data = await response.json()

        assert data["message"] == "Manual scan completed"
        assert data["metrics"]["synced_orders"] == 1
        assert data["metrics"]["average_divergence"] == "0.5"

    @pytest.mark.asyncio
    async def test_invalid_action(self, client):
        response = await client.post("/api/monitoring", json={"action": "restart"})
        assert response.status == 400
        assert await response.json() == {"success": False, "message": "Invalid action"}

    @pytest.mark.asyncio
    async def test_non_json_body(self, client):
        response = await client.post("/api/monitoring", data="start")
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_invalid_interval(self, client):
        response = await client.post("/api/monitoring", json={"action": "start", "interval_seconds": -1})
        assert response.status == 400


# ============================================================
# TRADES
# ============================================================

class TestCommitTrade:
    """Tests for POST /api/trades."""

    @pytest.mark.asyncio
    async def test_commit(self, client, store):
        store.add(make_order("o1", 1, "100"))

        response = await client.post("/api/trades", json=trade_body())
        data = await response.json()

        assert response.status == 201
        assert data["trade_id"] == "t1"
        assert data["updated_orders"] == ["o1"]
        assert store.orders["o1"].remaining_amount == Decimal("90")

    @pytest.mark.asyncio
    async def test_commit_closing_order(self, client, store):
        store.add(make_order("o1", 1, "10"))

        response = await client.post(
            "/api/trades",
            json=trade_body(updates=[{"order_id": "o1", "remaining_amount": "0"}]),
        )

        assert (await response.json())["closed_orders"] == ["o1"]
        assert store.orders["o1"].status is OrderStatus.CLOSED

    @pytest.mark.asyncio
    async def test_rejected_commit_is_conflict(self, client, store):
        response = await client.post(
            "/api/trades",
            json=trade_body(updates=[{"order_id": "ghost", "remaining_amount": "1"}]),
        )
        data = await response.json()

        assert response.status == 409
        assert data["error"]["type"] == "AtomicCommitError"
        assert store.trades == {}

    @pytest.mark.asyncio
    async def test_validation_against_ledger(self, client, ledger, store):
        store.add(make_order("o1", 1, "100"))
        ledger.amounts[1] = 5_000_000

        response = await client.post("/api/trades", json=trade_body(validate=True))
        data = await response.json()

        assert response.status == 409
        assert data["error"]["type"] == "ValidationFailure"
        assert store.trades == {}
        assert store.orders["o1"].remaining_amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_validation_of_unknown_order(self, client):
        response = await client.post("/api/trades", json=trade_body(validate=True))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_validation_with_ledger_down(self, client, store):
        store.add(make_order("o1", 1, "100"))

        response = await client.post("/api/trades", json=trade_body(validate=True))
        assert response.status == 503

    @pytest.mark.asyncio
    async def test_bad_body(self, client):
        response = await client.post("/api/trades", json={"trade": {}})
        assert response.status == 400


# ============================================================
# HEALTH
# ============================================================

class TestHealthEndpoints:
    """Tests for the /api/health routes."""

    @pytest.mark.asyncio
    async def test_liveness(self, client, clock):
        response = await client.get("/api/health")
        data = await response.json()

        assert data["status"] == "healthy"
        assert data["timestamp"] == clock.now().isoformat()

    @pytest.mark.asyncio
    async def test_liveness_answers_head(self, client):
        response = await client.head("/api/health")
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_system_health_before_and_after_refresh(self, client):
        data = await (await client.get("/api/health/system")).json()
        assert data["data"] is None

        data = await (await client.get("/api/health/system?refresh=true")).json()
        assert data["data"]["overall"] == "healthy"
        assert data["data"]["services"][0]["component"] == "store"
        assert data["monitoring"]["last_check"] is not None

    @pytest.mark.asyncio
    async def test_history_uptime_and_metrics(self, client):
        for _ in range(3):
            await client.get("/api/health/system?refresh=true")

        history = await (await client.get("/api/health/history?limit=2")).json()
        assert len(history["data"]) == 2

        uptime = await (await client.get("/api/health/uptime")).json()
        assert uptime["data"]["uptime_percentage"] == 100.0
        assert uptime["data"]["total_checks"] == 3

        metrics = await (await client.get("/api/health/metrics")).json()
        assert metrics["data"]["failed_checks"] == 0
        assert metrics["data"]["last_incident"] is None

    @pytest.mark.asyncio
    async def test_bad_history_limit(self, client):
        response = await client.get("/api/health/history?limit=abc")
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_alerts_without_sink(self, client):
        data = await (await client.get("/api/alerts")).json()
        assert data == {"success": True, "data": []}
