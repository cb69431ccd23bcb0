"""
Tests for the SQL metrics and alert sinks.
"""

import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from core.exceptions import PersistenceFailure, PersistenceKind
from storage.sinks import SqlAlertSink, SqlMetricsSink, log_sink_failure
from tests.conftest import START_TIME


def alert(order_id: str, severity: str = "high", minutes: int = 0, resolved: bool = False) -> dict:
    return {
        "type": "balance_mismatch",
        "order_id": order_id,
        "on_chain_id": 7,
        "store_amount": Decimal("100"),
        "ledger_amount": Decimal("99.5"),
        "divergence": Decimal("0.5"),
        "severity": severity,
        "timestamp": START_TIME + timedelta(minutes=minutes),
        "resolved": resolved,
    }


class TestSqlMetricsSink:
    """Tests for SqlMetricsSink."""

    @pytest.mark.asyncio
    async def test_merge_keeps_other_fields(self, database):
        sink = SqlMetricsSink(database)

        await sink.write_snapshot("monitoring", {"a": 1, "b": 1}, updated_at=START_TIME)
        await sink.write_snapshot("monitoring", {"b": 2}, updated_at=START_TIME, merge=True)

        assert await sink.read_snapshot("monitoring") == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_overwrite_replaces_document(self, database):
        sink = SqlMetricsSink(database)

        await sink.write_snapshot("health", {"overall": "healthy", "extra": True}, updated_at=START_TIME)
        await sink.write_snapshot("health", {"overall": "critical"}, updated_at=START_TIME, merge=False)

        assert await sink.read_snapshot("health") == {"overall": "critical"}

    @pytest.mark.asyncio
    async def test_missing_snapshot(self, database):
        assert await SqlMetricsSink(database).read_snapshot("nothing") is None


class TestSqlAlertSink:
    """Tests for SqlAlertSink."""

    @pytest.mark.asyncio
    async def test_write_and_list_newest_first(self, database):
        sink = SqlAlertSink(database)

        await sink.write_alerts([alert("o1", minutes=0), alert("o2", "medium", minutes=5)])

        alerts = await sink.list_alerts()
        assert [a["order_id"] for a in alerts] == ["o2", "o1"]
        assert alerts[0]["severity"] == "medium"
        assert Decimal(alerts[1]["divergence"]) == Decimal("0.5")
        assert alerts[1]["timestamp"] == START_TIME.isoformat()

    @pytest.mark.asyncio
    async def test_filter_resolved_and_limit(self, database):
        sink = SqlAlertSink(database)
        await sink.write_alerts([
            alert("o1", minutes=1),
            alert("o2", minutes=2, resolved=True),
            alert("o3", minutes=3),
        ])

        unresolved = await sink.list_alerts(resolved=False)
        assert [a["order_id"] for a in unresolved] == ["o3", "o1"]
        assert len(await sink.list_alerts(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_empty_write_is_noop(self, database):
        sink = SqlAlertSink(database)
        await sink.write_alerts([])
        assert await sink.list_alerts() == []

    @pytest.mark.asyncio
    async def test_rejected_batch_stores_nothing(self, database):
        sink = SqlAlertSink(database)
        bad = alert("o2")
        bad["severity"] = None

        with pytest.raises(PersistenceFailure):
            await sink.write_alerts([alert("o1"), bad])

        assert await sink.list_alerts() == []


class TestLogSinkFailure:
    """Tests for log_sink_failure()."""

    @pytest.mark.parametrize("kind,expected", [
        (PersistenceKind.PERMISSION_DENIED, "Permission denied"),
        (PersistenceKind.UNAVAILABLE, "Store unavailable"),
        (PersistenceKind.UNKNOWN, "Failed to write"),
    ])
    def test_message_by_kind(self, caplog, kind, expected):
        log = logging.getLogger("test.sinks")
        error = PersistenceFailure("rejected", kind=kind, target="alerts")

        with caplog.at_level(logging.ERROR):
            log_sink_failure(log, error, "2 alerts")

        assert expected in caplog.text
        assert "rejected" in caplog.text
