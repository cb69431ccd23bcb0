"""
Tests for HealthAggregator.
"""

import asyncio
import logging

import pytest

from core.constants import HEALTH_SNAPSHOT_KEY
from core.exceptions import PersistenceFailure, PersistenceKind
from monitoring.health_checks import HealthAggregator
from monitoring.history import HealthHistory
from monitoring.models import HealthState
from monitoring.probes import HealthProbe, ProbeOutcome


class StaticProbe(HealthProbe):
    """Probe reporting a configurable state after a configurable delay."""

    def __init__(self, name, state=HealthState.HEALTHY, clock=None, elapsed_seconds=0.0):
        super().__init__(name, clock)
        self.state = state
        self.elapsed_seconds = elapsed_seconds
        self.calls = 0

    async def _probe(self) -> ProbeOutcome:
        self.calls += 1
        if self.elapsed_seconds:
            self._clock.advance(self.elapsed_seconds)
        return ProbeOutcome(state=self.state)


class YieldingProbe(HealthProbe):
    """Yields to the loop mid-check and logs its start and end."""

    def __init__(self, name, events, clock=None):
        super().__init__(name, clock)
        self.events = events

    async def _probe(self) -> ProbeOutcome:
        self.events.append(f"start {self.name}")
        await asyncio.sleep(0)
        self.events.append(f"end {self.name}")
        return ProbeOutcome(state=HealthState.HEALTHY)


class HangingProbe(HealthProbe):
    async def _probe(self) -> ProbeOutcome:
        await asyncio.Event().wait()


@pytest.fixture
def probes(clock):
    return [StaticProbe("website", clock=clock), StaticProbe("store", clock=clock)]


@pytest.fixture
def aggregator(probes, metrics_sink, clock):
    return HealthAggregator(probes, metrics_sink, HealthHistory(max_size=5), clock)


class TestHealthAggregator:
    """Tests for HealthAggregator."""

    def test_duplicate_probe_names_rejected(self, clock):
        with pytest.raises(ValueError):
            HealthAggregator([StaticProbe("store", clock=clock), StaticProbe("store", clock=clock)])

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            HealthAggregator(probe_timeout_seconds=0)

    @pytest.mark.asyncio
    async def test_all_healthy(self, aggregator, clock):
        health = await aggregator.check_all()

        assert health.overall is HealthState.HEALTHY
        assert [s.component for s in health.services] == ["website", "store"]
        assert health.last_updated == clock.now()
        assert aggregator.get_last_health() is health

    @pytest.mark.asyncio
    async def test_critical_takes_precedence(self, aggregator, probes):
        probes[0].state = HealthState.WARNING
        probes[1].state = HealthState.CRITICAL

        health = await aggregator.check_all()

        assert health.overall is HealthState.CRITICAL

    @pytest.mark.asyncio
    async def test_unknown_components_do_not_degrade(self, aggregator, probes):
        probes[0].state = HealthState.UNKNOWN

        health = await aggregator.check_all()

        assert health.overall is HealthState.HEALTHY
        assert health.component("website").status is HealthState.UNKNOWN

    @pytest.mark.asyncio
    async def test_performance_summary(self, clock, metrics_sink):
        aggregator = HealthAggregator(
            [
                StaticProbe("fast", clock=clock, elapsed_seconds=0.01),
                StaticProbe("slow", clock=clock, elapsed_seconds=0.03),
            ],
            metrics_sink,
            clock=clock,
        )

        health = await aggregator.check_all()

        assert health.performance.slowest_component == "slow"
        assert health.performance.fastest_component == "fast"

    @pytest.mark.asyncio
    async def test_probe_timeout_is_critical(self, clock):
        aggregator = HealthAggregator(
            [StaticProbe("store", clock=clock), HangingProbe("ledger", clock)],
            clock=clock,
            probe_timeout_seconds=0.05,
        )

        health = await aggregator.check_all()

        ledger = health.component("ledger")
        assert ledger.status is HealthState.CRITICAL
        assert ledger.error == "timed out after 0.05s"
        assert ledger.response_time_ms == 50.0
        assert health.component("store").status is HealthState.HEALTHY
        assert health.overall is HealthState.CRITICAL

    @pytest.mark.asyncio
    async def test_snapshot_overwrites_previous(self, aggregator, metrics_sink, clock):
        metrics_sink.snapshots[HEALTH_SNAPSHOT_KEY] = {"stale": True}

        health = await aggregator.check_all()

        write = metrics_sink.writes[-1]
        assert write["key"] == HEALTH_SNAPSHOT_KEY
        assert write["merge"] is False
        assert write["updated_at"] == clock.now()
        assert metrics_sink.snapshots[HEALTH_SNAPSHOT_KEY] == health.to_dict()

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged(self, aggregator, metrics_sink, caplog):
        metrics_sink.error = PersistenceFailure(
            "store offline", kind=PersistenceKind.UNAVAILABLE, target="system_metrics"
        )

        with caplog.at_level(logging.ERROR):
            health = await aggregator.check_all()

        assert health.overall is HealthState.HEALTHY
        assert len(aggregator.history) == 1
        assert "Store unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, aggregator):
        for _ in range(7):
            await aggregator.check_all()

        assert len(aggregator.history) == 5

    @pytest.mark.asyncio
    async def test_logs_state_transition(self, aggregator, probes, caplog):
        await aggregator.check_all()
        probes[1].state = HealthState.CRITICAL

        with caplog.at_level(logging.WARNING):
            await aggregator.check_all()

        assert "healthy -> critical" in caplog.text
        assert "store" in caplog.text

    @pytest.mark.asyncio
    async def test_check_component_unknown_name(self, aggregator):
        with pytest.raises(KeyError):
            await aggregator.check_component("missing")

    @pytest.mark.asyncio
    async def test_probes_run_one_at_a_time(self, clock):
        events = []
        aggregator = HealthAggregator(
            [YieldingProbe(name, events, clock) for name in ("website", "store", "ledger")],
            clock=clock,
        )

        health = await aggregator.check_all()

        assert events == [
            "start website", "end website",
            "start store", "end store",
            "start ledger", "end ledger",
        ]
        assert [s.component for s in health.services] == ["website", "store", "ledger"]
