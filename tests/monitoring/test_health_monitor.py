"""
Tests for HealthMonitor.
"""

import pytest

from monitoring.health_checks import HealthAggregator
from monitoring.health_monitor import HealthMonitor
from monitoring.models import HealthState
from monitoring.probes import HealthProbe, ProbeOutcome


class TogglingProbe(HealthProbe):
    def __init__(self, clock):
        super().__init__("store", clock)
        self.state = HealthState.HEALTHY

    async def _probe(self) -> ProbeOutcome:
        return ProbeOutcome(state=self.state)


@pytest.fixture
def probe(clock):
    return TogglingProbe(clock)


@pytest.fixture
def monitor(probe, metrics_sink, ticker, clock):
    aggregator = HealthAggregator([probe], metrics_sink, clock=clock)
    return HealthMonitor(aggregator, interval_seconds=60, ticker=ticker, clock=clock)


class TestHealthMonitor:
    """Tests for periodic health checking and its read operations."""

    @pytest.mark.asyncio
    async def test_no_health_before_first_check(self, monitor):
        assert monitor.get_current_health() is None
        assert monitor.get_health_history() == []
        assert monitor.get_uptime_stats().uptime_percentage == 0.0

        status = monitor.get_monitoring_status()
        assert not status.active
        assert status.last_check is None

    @pytest.mark.asyncio
    async def test_start_checks_immediately_then_every_interval(self, monitor, ticker, clock):
        assert await monitor.start() is True
        assert await monitor.start() is False
        await ticker.settle()

        assert len(monitor.get_health_history()) == 1
        assert monitor.get_monitoring_status().last_check == clock.now()

        await ticker.advance(120)
        await monitor.wait_idle()
        assert len(monitor.get_health_history()) == 3

        assert await monitor.stop() is True
        await ticker.advance(600)
        assert len(monitor.get_health_history()) == 3

    @pytest.mark.asyncio
    async def test_uptime_and_metrics(self, monitor, probe, clock):
        await monitor.check_now()
        probe.state = HealthState.CRITICAL
        clock.advance(60)
        await monitor.check_now()
        probe.state = HealthState.WARNING
        await monitor.check_now()

        stats = monitor.get_uptime_stats()
        assert stats.total_checks == 3
        assert stats.successful_checks == 2

        metrics = monitor.get_health_metrics()
        assert metrics.failed_checks == 1
        assert metrics.last_incident == clock.now()
        assert metrics.timestamp == clock.now()

    @pytest.mark.asyncio
    async def test_history_limit(self, monitor):
        for _ in range(4):
            await monitor.check_now()

        assert len(monitor.get_health_history(limit=2)) == 2
        assert monitor.get_health_history(limit=2)[-1] is monitor.get_current_health()
