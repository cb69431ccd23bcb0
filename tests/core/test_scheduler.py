"""
Tests for PeriodicScheduler and ManualTicker.
"""

import asyncio

import pytest

from core.scheduler import ManualTicker, PeriodicScheduler


class CountingCycle:
    """Cycle callable that counts runs and can be held open."""

    def __init__(self):
        self.runs = 0
        self.gate = None
        self.error = None

    async def __call__(self):
        self.runs += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.runs


@pytest.fixture
def cycle():
    return CountingCycle()


@pytest.fixture
def scheduler(cycle, ticker, clock):
    return PeriodicScheduler("test", cycle, interval_seconds=10, ticker=ticker, clock=clock)


# ============================================================
# MANUAL TICKER
# ============================================================

class TestManualTicker:
    """Tests for the virtual-time ticker."""

    @pytest.mark.asyncio
    async def test_sleep_completes_only_when_due(self):
        ticker = ManualTicker()
        task = asyncio.create_task(ticker.sleep(5))
        await ticker.settle()

        await ticker.advance(4)
        assert not task.done()

        await ticker.advance(1)
        assert task.done()
        assert ticker.now == 5

    @pytest.mark.asyncio
    async def test_wakes_in_deadline_order(self):
        ticker = ManualTicker()
        woken = []

        async def sleeper(name, seconds):
            await ticker.sleep(seconds)
            woken.append(name)

        tasks = [
            asyncio.create_task(sleeper("late", 3)),
            asyncio.create_task(sleeper("early", 1)),
        ]
        await ticker.settle()
        await ticker.advance(5)
        await asyncio.gather(*tasks)

        assert woken == ["early", "late"]
        assert ticker.pending == 0


# ============================================================
# SCHEDULER
# ============================================================

class TestPeriodicScheduler:
    """Tests for PeriodicScheduler."""

    def test_rejects_non_positive_interval(self, cycle, ticker):
        with pytest.raises(ValueError):
            PeriodicScheduler("bad", cycle, interval_seconds=0, ticker=ticker)

    @pytest.mark.asyncio
    async def test_start_runs_one_cycle_immediately(self, scheduler, cycle, ticker, clock):
        assert await scheduler.start() is True
        await ticker.settle()

        assert cycle.runs == 1
        assert scheduler.is_running
        assert scheduler.last_result == 1
        assert scheduler.last_run_at == clock.now()

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_double_start_keeps_single_timer(self, scheduler, cycle, ticker):
        await scheduler.start()
        assert await scheduler.start() is False
        await ticker.settle()

        assert ticker.pending == 1
        assert cycle.runs == 1

        await ticker.advance(10)
        await scheduler.wait_idle()
        assert cycle.runs == 2

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_runs_every_interval(self, scheduler, cycle, ticker):
        await scheduler.start()
        await ticker.settle()

        await ticker.advance(30)
        await scheduler.wait_idle()

        assert cycle.runs == 4
        assert scheduler.status()["runs"] == 4

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_overrides_interval(self, scheduler, cycle, ticker):
        await scheduler.start(interval_seconds=2)
        await ticker.settle()
        await ticker.advance(4)
        await scheduler.wait_idle()

        assert scheduler.interval_seconds == 2
        assert cycle.runs == 3

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self, scheduler, cycle, ticker):
        await scheduler.start()
        await ticker.settle()

        assert await scheduler.stop() is True
        assert await scheduler.stop() is False
        assert ticker.pending == 0

        await ticker.advance(100)
        assert cycle.runs == 1
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, scheduler, cycle, ticker):
        await scheduler.start()
        await ticker.settle()

        cycle.gate = asyncio.Event()
        manual = asyncio.create_task(scheduler.run_now())
        await ticker.settle()
        assert scheduler.cycle_in_progress

        await ticker.advance(10)
        assert scheduler.status()["skipped"] == 1
        assert cycle.runs == 2

        cycle.gate.set()
        assert await manual == 2
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_run_now_waits_for_running_cycle(self, scheduler, cycle, ticker):
        cycle.gate = asyncio.Event()
        first = asyncio.create_task(scheduler.run_now())
        await ticker.settle()
        second = asyncio.create_task(scheduler.run_now())
        await ticker.settle()

        assert cycle.runs == 1

        cycle.gate.set()
        assert await first == 1
        assert await second == 2

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_cycle_finish(self, scheduler, cycle, ticker):
        await scheduler.start()
        await ticker.settle()

        cycle.gate = asyncio.Event()
        await ticker.advance(10)
        assert scheduler.cycle_in_progress

        await scheduler.stop()
        cycle.gate.set()
        await scheduler.wait_idle()

        assert cycle.runs == 2
        assert scheduler.last_result == 2

    @pytest.mark.asyncio
    async def test_timer_cycle_failure_keeps_running(self, scheduler, cycle, ticker):
        await scheduler.start()
        await ticker.settle()

        cycle.error = RuntimeError("boom")
        await ticker.advance(10)
        await scheduler.wait_idle()

        assert scheduler.is_running
        assert scheduler.status()["failures"] == 1

        cycle.error = None
        await ticker.advance(10)
        await scheduler.wait_idle()
        assert scheduler.last_result == 3

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_run_now_propagates_failure(self, scheduler, cycle):
        cycle.error = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            await scheduler.run_now()

    @pytest.mark.asyncio
    async def test_independent_schedulers_run_concurrently(self, ticker, clock):
        first, second = CountingCycle(), CountingCycle()
        a = PeriodicScheduler("a", first, interval_seconds=5, ticker=ticker, clock=clock)
        b = PeriodicScheduler("b", second, interval_seconds=10, ticker=ticker, clock=clock)

        await a.start()
        await b.start()
        await ticker.settle()
        await ticker.advance(10)
        await a.wait_idle()
        await b.wait_idle()

        assert first.runs == 3
        assert second.runs == 2

        await a.stop()
        await b.stop()
