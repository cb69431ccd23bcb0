"""
Monitoring - Health Checks.

============================================================
RESPONSIBILITY
============================================================
Runs the probe battery and aggregates it into SystemHealth.

- Runs the registered probes one after another, each under a deadline
- Derives the overall state (critical > warning > healthy)
- Summarizes response times
- Persists the result (overwrite) and appends it to the history
- Logs overall state transitions

============================================================
HEALTH STATES
============================================================
- HEALTHY: All probes passing
- WARNING: Some probe slow or degraded
- CRITICAL: Some probe failing or timed out
- UNKNOWN: Probe target not configured (component level only)

============================================================
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.constants import HEALTH_SNAPSHOT_KEY, PROBE_TIMEOUT_SECONDS
from core.exceptions import PersistenceFailure
from monitoring.history import HealthHistory
from monitoring.models import (
    HealthState,
    HealthStatus,
    PerformanceSummary,
    SystemHealth,
    derive_overall,
)
from monitoring.probes import HealthProbe
from storage.sinks import MetricsSink, log_sink_failure


logger = logging.getLogger(__name__)


class HealthAggregator:
    """
    Aggregates component probes into one SystemHealth.

    Probes run one at a time in registration order, so each measured
    response time belongs to that probe alone.
    """

    def __init__(
        self,
        probes: Sequence[HealthProbe] = (),
        metrics_sink: Optional[MetricsSink] = None,
        history: Optional[HealthHistory] = None,
        clock: Optional[ClockProtocol] = None,
        probe_timeout_seconds: float = PROBE_TIMEOUT_SECONDS,
    ):
        """
        Initialize aggregator.

        Args:
            probes: Probe battery, in reporting order
            metrics_sink: Destination of the latest SystemHealth
            history: Ring buffer receiving every result
            clock: Clock for timestamps and durations
            probe_timeout_seconds: Deadline applied to each probe
        """
        if probe_timeout_seconds <= 0:
            raise ValueError("probe_timeout_seconds must be > 0")

        self._probes: Dict[str, HealthProbe] = {}
        for probe in probes:
            self.register_probe(probe)

        self._metrics_sink = metrics_sink
        self._history = history if history is not None else HealthHistory()
        self._clock = clock or SystemClock()
        self._probe_timeout = probe_timeout_seconds
        self._last_health: Optional[SystemHealth] = None

    # --------------------------------------------------------
    # REGISTRATION
    # --------------------------------------------------------

    def register_probe(self, probe: HealthProbe) -> None:
        if probe.name in self._probes:
            raise ValueError(f"Probe already registered: {probe.name}")
        self._probes[probe.name] = probe

    @property
    def probe_names(self) -> List[str]:
        return list(self._probes)

    @property
    def history(self) -> HealthHistory:
        return self._history

    def get_last_health(self) -> Optional[SystemHealth]:
        return self._last_health

    # --------------------------------------------------------
    # CHECKS
    # --------------------------------------------------------

    async def check_component(self, name: str) -> HealthStatus:
        """
        Run one probe under the deadline.

        Raises:
            KeyError: If no probe has that name
        """
        probe = self._probes[name]
        try:
            return await asyncio.wait_for(probe.check(), timeout=self._probe_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Health probe {name} timed out after {self._probe_timeout}s")
            return HealthStatus(
                component=name,
                status=HealthState.CRITICAL,
                last_check=self._clock.now(),
                response_time_ms=self._probe_timeout * 1000.0,
                error=f"timed out after {self._probe_timeout:g}s",
            )

    async def check_all(self) -> SystemHealth:
        """
        Run the full battery and record the result.

        Persistence failures are logged; the returned result is
        unaffected by them.
        """
        started = self._clock.monotonic()

        statuses: List[HealthStatus] = []
        for name in self._probes:
            statuses.append(await self.check_component(name))

        health = SystemHealth(
            overall=derive_overall(statuses),
            services=statuses,
            last_updated=self._clock.now(),
            cycle_duration_ms=self._clock.elapsed_ms(started),
            performance=PerformanceSummary.from_statuses(statuses),
        )

        self._log_transition(health)
        self._last_health = health
        self._history.append(health)

        await self._persist(health)
        return health

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _log_transition(self, health: SystemHealth) -> None:
        previous = self._last_health.overall if self._last_health else None
        failing = [s.component for s in health.services if s.status is HealthState.CRITICAL]

        if previous is not None and previous is not health.overall:
            level = logging.INFO if health.overall is HealthState.HEALTHY else logging.WARNING
            logger.log(
                level,
                f"System health changed {previous.value} -> {health.overall.value}"
                + (f" (critical: {', '.join(failing)})" if failing else ""),
            )
        else:
            logger.info(
                f"Health check: {health.overall.value}, "
                f"{health.count(HealthState.HEALTHY)}/{len(health.services)} healthy "
                f"in {health.cycle_duration_ms:.0f}ms"
            )

    async def _persist(self, health: SystemHealth) -> None:
        if self._metrics_sink is None:
            return
        try:
            await self._metrics_sink.write_snapshot(
                HEALTH_SNAPSHOT_KEY,
                health.to_dict(),
                updated_at=health.last_updated,
                merge=False,
            )
        except PersistenceFailure as e:
            log_sink_failure(logger, e, "health snapshot")
