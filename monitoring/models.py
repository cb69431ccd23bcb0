"""
Monitoring - Health Models.

============================================================
PURPOSE
============================================================
Data shapes for the health monitor.

- HealthStatus: one probe's verdict
- SystemHealth: one full probe battery with derived overall state
- UptimeStats / HealthMetrics: aggregates over the history buffer

============================================================
OVERALL STATE
============================================================
- CRITICAL if any component is critical
- WARNING if any component is warning
- HEALTHY otherwise (UNKNOWN components do not change the verdict)

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


NOT_AVAILABLE = "N/A"


# ============================================================
# HEALTH STATE
# ============================================================

class HealthState(str, Enum):
    """Health of a component or of the whole system."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


def derive_overall(statuses: Iterable["HealthStatus"]) -> HealthState:
    """Precedence: critical > warning > healthy."""
    states = {s.status for s in statuses}
    if HealthState.CRITICAL in states:
        return HealthState.CRITICAL
    if HealthState.WARNING in states:
        return HealthState.WARNING
    return HealthState.HEALTHY


# ============================================================
# COMPONENT HEALTH
# ============================================================

@dataclass
class HealthStatus:
    """Result of a single probe."""

    component: str
    status: HealthState
    last_check: datetime
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "status": self.status.value,
            "response_time_ms": round(self.response_time_ms, 3) if self.response_time_ms is not None else None,
            "last_check": self.last_check.isoformat(),
            "error": self.error,
            "details": dict(self.details),
        }


# ============================================================
# SYSTEM HEALTH
# ============================================================

@dataclass
class PerformanceSummary:
    """Response-time summary over the probes that reported a time."""

    average_response_time: Optional[float] = None
    slowest_component: Optional[str] = None
    fastest_component: Optional[str] = None

    @classmethod
    def from_statuses(cls, statuses: Iterable[HealthStatus]) -> "PerformanceSummary":
        timed = [s for s in statuses if s.response_time_ms is not None]
        if not timed:
            return cls()
        slowest = max(timed, key=lambda s: s.response_time_ms)
        fastest = min(timed, key=lambda s: s.response_time_ms)
        return cls(
            average_response_time=sum(s.response_time_ms for s in timed) / len(timed),
            slowest_component=slowest.component,
            fastest_component=fastest.component,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_response_time": round(self.average_response_time, 3) if self.average_response_time is not None else 0,
            "slowest_component": self.slowest_component or NOT_AVAILABLE,
            "fastest_component": self.fastest_component or NOT_AVAILABLE,
        }


@dataclass
class SystemHealth:
    """
    One complete probe battery.

    services keeps the probe order of the battery.
    """

    overall: HealthState
    services: List[HealthStatus]
    last_updated: datetime
    cycle_duration_ms: float
    performance: PerformanceSummary = field(default_factory=PerformanceSummary)

    def component(self, name: str) -> Optional[HealthStatus]:
        for status in self.services:
            if status.component == name:
                return status
        return None

    def count(self, state: HealthState) -> int:
        return sum(1 for s in self.services if s.status is state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.value,
            "services": [s.to_dict() for s in self.services],
            "last_updated": self.last_updated.isoformat(),
            "cycle_duration_ms": round(self.cycle_duration_ms, 3),
            "performance": self.performance.to_dict(),
        }


# ============================================================
# AGGREGATES
# ============================================================

@dataclass
class UptimeStats:
    """Share of recorded checks whose overall state was not critical."""

    uptime_percentage: float
    total_checks: int
    successful_checks: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_percentage": round(self.uptime_percentage, 3),
            "total_checks": self.total_checks,
            "successful_checks": self.successful_checks,
        }


@dataclass
class HealthMetrics:
    """Operational summary over the health history buffer."""

    total_checks: int
    successful_checks: int
    failed_checks: int
    average_response_time: float
    uptime_percentage: float
    timestamp: datetime
    last_incident: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "successful_checks": self.successful_checks,
            "failed_checks": self.failed_checks,
            "average_response_time": round(self.average_response_time, 3),
            "uptime_percentage": round(self.uptime_percentage, 3),
            "last_incident": self.last_incident.isoformat() if self.last_incident else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HealthMonitorStatus:
    """Health monitor state."""

    active: bool
    last_check: Optional[datetime]
    interval_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "interval_seconds": self.interval_seconds,
        }
