"""
Monitoring Package - System health and the HTTP control surface.

============================================================
PURPOSE
============================================================
- Probe every component the service depends on
- Aggregate probes into one SystemHealth with a history buffer
- Expose health and reconciliation control over HTTP

A probe failure is reported as a component state, never raised.

============================================================
"""

from monitoring.api import (
    MonitoringAPI,
    create_monitoring_app,
    json_response,
    setup_monitoring_routes,
)
from monitoring.health_checks import HealthAggregator
from monitoring.health_monitor import HealthMonitor
from monitoring.history import HealthHistory
from monitoring.models import (
    HealthMetrics,
    HealthMonitorStatus,
    HealthState,
    HealthStatus,
    PerformanceSummary,
    SystemHealth,
    UptimeStats,
    derive_overall,
)
from monitoring.probes import (
    ApiProbe,
    ContractProbe,
    HealthProbe,
    LedgerProbe,
    NetworkProbe,
    PerformanceProbe,
    StorageProbe,
    StoreProbe,
    WebsiteProbe,
    build_default_probes,
)


__all__ = [
    # Health
    "HealthAggregator",
    "HealthMonitor",
    "HealthHistory",

    # Models
    "HealthState",
    "HealthStatus",
    "SystemHealth",
    "PerformanceSummary",
    "UptimeStats",
    "HealthMetrics",
    "HealthMonitorStatus",
    "derive_overall",

    # Probes
    "HealthProbe",
    "WebsiteProbe",
    "StoreProbe",
    "LedgerProbe",
    "ContractProbe",
    "ApiProbe",
    "StorageProbe",
    "NetworkProbe",
    "PerformanceProbe",
    "build_default_probes",

    # HTTP
    "MonitoringAPI",
    "create_monitoring_app",
    "setup_monitoring_routes",
    "json_response",
]
