"""
Core Module - Configuration.

============================================================
CONFIGURABLE MONITORING SERVICE
============================================================

All runtime parameters are configurable:
- Reconciliation interval, batch size and tolerance
- Mismatch alert thresholds
- Health probe targets, deadlines and latency thresholds
- Ledger RPC endpoints and contract addresses
- Database URL and API bind address

Configuration can be loaded from:
- Default values
- Environment variables
- YAML config file

============================================================
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from .constants import (
    ALERT_THRESHOLD_HIGH,
    ALERT_THRESHOLD_LOW,
    ALERT_THRESHOLD_MEDIUM,
    CONTRACT_CRITICAL_MS,
    CONTRACT_WARNING_MS,
    DEFAULT_CHAIN_ID,
    DISK_CRITICAL_RATIO,
    HEALTH_HISTORY_SIZE,
    HEALTH_INTERVAL_SECONDS,
    LEDGER_CRITICAL_MS,
    LEDGER_WARNING_MS,
    MEMORY_CRITICAL_RATIO,
    MEMORY_WARNING_RATIO,
    PROBE_TIMEOUT_SECONDS,
    RECONCILE_BATCH_SIZE,
    RECONCILE_INTERVAL_SECONDS,
    STORE_CRITICAL_MS,
    STORE_WARNING_MS,
    SYNC_TOLERANCE,
)
from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


def _to_decimal(value: Any, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(
            f"Invalid decimal value for {key}",
            config_key=key,
            actual_value=value,
            cause=e,
        ) from e


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_chain_map(value: Optional[str]) -> Dict[int, str]:
    """Parse "84532=https://a,8453=https://b" into {84532: ..., 8453: ...}."""
    result: Dict[int, str] = {}
    for item in _split_csv(value):
        chain, sep, target = item.partition("=")
        if not sep or not chain.strip().isdigit():
            raise ConfigurationError(
                "Chain map entries must look like <chain_id>=<value>",
                config_key="chain_map",
                actual_value=item,
            )
        result[int(chain.strip())] = target.strip()
    return result


# =============================================================
# ALERT THRESHOLDS
# =============================================================


@dataclass
class AlertThresholds:
    """
    Absolute divergence thresholds for mismatch severity.

    - HIGH:   divergence >= high
    - MEDIUM: medium <= divergence < high
    - LOW:    divergence < medium (never alerted)
    """
    low: Decimal = ALERT_THRESHOLD_LOW
    medium: Decimal = ALERT_THRESHOLD_MEDIUM
    high: Decimal = ALERT_THRESHOLD_HIGH

    def __post_init__(self) -> None:
        """Coerce to Decimal and validate ordering."""
        self.low = _to_decimal(self.low, "alert_thresholds.low")
        self.medium = _to_decimal(self.medium, "alert_thresholds.medium")
        self.high = _to_decimal(self.high, "alert_thresholds.high")
        self.validate()

    def validate(self) -> None:
        if self.low < 0:
            raise ConfigurationError("low threshold must be >= 0", config_key="low", actual_value=self.low)
        if not (self.low <= self.medium <= self.high):
            raise ConfigurationError(
                "Alert thresholds must satisfy low <= medium <= high",
                config_key="alert_thresholds",
                actual_value=f"{self.low}/{self.medium}/{self.high}",
            )

    def to_dict(self) -> Dict[str, str]:
        return {
            "low": str(self.low),
            "medium": str(self.medium),
            "high": str(self.high),
        }


# =============================================================
# RECONCILIATION
# =============================================================


@dataclass
class ReconciliationConfig:
    """Settings for the periodic balance reconciliation."""
    interval_seconds: float = RECONCILE_INTERVAL_SECONDS
    batch_size: int = RECONCILE_BATCH_SIZE
    tolerance: Decimal = SYNC_TOLERANCE
    default_chain_id: int = DEFAULT_CHAIN_ID
    metrics_history_size: int = 100
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    def __post_init__(self) -> None:
        self.tolerance = _to_decimal(self.tolerance, "tolerance")
        if self.interval_seconds <= 0:
            raise ConfigurationError(
                "interval_seconds must be > 0",
                config_key="interval_seconds",
                actual_value=self.interval_seconds,
            )
        if self.batch_size < 1:
            raise ConfigurationError(
                "batch_size must be >= 1",
                config_key="batch_size",
                actual_value=self.batch_size,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_seconds": self.interval_seconds,
            "batch_size": self.batch_size,
            "tolerance": str(self.tolerance),
            "default_chain_id": self.default_chain_id,
            "metrics_history_size": self.metrics_history_size,
            "alert_thresholds": self.alert_thresholds.to_dict(),
        }


# =============================================================
# HEALTH
# =============================================================


@dataclass
class LatencyThresholds:
    """Response-time thresholds (ms) mapping to warning / critical."""
    warning_ms: float
    critical_ms: float

    def __post_init__(self) -> None:
        if self.warning_ms >= self.critical_ms:
            raise ConfigurationError(
                "warning_ms must be < critical_ms",
                config_key="latency_thresholds",
                actual_value=f"{self.warning_ms}/{self.critical_ms}",
            )

    def to_dict(self) -> Dict[str, float]:
        return {"warning_ms": self.warning_ms, "critical_ms": self.critical_ms}


@dataclass
class HealthConfig:
    """
    Settings for the health monitor and its probe battery.

    A probe whose target is not configured reports UNKNOWN.
    """
    interval_seconds: float = HEALTH_INTERVAL_SECONDS
    history_size: int = HEALTH_HISTORY_SIZE
    probe_timeout_seconds: float = PROBE_TIMEOUT_SECONDS

    # Probe targets
    website_url: Optional[str] = None
    api_urls: List[str] = field(default_factory=list)
    network_url: Optional[str] = None
    storage_url: Optional[str] = None
    storage_path: str = "."
    contract_chain_id: int = DEFAULT_CHAIN_ID

    # Thresholds
    store_latency: LatencyThresholds = field(
        default_factory=lambda: LatencyThresholds(STORE_WARNING_MS, STORE_CRITICAL_MS)
    )
    ledger_latency: LatencyThresholds = field(
        default_factory=lambda: LatencyThresholds(LEDGER_WARNING_MS, LEDGER_CRITICAL_MS)
    )
    contract_latency: LatencyThresholds = field(
        default_factory=lambda: LatencyThresholds(CONTRACT_WARNING_MS, CONTRACT_CRITICAL_MS)
    )
    memory_warning_ratio: float = MEMORY_WARNING_RATIO
    memory_critical_ratio: float = MEMORY_CRITICAL_RATIO
    disk_critical_ratio: float = DISK_CRITICAL_RATIO

    def __post_init__(self) -> None:
        if self.probe_timeout_seconds <= 0:
            raise ConfigurationError(
                "probe_timeout_seconds must be > 0",
                config_key="probe_timeout_seconds",
                actual_value=self.probe_timeout_seconds,
            )
        if self.history_size < 1:
            raise ConfigurationError(
                "history_size must be >= 1",
                config_key="history_size",
                actual_value=self.history_size,
            )
        if not (0 < self.memory_warning_ratio < self.memory_critical_ratio <= 1):
            raise ConfigurationError(
                "Memory ratios must satisfy 0 < warning < critical <= 1",
                config_key="memory_ratio",
                actual_value=f"{self.memory_warning_ratio}/{self.memory_critical_ratio}",
            )
        if not (0 < self.disk_critical_ratio <= 1):
            raise ConfigurationError(
                "disk_critical_ratio must satisfy 0 < ratio <= 1",
                config_key="disk_critical_ratio",
                actual_value=self.disk_critical_ratio,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_seconds": self.interval_seconds,
            "history_size": self.history_size,
            "probe_timeout_seconds": self.probe_timeout_seconds,
            "website_url": self.website_url,
            "api_urls": list(self.api_urls),
            "network_url": self.network_url,
            "storage_url": self.storage_url,
            "storage_path": self.storage_path,
            "contract_chain_id": self.contract_chain_id,
            "store_latency": self.store_latency.to_dict(),
            "ledger_latency": self.ledger_latency.to_dict(),
            "contract_latency": self.contract_latency.to_dict(),
            "memory_warning_ratio": self.memory_warning_ratio,
            "memory_critical_ratio": self.memory_critical_ratio,
            "disk_critical_ratio": self.disk_critical_ratio,
        }


# =============================================================
# LEDGER / DATABASE / API
# =============================================================


@dataclass
class LedgerConfig:
    """JSON-RPC endpoints and escrow contract addresses per chain."""
    rpc_urls: Dict[int, str] = field(default_factory=dict)
    contract_addresses: Dict[int, str] = field(default_factory=dict)
    timeout_seconds: float = 20.0

    def chains(self) -> List[int]:
        """Chains that have both an RPC endpoint and a contract address."""
        return sorted(set(self.rpc_urls) & set(self.contract_addresses))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc_urls": {str(k): v for k, v in self.rpc_urls.items()},
            "contract_addresses": {str(k): v for k, v in self.contract_addresses.items()},
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass
class DatabaseConfig:
    """Off-chain store connection settings."""
    url: str = "sqlite+aiosqlite:///escrow_sync.db"
    echo: bool = False
    pool_size: int = 5

    def to_dict(self) -> Dict[str, Any]:
        # Never expose credentials
        return {
            "url": self.url.split("@")[-1],
            "echo": self.echo,
            "pool_size": self.pool_size,
        }


@dataclass
class ApiConfig:
    """Bind address of the control API."""
    host: str = "127.0.0.1"
    port: int = 8080

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class AppConfig:
    """
    Main configuration for the monitoring service.

    Combines all sub-configurations.
    """
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - DATABASE_URL, DATABASE_ECHO
        - LEDGER_RPC_URLS ("<chain>=<url>,..."), LEDGER_CONTRACT_ADDRESSES
        - LEDGER_TIMEOUT_SECONDS
        - RECONCILE_INTERVAL_SECONDS, RECONCILE_BATCH_SIZE, DEFAULT_CHAIN_ID
        - ALERT_THRESHOLD_LOW, ALERT_THRESHOLD_MEDIUM, ALERT_THRESHOLD_HIGH
        - HEALTH_INTERVAL_SECONDS, HEALTH_PROBE_TIMEOUT_SECONDS
        - HEALTH_WEBSITE_URL, HEALTH_API_URLS, HEALTH_NETWORK_URL
        - HEALTH_STORAGE_URL, HEALTH_STORAGE_PATH, HEALTH_DISK_CRITICAL_RATIO
        - API_HOST, API_PORT
        - LOG_LEVEL, LOG_FORMAT
        """
        config = cls()

        # Database
        if os.getenv("DATABASE_URL"):
            config.database.url = os.getenv("DATABASE_URL")
        if os.getenv("DATABASE_ECHO"):
            config.database.echo = os.getenv("DATABASE_ECHO").lower() in ("1", "true", "yes")

        # Ledger
        config.ledger.rpc_urls = _parse_chain_map(os.getenv("LEDGER_RPC_URLS"))
        config.ledger.contract_addresses = _parse_chain_map(os.getenv("LEDGER_CONTRACT_ADDRESSES"))
        if os.getenv("LEDGER_TIMEOUT_SECONDS"):
            config.ledger.timeout_seconds = float(os.getenv("LEDGER_TIMEOUT_SECONDS"))

        # Reconciliation
        thresholds = AlertThresholds(
            low=os.getenv("ALERT_THRESHOLD_LOW", str(ALERT_THRESHOLD_LOW)),
            medium=os.getenv("ALERT_THRESHOLD_MEDIUM", str(ALERT_THRESHOLD_MEDIUM)),
            high=os.getenv("ALERT_THRESHOLD_HIGH", str(ALERT_THRESHOLD_HIGH)),
        )
        config.reconciliation = ReconciliationConfig(
            interval_seconds=float(os.getenv("RECONCILE_INTERVAL_SECONDS", RECONCILE_INTERVAL_SECONDS)),
            batch_size=int(os.getenv("RECONCILE_BATCH_SIZE", RECONCILE_BATCH_SIZE)),
            default_chain_id=int(os.getenv("DEFAULT_CHAIN_ID", DEFAULT_CHAIN_ID)),
            alert_thresholds=thresholds,
        )

        # Health
        if os.getenv("HEALTH_INTERVAL_SECONDS"):
            config.health.interval_seconds = float(os.getenv("HEALTH_INTERVAL_SECONDS"))
        if os.getenv("HEALTH_PROBE_TIMEOUT_SECONDS"):
            config.health.probe_timeout_seconds = float(os.getenv("HEALTH_PROBE_TIMEOUT_SECONDS"))
        config.health.website_url = os.getenv("HEALTH_WEBSITE_URL") or None
        config.health.api_urls = _split_csv(os.getenv("HEALTH_API_URLS"))
        config.health.network_url = os.getenv("HEALTH_NETWORK_URL") or None
        config.health.storage_url = os.getenv("HEALTH_STORAGE_URL") or None
        config.health.storage_path = os.getenv("HEALTH_STORAGE_PATH", config.health.storage_path)
        if os.getenv("HEALTH_DISK_CRITICAL_RATIO"):
            config.health.disk_critical_ratio = float(os.getenv("HEALTH_DISK_CRITICAL_RATIO"))
        config.health.contract_chain_id = config.reconciliation.default_chain_id

        # API
        config.api.host = os.getenv("API_HOST", config.api.host)
        config.api.port = int(os.getenv("API_PORT", config.api.port))

        # Logging
        config.log_level = os.getenv("LOG_LEVEL", config.log_level)
        config.log_format = os.getenv("LOG_FORMAT", config.log_format)

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Sections mirror the dataclasses: reconciliation, health,
        ledger, database, api. Missing keys keep their defaults.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load YAML config from {path}",
                config_key="config_file",
                actual_value=path,
                cause=e,
            ) from e

        config = cls()

        if "reconciliation" in data:
            r = dict(data["reconciliation"])
            thresholds = r.pop("alert_thresholds", None)
            if thresholds is not None:
                r["alert_thresholds"] = AlertThresholds(**thresholds)
            config.reconciliation = ReconciliationConfig(**r)

        if "health" in data:
            h = dict(data["health"])
            for key in ("store_latency", "ledger_latency", "contract_latency"):
                if key in h:
                    h[key] = LatencyThresholds(**h[key])
            config.health = HealthConfig(**h)

        if "ledger" in data:
            ledger = data["ledger"]
            config.ledger = LedgerConfig(
                rpc_urls={int(k): v for k, v in (ledger.get("rpc_urls") or {}).items()},
                contract_addresses={int(k): v for k, v in (ledger.get("contract_addresses") or {}).items()},
                timeout_seconds=ledger.get("timeout_seconds", 20.0),
            )

        if "database" in data:
            config.database = DatabaseConfig(**data["database"])

        if "api" in data:
            config.api = ApiConfig(**data["api"])

        config.log_level = data.get("log_level", config.log_level)
        config.log_format = data.get("log_format", config.log_format)

        logger.info(f"Loaded configuration from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reconciliation": self.reconciliation.to_dict(),
            "health": self.health.to_dict(),
            "ledger": self.ledger.to_dict(),
            "database": self.database.to_dict(),
            "api": self.api.to_dict(),
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


__all__ = [
    "AlertThresholds",
    "ReconciliationConfig",
    "LatencyThresholds",
    "HealthConfig",
    "LedgerConfig",
    "DatabaseConfig",
    "ApiConfig",
    "AppConfig",
]
