"""
Tests for configuration loading and validation.
"""

from decimal import Decimal

import pytest

from core.config import (
    AlertThresholds,
    AppConfig,
    HealthConfig,
    LatencyThresholds,
    LedgerConfig,
    ReconciliationConfig,
)
from core.exceptions import ConfigurationError


class TestAlertThresholds:
    """Tests for AlertThresholds."""

    def test_defaults(self):
        thresholds = AlertThresholds()
        assert thresholds.low == Decimal("0.001")
        assert thresholds.medium == Decimal("0.01")
        assert thresholds.high == Decimal("0.1")

    def test_coerces_strings_to_decimal(self):
        thresholds = AlertThresholds(low="0.5", medium="1", high="2")
        assert thresholds.high == Decimal("2")

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ConfigurationError):
            AlertThresholds(low="0.1", medium="0.01", high="1")

    def test_rejects_non_numeric(self):
        with pytest.raises(ConfigurationError):
            AlertThresholds(low="abc")


class TestSectionValidation:
    """Tests for per-section validation."""

    def test_reconciliation_rejects_zero_batch(self):
        with pytest.raises(ConfigurationError):
            ReconciliationConfig(batch_size=0)

    def test_latency_requires_warning_below_critical(self):
        with pytest.raises(ConfigurationError):
            LatencyThresholds(warning_ms=100, critical_ms=100)

    def test_health_rejects_inverted_memory_ratios(self):
        with pytest.raises(ConfigurationError):
            HealthConfig(memory_warning_ratio=0.95, memory_critical_ratio=0.9)

    @pytest.mark.parametrize("ratio", [0, 1.5])
    def test_health_rejects_out_of_range_disk_ratio(self, ratio):
        with pytest.raises(ConfigurationError):
            HealthConfig(disk_critical_ratio=ratio)

    def test_ledger_chains_need_both_endpoint_and_contract(self):
        config = LedgerConfig(
            rpc_urls={84532: "https://rpc", 8453: "https://rpc2"},
            contract_addresses={84532: "0x" + "11" * 20},
        )
        assert config.chains() == [84532]


class TestAppConfig:
    """Tests for AppConfig loaders."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://user:secret@db/escrow")
        monkeypatch.setenv("LEDGER_RPC_URLS", "84532=https://sepolia.base.org")
        monkeypatch.setenv("LEDGER_CONTRACT_ADDRESSES", "84532=0x" + "22" * 20)
        monkeypatch.setenv("RECONCILE_INTERVAL_SECONDS", "120")
        monkeypatch.setenv("ALERT_THRESHOLD_HIGH", "5")
        monkeypatch.setenv("HEALTH_API_URLS", "http://a/x, http://b/y")
        monkeypatch.setenv("API_PORT", "9090")

        config = AppConfig.from_env()

        assert config.ledger.chains() == [84532]
        assert config.reconciliation.interval_seconds == 120.0
        assert config.reconciliation.alert_thresholds.high == Decimal("5")
        assert config.health.api_urls == ["http://a/x", "http://b/y"]
        assert config.api.base_url == "http://127.0.0.1:9090"
        assert "secret" not in config.to_dict()["database"]["url"]

    def test_from_env_rejects_bad_chain_map(self, monkeypatch):
        monkeypatch.setenv("LEDGER_RPC_URLS", "sepolia=https://rpc")
        with pytest.raises(ConfigurationError):
            AppConfig.from_env()

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "reconciliation:\n"
            "  interval_seconds: 60\n"
            "  batch_size: 10\n"
            "  alert_thresholds:\n"
            "    low: 0.01\n"
            "    medium: 0.1\n"
            "    high: 1\n"
            "health:\n"
            "  probe_timeout_seconds: 5\n"
            "  store_latency:\n"
            "    warning_ms: 100\n"
            "    critical_ms: 200\n"
            "ledger:\n"
            "  rpc_urls:\n"
            "    84532: https://rpc\n"
            "  contract_addresses:\n"
            "    84532: '0x0000000000000000000000000000000000000001'\n"
            "log_format: json\n"
        )

        config = AppConfig.from_yaml(path)

        assert config.reconciliation.batch_size == 10
        assert config.reconciliation.alert_thresholds.medium == Decimal("0.1")
        assert config.health.probe_timeout_seconds == 5
        assert config.health.store_latency.critical_ms == 200
        assert config.ledger.chains() == [84532]
        assert config.log_format == "json"

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            AppConfig.from_yaml(tmp_path / "missing.yaml")
