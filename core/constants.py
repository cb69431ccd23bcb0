"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines the service-wide default values.

- Single source of truth for tolerances, thresholds and intervals
- Configuration dataclasses take their defaults from here

============================================================
"""

from decimal import Decimal


# ============================================================
# SERVICE IDENTIFICATION
# ============================================================

SERVICE_NAME = "escrow-sync-monitor"
SERVICE_VERSION = "0.1.0"


# ============================================================
# RECONCILIATION
# ============================================================

# Divergence at or below this is treated as in sync.
SYNC_TOLERANCE = Decimal("0.000001")

# Orders reconciled concurrently per group.
RECONCILE_BATCH_SIZE = 5

RECONCILE_INTERVAL_SECONDS = 300.0

# Order statuses a scan reconciles.
ACTIVE_ORDER_STATUSES = ("OPEN", "PENDING")

DEFAULT_CHAIN_ID = 84532

SYNC_SOURCE_LEDGER = "ledger"

# Index of the remaining amount in the contract's orders(uint256) tuple.
LEDGER_REMAINING_AMOUNT_INDEX = 4


# ============================================================
# ALERT THRESHOLDS (absolute divergence, token units)
# ============================================================

ALERT_THRESHOLD_LOW = Decimal("0.001")
ALERT_THRESHOLD_MEDIUM = Decimal("0.01")
ALERT_THRESHOLD_HIGH = Decimal("0.1")

MISMATCH_ALERT_TYPE = "remainingAmount_mismatch"


# ============================================================
# HEALTH MONITORING
# ============================================================

HEALTH_INTERVAL_SECONDS = 60.0
HEALTH_HISTORY_SIZE = 100
PROBE_TIMEOUT_SECONDS = 30.0

STORE_WARNING_MS = 5000.0
STORE_CRITICAL_MS = 10000.0
LEDGER_WARNING_MS = 10000.0
LEDGER_CRITICAL_MS = 30000.0
CONTRACT_WARNING_MS = 15000.0
CONTRACT_CRITICAL_MS = 30000.0

MEMORY_WARNING_RATIO = 0.7
MEMORY_CRITICAL_RATIO = 0.9

DISK_CRITICAL_RATIO = 0.9

# Contract fields read by the smart-contract probe.
CONTRACT_PROBE_FIELDS = ("owner", "platformFeeBps", "paused")


# ============================================================
# SNAPSHOT KEYS
# ============================================================

MONITORING_SNAPSHOT_KEY = "monitoring"
HEALTH_SNAPSHOT_KEY = "health"
