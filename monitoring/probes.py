"""
Monitoring - Health Probes.

============================================================
PURPOSE
============================================================
One probe per monitored component. Every probe:

- Times itself with the injected clock
- Catches its own failures (status CRITICAL + error message)
- Reports UNKNOWN when its target is not configured

============================================================
BATTERY ORDER
============================================================
website, store, ledger, contract, api, storage, network, performance

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import psutil

from core.clock import ClockProtocol, SystemClock
from core.config import HealthConfig, LatencyThresholds
from core.constants import CONTRACT_PROBE_FIELDS, DISK_CRITICAL_RATIO
from ledger.registry import LedgerRegistry
from monitoring.models import HealthState, HealthStatus
from storage.store import OffchainStore


logger = logging.getLogger(__name__)


def classify_latency(elapsed_ms: float, thresholds: LatencyThresholds) -> HealthState:
    """Healthy below warning_ms, warning below critical_ms, else critical."""
    if elapsed_ms < thresholds.warning_ms:
        return HealthState.HEALTHY
    if elapsed_ms < thresholds.critical_ms:
        return HealthState.WARNING
    return HealthState.CRITICAL


def classify_ratio(ratio: float, warning: float, critical: float) -> HealthState:
    if ratio > critical:
        return HealthState.CRITICAL
    if ratio > warning:
        return HealthState.WARNING
    return HealthState.HEALTHY


@dataclass
class ProbeOutcome:
    """What a probe observed, before timing is attached."""

    state: HealthState
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    timed: bool = True


def not_configured(what: str) -> ProbeOutcome:
    return ProbeOutcome(
        state=HealthState.UNKNOWN,
        details={"configured": False},
        error=f"{what} not configured",
        timed=False,
    )


# ============================================================
# BASE PROBE
# ============================================================

class HealthProbe(ABC):
    """
    Base class for health probes.

    Subclasses implement _probe(). A probe built with latency
    thresholds downgrades a healthy outcome by its elapsed time.
    """

    def __init__(
        self,
        name: str,
        clock: Optional[ClockProtocol] = None,
        latency: Optional[LatencyThresholds] = None,
    ):
        self._name = name
        self._clock = clock or SystemClock()
        self._latency = latency

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def _probe(self) -> ProbeOutcome:
        pass

    async def check(self) -> HealthStatus:
        """Run the probe. Never raises for probe failures."""
        started = self._clock.monotonic()
        try:
            outcome = await self._probe()
        except Exception as e:
            logger.warning(f"Health probe {self._name} failed: {e}")
            return HealthStatus(
                component=self._name,
                status=HealthState.CRITICAL,
                last_check=self._clock.now(),
                error=str(e) or type(e).__name__,
            )

        elapsed = self._clock.elapsed_ms(started)
        state = outcome.state
        if self._latency is not None and state is HealthState.HEALTHY:
            state = classify_latency(elapsed, self._latency)

        return HealthStatus(
            component=self._name,
            status=state,
            last_check=self._clock.now(),
            response_time_ms=elapsed if outcome.timed else None,
            error=outcome.error,
            details=outcome.details,
        )


class HttpProbe(HealthProbe):
    """Probe that talks HTTP through a shared aiohttp session."""

    def __init__(
        self,
        name: str,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
        timeout: float = 10.0,
    ):
        super().__init__(name, clock)
        self._session = session
        self._timeout = timeout
        self._owns_session = False

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
            self._owns_session = True
        return self._session

    async def _head(self, url: str) -> ProbeOutcome:
        session = await self._get_session()
        async with session.head(url, allow_redirects=True) as response:
            return ProbeOutcome(
                state=HealthState.HEALTHY if response.ok else HealthState.WARNING,
                details={"status_code": response.status, "reason": response.reason},
            )

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None


# ============================================================
# PROBES
# ============================================================

class WebsiteProbe(HttpProbe):
    """HEAD request against the public site."""

    def __init__(self, url: Optional[str], **kwargs):
        super().__init__("website", **kwargs)
        self._url = url

    async def _probe(self) -> ProbeOutcome:
        if not self._url:
            return not_configured("website_url")
        return await self._head(self._url)


class StoreProbe(HealthProbe):
    """Off-chain store connectivity, classified by round-trip time."""

    def __init__(self, store: OffchainStore, latency: LatencyThresholds, clock: Optional[ClockProtocol] = None):
        super().__init__("store", clock, latency)
        self._store = store

    async def _probe(self) -> ProbeOutcome:
        await self._store.ping()
        return ProbeOutcome(state=HealthState.HEALTHY, details={"connected": True})


class LedgerProbe(HealthProbe):
    """Reads the contract owner to prove the chain is reachable."""

    def __init__(
        self,
        ledgers: LedgerRegistry,
        chain_id: int,
        latency: LatencyThresholds,
        clock: Optional[ClockProtocol] = None,
    ):
        super().__init__("ledger", clock, latency)
        self._ledgers = ledgers
        self._chain_id = chain_id

    async def _probe(self) -> ProbeOutcome:
        if not self._ledgers.supports(self._chain_id):
            return not_configured(f"Ledger for chain {self._chain_id}")
        owner = await self._ledgers.get(self._chain_id).read_contract_field("owner")
        return ProbeOutcome(
            state=HealthState.HEALTHY,
            details={"chain_id": self._chain_id, "owner": owner},
        )


class ContractProbe(HealthProbe):
    """Reads owner, platformFeeBps and paused concurrently; all must succeed."""

    def __init__(
        self,
        ledgers: LedgerRegistry,
        chain_id: int,
        latency: LatencyThresholds,
        clock: Optional[ClockProtocol] = None,
        fields: Sequence[str] = CONTRACT_PROBE_FIELDS,
    ):
        super().__init__("contract", clock, latency)
        self._ledgers = ledgers
        self._chain_id = chain_id
        self._fields = tuple(fields)

    async def _probe(self) -> ProbeOutcome:
        if not self._ledgers.supports(self._chain_id):
            return not_configured(f"Ledger for chain {self._chain_id}")
        reader = self._ledgers.get(self._chain_id)
        values = await asyncio.gather(
            *(reader.read_contract_field(name) for name in self._fields)
        )
        details: Dict[str, Any] = {"chain_id": self._chain_id}
        details.update(zip(self._fields, values))
        return ProbeOutcome(state=HealthState.HEALTHY, details=details)


class ApiProbe(HttpProbe):
    """GET every API endpoint concurrently; any non-2xx is a warning."""

    def __init__(self, urls: Sequence[str], **kwargs):
        super().__init__("api", **kwargs)
        self._urls = list(urls)

    async def _fetch_status(self, session: aiohttp.ClientSession, url: str) -> int:
        async with session.get(url) as response:
            return response.status

    async def _probe(self) -> ProbeOutcome:
        if not self._urls:
            return not_configured("api_urls")
        session = await self._get_session()
        statuses = await asyncio.gather(
            *(self._fetch_status(session, url) for url in self._urls)
        )
        all_ok = all(200 <= code < 300 for code in statuses)
        return ProbeOutcome(
            state=HealthState.HEALTHY if all_ok else HealthState.WARNING,
            details={
                "endpoints_tested": len(self._urls),
                "status_codes": dict(zip(self._urls, statuses)),
            },
        )


class StorageProbe(HttpProbe):
    """
    Storage subsystem.

    Checks the local data volume with psutil and, when a storage
    URL is configured, that it answers a HEAD request.
    """

    def __init__(
        self,
        path: str,
        url: Optional[str] = None,
        critical_ratio: float = DISK_CRITICAL_RATIO,
        **kwargs,
    ):
        super().__init__("storage", **kwargs)
        self._path = path
        self._url = url
        self._critical_ratio = critical_ratio

    async def _probe(self) -> ProbeOutcome:
        usage = await asyncio.to_thread(psutil.disk_usage, self._path)
        details: Dict[str, Any] = {
            "path": self._path,
            "disk_usage_pct": usage.percent,
            "free_mb": round(usage.free / (1024 * 1024), 1),
        }
        state = HealthState.HEALTHY
        if usage.percent / 100 > self._critical_ratio:
            state = HealthState.WARNING

        if self._url:
            remote = await self._head(self._url)
            details["remote_status_code"] = remote.details["status_code"]
            if remote.state is not HealthState.HEALTHY:
                state = HealthState.WARNING

        return ProbeOutcome(state=state, details=details)


class NetworkProbe(HttpProbe):
    """HEAD against the service's own liveness endpoint."""

    def __init__(self, url: Optional[str], **kwargs):
        super().__init__("network", **kwargs)
        self._url = url

    async def _probe(self) -> ProbeOutcome:
        if not self._url:
            return not_configured("network_url")
        outcome = await self._head(self._url)
        outcome.details["internal_connectivity"] = outcome.state is HealthState.HEALTHY
        return outcome


class PerformanceProbe(HealthProbe):
    """Process host memory pressure. A failed reading is UNKNOWN, not critical."""

    def __init__(
        self,
        warning_ratio: float,
        critical_ratio: float,
        clock: Optional[ClockProtocol] = None,
    ):
        super().__init__("performance", clock)
        self._warning_ratio = warning_ratio
        self._critical_ratio = critical_ratio

    def _read_memory_ratio(self) -> float:
        return psutil.virtual_memory().percent / 100

    async def _probe(self) -> ProbeOutcome:
        try:
            ratio = self._read_memory_ratio()
        except (psutil.Error, OSError) as e:
            return ProbeOutcome(
                state=HealthState.UNKNOWN,
                details={"memory_usage": "N/A"},
                error=str(e),
            )
        return ProbeOutcome(
            state=classify_ratio(ratio, self._warning_ratio, self._critical_ratio),
            details={"memory_usage": f"{ratio * 100:.2f}%"},
        )


# ============================================================
# FACTORY
# ============================================================

def build_default_probes(
    config: HealthConfig,
    store: OffchainStore,
    ledgers: LedgerRegistry,
    session: Optional[aiohttp.ClientSession] = None,
    clock: Optional[ClockProtocol] = None,
) -> List[HealthProbe]:
    """The standard eight-probe battery, in reporting order."""
    clock = clock or SystemClock()
    http = {"session": session, "clock": clock, "timeout": config.probe_timeout_seconds}

    return [
        WebsiteProbe(config.website_url, **http),
        StoreProbe(store, config.store_latency, clock),
        LedgerProbe(ledgers, config.contract_chain_id, config.ledger_latency, clock),
        ContractProbe(ledgers, config.contract_chain_id, config.contract_latency, clock),
        ApiProbe(config.api_urls, **http),
        StorageProbe(
            config.storage_path,
            url=config.storage_url,
            critical_ratio=config.disk_critical_ratio,
            **http,
        ),
        NetworkProbe(config.network_url, **http),
        PerformanceProbe(config.memory_warning_ratio, config.memory_critical_ratio, clock),
    ]
