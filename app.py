#!/usr/bin/env python3
"""
Escrow Sync Monitor - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
- `serve` wires every component into one runtime: both monitors,
  the trade coordinator and the HTTP API
- Every other command talks to a running `serve` over HTTP
- Handles SIGINT / SIGTERM gracefully

============================================================
USAGE
============================================================
    python app.py serve [--config config.yaml]
    python app.py start [--interval 300]
    python app.py stop
    python app.py scan
    python app.py status
    python app.py health

Environment-based configuration (a .env file is loaded first):
    DATABASE_URL=postgresql+asyncpg://... python app.py serve

============================================================
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp import web
from dotenv import load_dotenv

from core.clock import ClockProtocol, SystemClock
from core.config import AppConfig
from core.constants import SERVICE_NAME, SERVICE_VERSION
from core.exceptions import EscrowSyncError
from core.logging_setup import setup_logging
from ledger.registry import LedgerRegistry
from monitoring.api import MonitoringAPI, create_monitoring_app
from monitoring.health_checks import HealthAggregator
from monitoring.health_monitor import HealthMonitor
from monitoring.history import HealthHistory
from monitoring.probes import build_default_probes
from reconciliation.classifier import AlertClassifier
from reconciliation.coordinator import AtomicMutationCoordinator
from reconciliation.engine import ReconciliationEngine
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.scanner import BatchScanner
from storage.database import Database, DatabasePersistenceError
from storage.sinks import SqlAlertSink, SqlMetricsSink
from storage.sql_store import SqlOffchainStore


logger = logging.getLogger(__name__)


# ============================================================
# COMPOSITION ROOT
# ============================================================

@dataclass
class Services:
    """Every long-lived component of one running service."""
    config: AppConfig
    database: Database
    http_session: aiohttp.ClientSession
    ledgers: LedgerRegistry
    store: SqlOffchainStore
    engine: ReconciliationEngine
    coordinator: AtomicMutationCoordinator
    reconciliation: ReconciliationMonitor
    health: HealthMonitor
    api: MonitoringAPI

    async def close(self) -> None:
        """Stop both monitors, then release network and database resources."""
        await self.reconciliation.stop_monitoring()
        await self.health.stop()
        await self.reconciliation.wait_idle()
        await self.health.wait_idle()
        await self.ledgers.close()
        if not self.http_session.closed:
            await self.http_session.close()
        await self.database.dispose()


def build_services(
    config: AppConfig,
    clock: Optional[ClockProtocol] = None,
    database: Optional[Database] = None,
) -> Services:
    """
    Wire the service from configuration.

    Must be called inside a running event loop (the HTTP session
    binds to it).
    """
    clock = clock or SystemClock()
    database = database or Database(config.database)
    http_session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=config.health.probe_timeout_seconds),
    )

    ledgers = LedgerRegistry.from_config(config.ledger)
    store = SqlOffchainStore(database)
    metrics_sink = SqlMetricsSink(database)
    alert_sink = SqlAlertSink(database)

    # Reconciliation
    engine = ReconciliationEngine(
        ledgers,
        store,
        clock=clock,
        tolerance=config.reconciliation.tolerance,
        batch_size=config.reconciliation.batch_size,
    )
    classifier = AlertClassifier(alert_sink, config.reconciliation.alert_thresholds, clock)
    scanner = BatchScanner(
        store,
        engine,
        classifier,
        metrics_sink=metrics_sink,
        clock=clock,
        history_size=config.reconciliation.metrics_history_size,
    )
    reconciliation = ReconciliationMonitor(
        scanner,
        interval_seconds=config.reconciliation.interval_seconds,
        clock=clock,
    )

    # Health
    if config.health.network_url is None:
        config.health.network_url = f"{config.api.base_url}/api/health"
    aggregator = HealthAggregator(
        build_default_probes(config.health, store, ledgers, session=http_session, clock=clock),
        metrics_sink=metrics_sink,
        history=HealthHistory(config.health.history_size),
        clock=clock,
        probe_timeout_seconds=config.health.probe_timeout_seconds,
    )
    health = HealthMonitor(aggregator, interval_seconds=config.health.interval_seconds, clock=clock)

    coordinator = AtomicMutationCoordinator(store, clock)
    api = MonitoringAPI(
        reconciliation,
        health,
        coordinator,
        engine=engine,
        alert_sink=alert_sink,
        clock=clock,
    )

    return Services(
        config=config,
        database=database,
        http_session=http_session,
        ledgers=ledgers,
        store=store,
        engine=engine,
        coordinator=coordinator,
        reconciliation=reconciliation,
        health=health,
        api=api,
    )


# ============================================================
# SERVE
# ============================================================

def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Install signal handlers for graceful shutdown."""
    if sys.platform == "win32":
        signal.signal(signal.SIGINT, lambda signum, frame: stop_event.set())
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)


async def serve(config: AppConfig) -> int:
    """Run the service until SIGINT / SIGTERM."""
    services = build_services(config)
    runner: Optional[web.AppRunner] = None

    try:
        await services.database.create_all()

        runner = web.AppRunner(create_monitoring_app(services.api))
        await runner.setup()
        site = web.TCPSite(runner, config.api.host, config.api.port)
        await site.start()
        logger.info(f"{SERVICE_NAME} {SERVICE_VERSION} listening on {config.api.base_url}")

        await services.reconciliation.start_monitoring()
        await services.health.start()

        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)
        await stop_event.wait()
        logger.info("Shutdown requested")
        return 0

    except EscrowSyncError as e:
        logger.error(f"Fatal error: {e.message}", exc_info=True)
        return 1
    except DatabasePersistenceError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        await services.close()
        if runner is not None:
            await runner.cleanup()
        logger.info("Service stopped")


# ============================================================
# REMOTE COMMANDS
# ============================================================

async def call_service(
    base_url: str,
    method: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    timeout: float = 120.0,
) -> tuple[int, Any]:
    """Call a running service. Returns (status, decoded body)."""
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.request(method, f"{base_url}{path}", json=payload) as response:
            return response.status, await response.json(content_type=None)


def remote_request(args: argparse.Namespace) -> tuple[str, str, Optional[Dict[str, Any]]]:
    """Map a CLI command to (method, path, payload)."""
    if args.command == "health":
        return "GET", "/api/health/system", None
    payload: Dict[str, Any] = {"action": args.command}
    if args.command == "start" and args.interval is not None:
        payload["interval_seconds"] = args.interval
    return "POST", "/api/monitoring", payload


async def run_remote(args: argparse.Namespace, config: AppConfig) -> int:
    base_url = args.url or config.api.base_url
    method, path, payload = remote_request(args)
    try:
        status, body = await call_service(base_url, method, path, payload)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        print(f"Error: cannot reach {base_url}: {e}", file=sys.stderr)
        return 2

    print(json.dumps(body, indent=2))
    return 0 if 200 <= status < 300 else 1


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Keeps cached escrow order balances in line with the on-chain ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  serve     - Run the service (monitors + HTTP API)
  start     - Start periodic reconciliation on a running service
  stop      - Stop periodic reconciliation
  scan      - Run one reconciliation scan now
  status    - Show reconciliation monitor status
  health    - Show the latest system health
        """,
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="YAML configuration file (default: environment variables)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override LOG_LEVEL",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the service")

    remote: List[argparse.ArgumentParser] = []
    start = subparsers.add_parser("start", help="Start periodic reconciliation")
    start.add_argument(
        "--interval",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Scan interval in seconds (default: configured interval)",
    )
    remote.append(start)
    for name, help_text in (
        ("stop", "Stop periodic reconciliation"),
        ("scan", "Run one reconciliation scan now"),
        ("status", "Show reconciliation monitor status"),
        ("health", "Show the latest system health"),
    ):
        remote.append(subparsers.add_parser(name, help=help_text))

    for sub in remote:
        sub.add_argument(
            "--url",
            type=str,
            default=None,
            help="Service base URL (default: http://API_HOST:API_PORT)",
        )

    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except EscrowSyncError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)

    if args.command == "serve":
        return asyncio.run(serve(config))
    return asyncio.run(run_remote(args, config))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
