"""
Monitoring API Endpoints.

============================================================
PURPOSE
============================================================
HTTP control and read surface of the service.

CONTROL:
- POST /api/monitoring          {"action": start|stop|scan|status}
- POST /api/trades              atomic trade + order balance commit

READ:
- GET  /api/monitoring          reconciliation monitor status
- GET  /api/health              liveness (HEAD supported)
- GET  /api/health/system       latest SystemHealth
- GET  /api/health/history      recorded health checks
- GET  /api/health/uptime       uptime statistics
- GET  /api/health/metrics      health metrics summary
- GET  /api/alerts              stored mismatch alerts

============================================================
"""

import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from aiohttp import web

from core.clock import ClockProtocol, SystemClock
from core.constants import SERVICE_NAME, SERVICE_VERSION
from core.exceptions import (
    AtomicCommitError,
    EscrowSyncError,
    RecordNotFound,
    ValidationFailure,
)
from monitoring.health_monitor import HealthMonitor
from reconciliation.coordinator import AtomicMutationCoordinator
from reconciliation.engine import ReconciliationEngine
from reconciliation.models import OrderBalanceUpdate
from reconciliation.monitor import ReconciliationMonitor
from storage.records import TradeRecord
from storage.sinks import SqlAlertSink


logger = logging.getLogger(__name__)


MONITORING_ACTIONS = ("start", "stop", "scan", "status")


# ============================================================
# JSON ENCODER
# ============================================================

class MonitoringEncoder(json.JSONEncoder):
    """JSON encoder for monitoring payloads."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return super().default(obj)


def json_response(data: Any, status: int = 200) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, cls=MonitoringEncoder, indent=2),
        status=status,
        content_type="application/json",
    )


def error_response(message: str, status: int) -> web.Response:
    return json_response({"success": False, "message": message}, status=status)


class BadRequest(ValueError):
    """Malformed request body."""


def parse_trade_request(body: Any) -> tuple[TradeRecord, list[OrderBalanceUpdate], bool]:
    """
    Parse a POST /api/trades body.

    Expected shape:
        {"trade": {"id", "order_id", "buyer_address", "amount", "status"?, "data"?},
         "order_updates": [{"order_id", "remaining_amount"}, ...],
         "validate": bool?}

    Raises:
        BadRequest: If a field is missing or malformed
    """
    if not isinstance(body, dict):
        raise BadRequest("Body must be a JSON object")

    raw_trade = body.get("trade")
    raw_updates = body.get("order_updates", [])
    if not isinstance(raw_trade, dict):
        raise BadRequest("Missing 'trade' object")
    if not isinstance(raw_updates, list):
        raise BadRequest("'order_updates' must be a list")

    try:
        trade = TradeRecord(
            id=str(raw_trade["id"]),
            order_id=str(raw_trade["order_id"]),
            buyer_address=str(raw_trade["buyer_address"]),
            amount=Decimal(str(raw_trade["amount"])),
            status=str(raw_trade.get("status", "PENDING")),
            data=dict(raw_trade.get("data") or {}),
        )
        updates = [
            OrderBalanceUpdate(
                order_id=str(item["order_id"]),
                remaining_amount=Decimal(str(item["remaining_amount"])),
            )
            for item in raw_updates
        ]
    except KeyError as e:
        raise BadRequest(f"Missing field {e.args[0]!r}") from e
    except (InvalidOperation, TypeError, ValueError) as e:
        raise BadRequest(f"Invalid trade payload: {e}") from e

    return trade, updates, bool(body.get("validate", False))


# ============================================================
# API HANDLERS
# ============================================================

class MonitoringAPI:
    """HTTP handlers over the monitors and the trade coordinator."""

    def __init__(
        self,
        reconciliation: ReconciliationMonitor,
        health: HealthMonitor,
        coordinator: AtomicMutationCoordinator,
        engine: Optional[ReconciliationEngine] = None,
        alert_sink: Optional[SqlAlertSink] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """Initialize API."""
        self._reconciliation = reconciliation
        self._health = health
        self._coordinator = coordinator
        self._engine = engine
        self._alert_sink = alert_sink
        self._clock = clock or SystemClock()

    # --------------------------------------------------------
    # RECONCILIATION CONTROL
    # --------------------------------------------------------

    async def control_monitoring(self, request: web.Request) -> web.Response:
        """
        POST /api/monitoring

        Body: {"action": "start" | "stop" | "scan" | "status",
               "interval_seconds": float (start only)}
        """
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return error_response("Body must be JSON", 400)

        action = body.get("action") if isinstance(body, dict) else None
        if action not in MONITORING_ACTIONS:
            return error_response("Invalid action", 400)

        try:
            if action == "start":
                interval = body.get("interval_seconds")
                started = await self._reconciliation.start_monitoring(
                    float(interval) if interval is not None else None
                )
                return json_response({
                    "success": True,
                    "message": "Monitoring started" if started else "Monitoring already running",
                })

            if action == "stop":
                stopped = await self._reconciliation.stop_monitoring()
                return json_response({
                    "success": True,
                    "message": "Monitoring stopped" if stopped else "Monitoring was not running",
                })

            if action == "scan":
                metrics = await self._reconciliation.trigger_manual_scan()
                return json_response({
                    "success": True,
                    "message": "Manual scan completed",
                    "metrics": metrics,
                })

            return self._status_response()

        except ValueError as e:
            return error_response(str(e), 400)
        except Exception as e:
            logger.error(f"Monitoring action {action} failed: {e}", exc_info=True)
            return error_response(str(e) or "Internal server error", 500)

    async def get_monitoring(self, request: web.Request) -> web.Response:
        """GET /api/monitoring"""
        return self._status_response()

    def _status_response(self) -> web.Response:
        status = self._reconciliation.get_monitoring_status()
        return json_response({
            "success": True,
            "is_active": status.active,
            "last_scan": status.last_scan,
            "status": status,
        })

    # --------------------------------------------------------
    # TRADES
    # --------------------------------------------------------

    async def commit_trade(self, request: web.Request) -> web.Response:
        """
        POST /api/trades

        Commits a trade with its order balance updates atomically.
        With "validate": true the trade's order is first read from the
        ledger, which must still hold the trade amount. The cached
        balance is not rewritten by this check.
        """
        try:
            trade, updates, validate = parse_trade_request(await request.json())
        except json.JSONDecodeError:
            return error_response("Body must be JSON", 400)
        except BadRequest as e:
            return error_response(str(e), 400)

        try:
            if validate and self._engine is not None:
                await self._engine.ensure_available(trade.order_id, trade.amount)
            result = await self._coordinator.commit_trade_with_order_updates(trade, updates)
        except ValidationFailure as e:
            return json_response({"success": False, "error": e.to_dict()}, status=409)
        except AtomicCommitError as e:
            return json_response({"success": False, "error": e.to_dict()}, status=409)
        except RecordNotFound as e:
            return json_response({"success": False, "error": e.to_dict()}, status=404)
        except EscrowSyncError as e:
            logger.error(f"Trade {trade.id} could not be validated: {e.message}")
            return json_response({"success": False, "error": e.to_dict()}, status=503)

        return json_response(result, status=201)

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    async def liveness(self, request: web.Request) -> web.Response:
        """GET|HEAD /api/health"""
        return json_response({
            "status": "healthy",
            "timestamp": self._clock.now(),
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        })

    async def get_system_health(self, request: web.Request) -> web.Response:
        """GET /api/health/system (?refresh=true runs a check first)"""
        try:
            if request.query.get("refresh", "false").lower() == "true":
                health = await self._health.check_now()
            else:
                health = self._health.get_current_health()
            return json_response({
                "success": True,
                "data": health,
                "monitoring": self._health.get_monitoring_status(),
            })
        except Exception as e:
            logger.error(f"Error getting system health: {e}")
            return error_response(str(e), 500)

    async def get_health_history(self, request: web.Request) -> web.Response:
        """GET /api/health/history?limit=N"""
        try:
            limit = request.query.get("limit")
            history = self._health.get_health_history(int(limit) if limit else None)
        except ValueError:
            return error_response("limit must be an integer", 400)
        return json_response({"success": True, "data": history})

    async def get_uptime(self, request: web.Request) -> web.Response:
        """GET /api/health/uptime"""
        return json_response({"success": True, "data": self._health.get_uptime_stats()})

    async def get_health_metrics(self, request: web.Request) -> web.Response:
        """GET /api/health/metrics"""
        return json_response({"success": True, "data": self._health.get_health_metrics()})

    # --------------------------------------------------------
    # ALERTS
    # --------------------------------------------------------

    async def get_alerts(self, request: web.Request) -> web.Response:
        """
        GET /api/alerts

        Query params:
        - resolved: true / false
        - limit: Max number of alerts
        """
        if self._alert_sink is None:
            return json_response({"success": True, "data": []})

        try:
            resolved_param = request.query.get("resolved")
            resolved = None if resolved_param is None else resolved_param.lower() == "true"
            limit = int(request.query.get("limit", 100))
            alerts = await self._alert_sink.list_alerts(resolved=resolved, limit=limit)
            return json_response({"success": True, "data": alerts})
        except ValueError:
            return error_response("limit must be an integer", 400)
        except EscrowSyncError as e:
            logger.error(f"Error listing alerts: {e.message}")
            return error_response(e.message, 503)


# ============================================================
# APPLICATION FACTORY
# ============================================================

def setup_monitoring_routes(app: web.Application, api: MonitoringAPI) -> None:
    """Add every route to an existing application. GET routes also answer HEAD."""
    app.router.add_get("/api/health", api.liveness)
    app.router.add_get("/api/health/system", api.get_system_health)
    app.router.add_get("/api/health/history", api.get_health_history)
    app.router.add_get("/api/health/uptime", api.get_uptime)
    app.router.add_get("/api/health/metrics", api.get_health_metrics)
    app.router.add_get("/api/monitoring", api.get_monitoring)
    app.router.add_post("/api/monitoring", api.control_monitoring)
    app.router.add_post("/api/trades", api.commit_trade)
    app.router.add_get("/api/alerts", api.get_alerts)


def create_monitoring_app(api: MonitoringAPI) -> web.Application:
    """Create the aiohttp Application with all routes configured."""
    app = web.Application()
    setup_monitoring_routes(app, api)
    return app
