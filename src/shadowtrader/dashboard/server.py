"""Read-only JSON API for the copy-trading dashboard.

Proxies the data API for the tracked traders and the bot wallet and serves
the drift report computed server-side. All state lives on a DashboardState
owned by the server instance; there are no module-level globals.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import structlog
from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shadowtrader.core.config import AppConfig
from shadowtrader.core.errors import ShadowTraderError
from shadowtrader.services.analytics import (
    average_copy_delay,
    average_size_ratio,
    average_trade_slippage,
    portfolio_summary,
    trade_slippages,
)
from shadowtrader.services.matcher import PositionMatcher
from shadowtrader.services.snapshot import PortfolioSnapshot, SnapshotFetcher

log = structlog.get_logger()

DEFAULT_POSITIONS_LIMIT = 100
DEFAULT_ACTIVITY_LIMIT = 50
MAX_LIMIT = 500


@dataclass
class DashboardState:
    """Latest snapshot and derived report served by the dashboard."""

    snapshot: Optional[PortfolioSnapshot] = None
    drift: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
    requests_served: int = 0
    started_at: float = field(default_factory=time.time)


def _error_message(error: Exception) -> str:
    cause = getattr(error, "cause", None) or error
    if isinstance(cause, httpx.HTTPStatusError):
        return f"{cause.response.status_code} {cause.response.reason_phrase}"
    return str(error) or type(error).__name__


def _limit(request: web.Request, default: int) -> int:
    try:
        value = int(request.query.get("limit", default))
    except ValueError:
        raise web.HTTPBadRequest(reason="limit must be an integer")
    return max(1, min(value, MAX_LIMIT))


class DashboardServer:
    """aiohttp server exposing config, positions, activity and drift."""

    def __init__(
        self,
        config: AppConfig,
        fetcher: SnapshotFetcher,
        host: str = "0.0.0.0",
        port: int = 4000,
        matcher: Optional[PositionMatcher] = None,
    ):
        self.config = config
        self.host = host
        self.port = port
        self.state = DashboardState()
        self._fetcher = fetcher
        self._matcher = matcher or PositionMatcher()
        self._runner: Optional[web.AppRunner] = None
        self._log = log.bind(component="dashboard")

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/config", self._handle_config)
        app.router.add_get("/api/positions", self._handle_positions)
        app.router.add_get("/api/activity", self._handle_activity)
        app.router.add_get("/api/drift", self._handle_drift)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """Start the dashboard server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        self._log.info("dashboard_started", url=f"http://{self.host}:{self.port}/api/config")

    async def stop(self) -> None:
        """Stop the dashboard server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_config(self, request: web.Request) -> web.Response:
        self.state.requests_served += 1
        return web.json_response({
            "traders": self._fetcher.trader_addresses,
            "proxyWallet": self._fetcher.bot_address,
            "slippage": self.config.slippage.to_dict(),
            "copyStrategy": self.config.copy_trading.to_dict(),
            "timestamp": int(time.time() * 1000),
        })

    async def _handle_positions(self, request: web.Request) -> web.Response:
        self.state.requests_served += 1
        limit = _limit(request, DEFAULT_POSITIONS_LIMIT)
        try:
            snapshot = await self._fetcher.positions(limit=limit)
        except (ShadowTraderError, httpx.HTTPError) as e:
            return self._error_response("Failed to fetch positions", e)

        self.state.snapshot = snapshot
        return web.json_response({
            "traders": [
                {"address": address, "positions": [p.to_dict() for p in positions]}
                for address, positions in snapshot.trader_positions.items()
            ],
            "bot": {
                "address": snapshot.bot_address,
                "positions": [p.to_dict() for p in snapshot.bot_positions],
            },
            "timestamp": int(snapshot.taken_at * 1000),
        })

    async def _handle_activity(self, request: web.Request) -> web.Response:
        self.state.requests_served += 1
        limit = _limit(request, DEFAULT_ACTIVITY_LIMIT)
        try:
            traders, bot = await self._fetcher.activity(limit=limit)
        except (ShadowTraderError, httpx.HTTPError) as e:
            return self._error_response("Failed to fetch activity", e)

        all_trader_activity = [a for records in traders.values() for a in records]
        delay = average_copy_delay(all_trader_activity, bot)
        slippage = average_trade_slippage(all_trader_activity, bot)
        return web.json_response({
            "traders": [
                {"address": address, "activity": [a.to_dict() for a in records]}
                for address, records in traders.items()
            ],
            "bot": {"address": self._fetcher.bot_address, "activity": [a.to_dict() for a in bot]},
            "avgCopyDelaySeconds": delay,
            "avgTradeSlippagePct": round(float(slippage), 2) if slippage is not None else None,
            "tradeComparison": [t.to_dict() for t in trade_slippages(all_trader_activity, bot)],
            "timestamp": int(time.time() * 1000),
        })

    async def _handle_drift(self, request: web.Request) -> web.Response:
        self.state.requests_served += 1
        limit = _limit(request, DEFAULT_POSITIONS_LIMIT)
        try:
            snapshot = await self._fetcher.positions(limit=limit)
        except (ShadowTraderError, httpx.HTTPError) as e:
            return self._error_response("Failed to fetch positions", e)

        trader_positions = snapshot.all_trader_positions
        result = self._matcher.match(trader_positions, snapshot.bot_positions)
        drift = {
            "summary": result.summary(),
            "matched": [pair.to_dict() for pair in result.matched],
            "traderOnly": [p.to_dict() for p in result.trader_only],
            "botOnly": [p.to_dict() for p in result.bot_only],
            "sizeRatio": round(float(average_size_ratio(trader_positions, snapshot.bot_positions)), 2),
            "bot": portfolio_summary(snapshot.bot_positions).to_dict(),
            "timestamp": int(snapshot.taken_at * 1000),
        }
        self.state.snapshot = snapshot
        self.state.drift = drift
        self.state.last_error = None
        return web.json_response(drift)

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "healthy" if self.state.last_error is None else "degraded",
            "uptimeSeconds": round(time.time() - self.state.started_at, 1),
            "requestsServed": self.state.requests_served,
            "lastError": self.state.last_error,
        })

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        response = web.Response(body=generate_latest())
        response.headers["Content-Type"] = CONTENT_TYPE_LATEST
        return response

    def _error_response(self, error: str, exc: Exception) -> web.Response:
        message = _error_message(exc)
        self.state.last_error = message
        self._log.error("dashboard_fetch_failed", error=error, message=message)
        return web.json_response({"error": error, "message": message}, status=500)

