"""Shadowtrader - Entry Point

Usage:
    python -m shadowtrader [--log-level LEVEL] [--json-logs] [--log-file PATH] COMMAND

Commands:
    reconcile - Close bot positions the tracked traders no longer hold
    drift     - Print the trader/bot drift report as JSON
    serve     - Run the dashboard JSON API
    version   - Show version

Examples:
    python -m shadowtrader reconcile
    python -m shadowtrader --log-level DEBUG drift
    python -m shadowtrader serve --port 4000
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional

import pydantic
import structlog

from shadowtrader import __version__
from shadowtrader.core.config import AppConfig
from shadowtrader.core.errors import SetupError, ShadowTraderError
from shadowtrader.core.logging import setup_logging
from shadowtrader.core.scheduler import CancellationToken, Scheduler
from shadowtrader.integrations.clob import CLOBGateway
from shadowtrader.integrations.data_api import DataApiClient
from shadowtrader.metrics import MATCH_RATE, init_metrics
from shadowtrader.services.execution import ExecutionRetryLoop
from shadowtrader.services.matcher import PositionMatcher
from shadowtrader.services.reconciliation import ReconciliationDriver
from shadowtrader.services.snapshot import SnapshotFetcher

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowtrader",
        description="Polymarket copy-trading reconciliation with a slippage guard",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Shadowtrader {__version__}",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (defaults to LOG_LEVEL)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit JSON logs (defaults to LOG_JSON)",
    )

    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("reconcile", help="Close stale bot positions once and exit")

    drift = subparsers.add_parser("drift", help="Print the drift report")
    drift.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Read only one page of this many positions per address (default: all)",
    )

    serve = subparsers.add_parser("serve", help="Run the dashboard JSON API")
    serve.add_argument("--host", default=None, help="Bind address (defaults to DASHBOARD_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (defaults to DASHBOARD_PORT)")

    subparsers.add_parser("version", help="Show version")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def install_signal_handlers(token: CancellationToken) -> None:
    """Cancel the token on SIGINT / SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, token.cancel, f"signal {sig.name}")
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / outside the main thread
            return


def _configure(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.load()
    settings = config.polymarket
    setup_logging(
        level=args.log_level or settings.log_level,
        json_output=settings.log_json if args.json_logs is None else args.json_logs,
        log_file=args.log_file,
        stream=sys.stderr if args.command == "drift" else None,
    )
    init_metrics(__version__)
    return config


def _fetcher(config: AppConfig, client: DataApiClient) -> SnapshotFetcher:
    """Raises SetupError when USER_ADDRESSES or PROXY_WALLET is empty."""
    settings = config.polymarket
    return SnapshotFetcher(client, settings.trader_addresses, settings.proxy_wallet.lower())


async def run_reconcile(config: AppConfig) -> int:
    """Run one reconciliation pass.

    Returns 0 once the pass completes, whatever the per-position outcomes,
    and 1 when the pass cannot start or its balance snapshot fails.
    """
    settings = config.polymarket
    token = CancellationToken()
    install_signal_handlers(token)
    scheduler = Scheduler(token)

    client = DataApiClient(settings.data_api_url, timeout=settings.request_timeout_seconds)
    gateway = CLOBGateway(settings)
    try:
        async with client:
            fetcher = _fetcher(config, client)
            log.info(
                "starting_reconcile",
                version=__version__,
                traders=len(fetcher.trader_addresses),
                slippage=config.slippage.to_dict(),
            )
            snapshot = await fetcher.positions()
            await gateway.connect()

            loop = ExecutionRetryLoop(config.slippage, gateway, gateway, scheduler=scheduler)
            driver = ReconciliationDriver(loop, gateway, scheduler=scheduler)
            report = await driver.reconcile(snapshot.all_trader_positions, snapshot.bot_positions)
    except ShadowTraderError as e:
        log.error("reconcile_setup_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await gateway.close()

    log.info("reconcile_report", **report.to_dict())
    return 0


async def run_drift(config: AppConfig, limit: Optional[int] = None) -> int:
    """Print the matcher summary and per-market drift as JSON."""
    settings = config.polymarket
    try:
        async with DataApiClient(settings.data_api_url, timeout=settings.request_timeout_seconds) as client:
            snapshot = await _fetcher(config, client).positions(limit=limit)
    except ShadowTraderError as e:
        log.error("drift_fetch_failed", error=str(e), error_type=type(e).__name__)
        return 1

    result = PositionMatcher().match(snapshot.all_trader_positions, snapshot.bot_positions)
    MATCH_RATE.set(result.match_rate)
    print(json.dumps({
        "summary": result.summary(),
        "matched": [pair.to_dict() for pair in result.matched],
        "traderOnly": [p.to_dict() for p in result.trader_only],
        "botOnly": [p.to_dict() for p in result.bot_only],
    }, indent=2))
    return 0


async def run_serve(config: AppConfig, host: Optional[str] = None, port: Optional[int] = None) -> int:
    """Serve the dashboard API until SIGINT / SIGTERM."""
    from shadowtrader.dashboard.server import DashboardServer

    settings = config.polymarket
    token = CancellationToken()
    install_signal_handlers(token)

    try:
        async with DataApiClient(settings.data_api_url, timeout=settings.request_timeout_seconds) as client:
            server = DashboardServer(
                config,
                _fetcher(config, client),
                host=host or settings.dashboard_host,
                port=port or settings.dashboard_port,
            )
            await server.start()
            try:
                await token.wait()
            finally:
                log.info("shutdown_requested", reason=token.reason)
                await server.stop()
    except (SetupError, OSError) as e:
        log.error("serve_failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "version":
        print(f"Shadowtrader {__version__}")
        return 0

    if args.command is None:
        build_parser().print_help()
        return 2

    try:
        config = _configure(args)
    except (SetupError, pydantic.ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.command == "reconcile":
        return asyncio.run(run_reconcile(config))
    if args.command == "drift":
        return asyncio.run(run_drift(config, limit=args.limit))
    return asyncio.run(run_serve(config, host=args.host, port=args.port))


if __name__ == "__main__":
    sys.exit(main())
