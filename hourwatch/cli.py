#!/usr/bin/env python3
"""
hourwatch CLI — run the ETH hourly signal engine.

Usage:
    hourwatch run [--log-level DEBUG] [--json-logs]
    hourwatch market-slug [--at 2025-01-14T20:30:00Z]
    hourwatch signals

Settings come from the environment and ``.env`` (see .env.example).
"""

import argparse
import asyncio
import signal
import sys
from datetime import datetime, timezone

import structlog
from dotenv import load_dotenv

from hourwatch.config import get_platform_settings
from hourwatch.connectors import (
    BinanceConnector,
    BinanceTradeStream,
    ConnectorRegistry,
    DiscordConnector,
    PolymarketConnector,
)
from hourwatch.logging import setup_logging
from hourwatch.version import APP_NAME, VERSION
from workflows.eth_hourly.odds import market_slug
from workflows.eth_hourly.settings import get_strategy_settings
from workflows.eth_hourly.signal_log import JsonlSignalLog
from workflows.eth_hourly.strategy import EthHourlyStrategy

logger = structlog.get_logger(__name__)


async def run_strategy() -> None:
    """Set up connectors, run the strategy until SIGINT/SIGTERM, tear down."""
    platform = get_platform_settings()
    settings = get_strategy_settings()

    stream = BinanceTradeStream([settings.symbol, settings.reference_symbol])
    binance = BinanceConnector()
    polymarket = PolymarketConnector()
    discord = DiscordConnector(
        platform.discord_webhook_eth_hourly, footer=platform.notification_footer
    )

    registry = ConnectorRegistry()
    for connector in (stream, binance, polymarket, discord):
        registry.register(connector)
    await registry.setup_all()

    strategy = EthHourlyStrategy.build(
        settings,
        prices=stream,
        binance=binance.client,
        polymarket=polymarket.client,
        notifier=discord,
        signal_log=JsonlSignalLog(
            platform.signal_log_path, enabled=platform.signal_log_enabled
        ),
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises
            pass

    logger.info(
        "platform_starting",
        version=VERSION,
        platform=APP_NAME,
        environment=platform.environment,
        connectors=registry.names,
        discord_enabled=discord.enabled,
    )
    try:
        await strategy.start()
        await stop.wait()
    finally:
        await strategy.stop()
        await registry.teardown_all()
        logger.info("platform_stopped")


def print_market_slug(at: str | None) -> None:
    settings = get_strategy_settings()
    when = datetime.now(timezone.utc)
    if at:
        when = datetime.fromisoformat(at.replace("Z", "+00:00"))
    print(market_slug(when, asset=settings.market_asset, tz=settings.market_timezone))


def print_signal_stats() -> None:
    platform = get_platform_settings()
    stats = JsonlSignalLog(platform.signal_log_path).stats()
    for key, value in stats.items():
        print(f"  {key:<20} {value}")


def main():
    parser = argparse.ArgumentParser(description=f"{APP_NAME} {VERSION}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the ETH hourly signal engine")
    run_parser.add_argument("--log-level", help="Override LOG_LEVEL")
    run_parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON logs regardless of ENVIRONMENT",
    )

    slug_parser = subparsers.add_parser(
        "market-slug", help="Print the Polymarket slug for an hour"
    )
    slug_parser.add_argument("--at", help="ISO-8601 timestamp (default: now)")

    subparsers.add_parser("signals", help="Summarize the signal log")

    args = parser.parse_args()
    load_dotenv()

    if args.command == "run":
        platform = get_platform_settings()
        setup_logging(
            args.log_level or platform.log_level,
            json_output=args.json_logs or platform.json_logs,
        )
        try:
            asyncio.run(run_strategy())
        except KeyboardInterrupt:
            sys.exit(130)
    elif args.command == "market-slug":
        print_market_slug(args.at)
    elif args.command == "signals":
        print_signal_stats()


if __name__ == "__main__":
    main()
