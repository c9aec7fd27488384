"""
Connectors — integration blocks for the external services.

Each connector wraps one external service and is created explicitly by the
runner; nothing here is a process-wide singleton.

Usage:
    from hourwatch.connectors import BinanceConnector, ConnectorRegistry

    registry = ConnectorRegistry()
    binance = BinanceConnector()
    registry.register(binance)
    await registry.setup_all()
    candles = await binance.client.get_klines("ETHUSDT")
"""

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.connectors.registry import ConnectorRegistry
from hourwatch.connectors.binance_client import (
    AsyncBinanceClient,
    BinanceConnector,
    Candle,
    OpenInterest,
    PremiumIndex,
)
from hourwatch.connectors.binance_feed import BinanceTradeStream
from hourwatch.connectors.polymarket_connector import (
    AsyncPolymarketClient,
    PolymarketConnector,
)
from hourwatch.connectors.discord_connector import (
    AsyncDiscordWebhookClient,
    DiscordConnector,
)

__all__ = [
    "BaseConnector",
    "ConnectorRegistry",
    "AsyncBinanceClient",
    "BinanceConnector",
    "Candle",
    "OpenInterest",
    "PremiumIndex",
    "BinanceTradeStream",
    "AsyncPolymarketClient",
    "PolymarketConnector",
    "AsyncDiscordWebhookClient",
    "DiscordConnector",
]
