"""
BinanceTradeStream — live last-trade prices via Binance WebSocket.

Subscribes to the combined ``aggTrade`` stream for every tracked symbol
and keeps only the latest price per symbol. No API key needed.

Reconnects with exponential backoff (tenacity) until stopped. The time of
the last tick per symbol is exposed so callers can judge data freshness.

Usage:
    feed = BinanceTradeStream(["ETHUSDT", "BTCUSDT"])
    await feed.setup()
    eth = feed.price("ETHUSDT")
    await feed.teardown()
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Callable, Iterable

import structlog
import websockets
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    wait_exponential,
)

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.errors import ConnectorUnavailableError

logger = structlog.get_logger(__name__)

BINANCE_STREAM_URL = "wss://stream.binance.com:9443/stream"

class BinanceTradeStream(BaseConnector):
    """
    Real-time last-trade price feed for a set of symbols.

    State is written from the websocket task only; readers get the most
    recent value without awaiting.
    """

    def __init__(
        self,
        symbols: Iterable[str] = ("ETHUSDT", "BTCUSDT"),
        *,
        url: str = BINANCE_STREAM_URL,
        clock: Callable[[], float] = time.time,
    ):
        self._symbols = [s.upper() for s in symbols]
        self._url = url
        self._clock = clock
        self._prices: dict[str, float] = {}
        self._last_tick: dict[str, float] = {}
        self._ws = None
        self._task: asyncio.Task | None = None
        self._running = False
        self._connected = False

    @property
    def name(self) -> str:
        return "binance_stream"

    @property
    def description(self) -> str:
        return f"Binance aggTrade stream ({', '.join(self._symbols)})"

    @property
    def stream_url(self) -> str:
        streams = "/".join(f"{s.lower()}@aggTrade" for s in self._symbols)
        return f"{self._url}?streams={streams}"

    @property
    def connected(self) -> bool:
        return self._connected

    # ── Reads ────────────────────────────────────────────────────────

    def price(self, symbol: str) -> float | None:
        """Latest traded price for ``symbol``, or None before the first tick."""
        return self._prices.get(symbol.upper())

    def seconds_since_tick(self, symbol: str | None = None) -> float | None:
        """Age of the newest tick (for ``symbol``, or across all symbols)."""
        if symbol is not None:
            ts = self._last_tick.get(symbol.upper())
        else:
            ts = max(self._last_tick.values(), default=None)
        if ts is None:
            return None
        return self._clock() - ts

    # ── Lifecycle ────────────────────────────────────────────────────

    async def setup(self) -> None:
        """Start the WebSocket connection and price feed."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._ws_loop(), name="binance_trade_stream")
        logger.info("binance_stream_started", symbols=self._symbols)

    async def teardown(self) -> None:
        """Stop the WebSocket connection."""
        self._running = False
        if self._ws:
            await self._ws.close()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._connected = False
        logger.info("binance_stream_stopped")

    async def _ws_loop(self) -> None:
        """Consume the stream, reconnecting with backoff while running."""
        retrying = AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=1, max=30),
            retry=retry_if_exception_type(
                (OSError, websockets.WebSocketException, ConnectorUnavailableError)
            ),
            stop=lambda _state: not self._running,
            before_sleep=self._log_reconnect,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._consume()
        except (OSError, websockets.WebSocketException, ConnectorUnavailableError) as e:
            # Only reachable once stopped; a live loop keeps retrying
            logger.info("binance_stream_exit", error=str(e))

    async def _consume(self) -> None:
        async with websockets.connect(self.stream_url, ping_interval=30) as ws:
            self._ws = ws
            self._connected = True
            logger.info("binance_ws_connected")
            try:
                async for msg in ws:
                    if not self._running:
                        return
                    self._process_message(msg)
            finally:
                self._connected = False
        if self._running:
            raise ConnectorUnavailableError(
                "Stream closed by server", connector_name=self.name
            )

    @staticmethod
    def _log_reconnect(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "binance_ws_reconnecting",
            attempt=retry_state.attempt_number,
            wait_seconds=round(retry_state.next_action.sleep, 1)
            if retry_state.next_action
            else None,
            error=str(exc),
        )

    def _process_message(self, raw: str | bytes) -> None:
        """Process one combined-stream aggTrade message.

        ``{"stream": "ethusdt@aggTrade", "data": {"s": "ETHUSDT", "p": "3012.5", ...}}``
        Malformed frames are dropped.
        """
        try:
            message = json.loads(raw)
            trade = message.get("data", message)
            symbol = str(trade["s"]).upper()
            price = float(trade["p"])
        except (ValueError, TypeError, KeyError, AttributeError):
            logger.debug("binance_ws_bad_frame")
            return

        if symbol not in self._symbols or price <= 0:
            return

        self._prices[symbol] = price
        self._last_tick[symbol] = self._clock()
