"""
AsyncBinanceClient — Binance spot + USDⓈ-M futures REST reads.

Provides the polled data sources of the ETH hourly strategy:
  - 1h klines (hour open reference + indicator window)
  - futures premium index (mark vs index price)
  - futures open interest + last price (liquidation estimate)

All endpoints are public, no API key needed. Every response passes through
a ``parse_*`` function that turns the raw JSON into a typed record or
raises ``PayloadError``; callers never see raw payload shapes.

Usage:
    client = AsyncBinanceClient()
    candles = await client.get_klines("ETHUSDT", interval="1h", limit=22)
    premium = await client.get_premium_index("ETHUSDT")
    await client.close()
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx
import structlog

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.errors import (
    ConnectorError,
    ConnectorRateLimitError,
    ConnectorUnavailableError,
    PayloadError,
)

logger = structlog.get_logger(__name__)

BINANCE_API_URL = "https://api.binance.com"
BINANCE_FUTURES_URL = "https://fapi.binance.com"


# ── Typed Records ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar. ``open_time`` is epoch milliseconds."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class PremiumIndex:
    """Futures mark/index snapshot from /fapi/v1/premiumIndex."""

    symbol: str
    mark_price: float
    index_price: float
    last_funding_rate: float


@dataclass(frozen=True)
class OpenInterest:
    """Futures open interest in contracts, with the price used to value it."""

    symbol: str
    open_interest: float
    price: float

    @property
    def usd_value(self) -> float:
        return self.open_interest * self.price


# ── Decode Boundary ──────────────────────────────────────────────────


def parse_klines(payload) -> list[Candle]:
    """Decode a klines array ``[[openTime, open, high, low, close, volume, ...]]``."""
    if not isinstance(payload, list):
        raise PayloadError(
            "klines payload is not a list", connector_name="binance"
        )
    try:
        return [
            Candle(
                open_time=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
            for row in payload
        ]
    except (IndexError, TypeError, ValueError) as e:
        raise PayloadError(
            f"Malformed kline row: {e}", connector_name="binance"
        ) from e


def parse_premium_index(payload) -> PremiumIndex:
    """Decode ``{symbol, markPrice, indexPrice, lastFundingRate}``."""
    if not isinstance(payload, dict):
        raise PayloadError(
            "premiumIndex payload is not an object", connector_name="binance"
        )
    try:
        index = PremiumIndex(
            symbol=str(payload.get("symbol", "")),
            mark_price=float(payload["markPrice"]),
            index_price=float(payload["indexPrice"]),
            last_funding_rate=float(payload.get("lastFundingRate") or 0.0),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise PayloadError(
            f"Malformed premiumIndex: {e}", connector_name="binance"
        ) from e
    if index.index_price <= 0:
        raise PayloadError(
            "premiumIndex has non-positive indexPrice", connector_name="binance"
        )
    return index


def _parse_float_field(payload, key: str) -> float:
    if not isinstance(payload, dict):
        raise PayloadError(f"{key} payload is not an object", connector_name="binance")
    try:
        return float(payload[key])
    except (KeyError, TypeError, ValueError) as e:
        raise PayloadError(f"Malformed {key}: {e}", connector_name="binance") from e


# ── Async Binance Client ─────────────────────────────────────────────


class AsyncBinanceClient:
    """
    Async Binance REST client for the public market-data endpoints.

    Features:
    - httpx.AsyncClient with HTTP/2 and connection pooling (spot + futures)
    - Typed decode of every payload
    - Structured logging for every API call
    - No automatic retries: a failed call raises and the caller keeps
      its previous value until the next scheduled poll
    """

    def __init__(self, *, timeout: float = 5.0):
        self._spot = httpx.AsyncClient(
            base_url=BINANCE_API_URL,
            http2=True,
            timeout=httpx.Timeout(timeout, connect=3.0),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
        )
        self._futures = httpx.AsyncClient(
            base_url=BINANCE_FUTURES_URL,
            http2=True,
            timeout=httpx.Timeout(timeout, connect=3.0),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
        )

    async def _request(
        self, http: httpx.AsyncClient, method: str, path: str, **kwargs
    ) -> dict | list:
        """Execute a request with error mapping."""
        start = time.monotonic()
        try:
            resp = await http.request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise ConnectorUnavailableError(
                f"Connection failed: {e}", connector_name="binance"
            ) from e
        except httpx.TimeoutException as e:
            raise ConnectorUnavailableError(
                f"Request timed out: {e}", connector_name="binance"
            ) from e
        except httpx.HTTPError as e:
            raise ConnectorUnavailableError(
                f"Transport error: {e}", connector_name="binance"
            ) from e

        latency_ms = (time.monotonic() - start) * 1000

        if resp.status_code in (418, 429):
            logger.warning("binance_rate_limited", path=path, status=resp.status_code)
            raise ConnectorRateLimitError(
                "Rate limit exceeded", connector_name="binance"
            )
        if resp.status_code >= 500:
            raise ConnectorUnavailableError(
                f"Binance API error: {resp.status_code}",
                connector_name="binance",
                detail=str(resp.status_code),
            )
        if resp.status_code >= 400:
            raise ConnectorError(
                f"Binance API error: {resp.status_code} — {resp.text}",
                connector_name="binance",
                detail=str(resp.status_code),
            )

        logger.debug(
            "binance_request",
            method=method,
            path=path,
            status=resp.status_code,
            latency_ms=round(latency_ms),
        )
        try:
            return resp.json()
        except ValueError as e:
            raise PayloadError(
                f"Response is not JSON: {e}", connector_name="binance"
            ) from e

    # ── Spot ─────────────────────────────────────────────────────────

    async def get_klines(
        self, symbol: str, *, interval: str = "1h", limit: int = 22
    ) -> list[Candle]:
        """Fetch the most recent ``limit`` bars, oldest first.

        The last bar is the one still in progress.
        """
        data = await self._request(
            self._spot,
            "GET",
            "/api/v3/klines",
            params={"symbol": symbol, "interval": interval, "limit": limit},
        )
        return parse_klines(data)

    # ── Futures ──────────────────────────────────────────────────────

    async def get_premium_index(self, symbol: str) -> PremiumIndex:
        """Fetch mark price, index price and last funding rate."""
        data = await self._request(
            self._futures, "GET", "/fapi/v1/premiumIndex", params={"symbol": symbol}
        )
        return parse_premium_index(data)

    async def get_open_interest(self, symbol: str) -> OpenInterest:
        """Fetch open interest together with the last futures price."""
        oi_data = await self._request(
            self._futures, "GET", "/fapi/v1/openInterest", params={"symbol": symbol}
        )
        price_data = await self._request(
            self._futures, "GET", "/fapi/v1/ticker/price", params={"symbol": symbol}
        )
        return OpenInterest(
            symbol=symbol,
            open_interest=_parse_float_field(oi_data, "openInterest"),
            price=_parse_float_field(price_data, "price"),
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close both HTTP connection pools."""
        await self._spot.aclose()
        await self._futures.aclose()


# ── Connector ────────────────────────────────────────────────────────


class BinanceConnector(BaseConnector):
    """Binance public REST data — klines, premium index, open interest."""

    @property
    def name(self) -> str:
        return "binance"

    @property
    def description(self) -> str:
        return "Binance spot klines + futures premium/open interest"

    def __init__(self, *, timeout: float = 5.0):
        self._timeout = timeout
        self._client: AsyncBinanceClient | None = None

    @property
    def client(self) -> AsyncBinanceClient:
        """Get the async Binance client. Lazy-initializes on first access."""
        if self._client is None:
            self._client = AsyncBinanceClient(timeout=self._timeout)
        return self._client

    async def setup(self) -> None:
        _ = self.client

    async def teardown(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
