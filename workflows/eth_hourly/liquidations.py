"""
Liquidation estimate — inferred from open-interest drops.

The raw force-order feed is not reliably public, so liquidations are
estimated the way the derivatives desk reads them:

1. Open interest (USD) dropped by ≥ ``oi_drop_pct`` since the previous poll,
   and that poll is younger than the lookback window → the drop is the
   estimate. Price up means shorts were liquidated, price down means longs.
2. If the open-interest call fails, a volatility proxy from the last two
   hourly closes: $10M per 1% hourly move above 5%.
3. Anything else → zero. This module never raises.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import structlog

from hourwatch.connectors.binance_client import AsyncBinanceClient
from hourwatch.errors import ConnectorError
from hourwatch.utils.cache import TTLCache
from workflows.eth_hourly.models import LiquidationEstimate

logger = structlog.get_logger(__name__)

_VOLATILITY_FLOOR_PCT = 5.0
_USD_PER_PCT_ABOVE_FLOOR = 10_000_000

_NONE = LiquidationEstimate()


@dataclass(frozen=True)
class _OISnapshot:
    oi_usd: float
    price: float
    timestamp: float


class LiquidationTracker:
    """Per-symbol open-interest tracker with a short result cache."""

    def __init__(
        self,
        client: AsyncBinanceClient,
        *,
        enabled: bool = True,
        cache_seconds: float = 60.0,
        lookback_seconds: float = 300.0,
        oi_drop_pct: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._enabled = enabled
        self._cache = TTLCache(cache_seconds, clock=clock)
        self._lookback = lookback_seconds
        self._oi_drop_pct = oi_drop_pct
        self._clock = clock
        self._previous: dict[str, _OISnapshot] = {}

        if not enabled:
            logger.info("liquidation_tracking_disabled")

    async def estimate(self, symbol: str) -> LiquidationEstimate:
        """Liquidation estimate for ``symbol`` (futures symbol, e.g. ETHUSDT)."""
        if not self._enabled:
            return _NONE

        cached = self._cache.get(symbol)
        if cached is not None:
            return cached

        try:
            result = await self._track_open_interest(symbol)
        except ConnectorError as e:
            logger.debug("liquidation_oi_failed", symbol=symbol, error=str(e))
            result = await self._volatility_proxy(symbol)

        self._cache.set(symbol, result)
        return result

    async def _track_open_interest(self, symbol: str) -> LiquidationEstimate:
        oi = await self._client.get_open_interest(symbol)
        now = self._clock()
        current = _OISnapshot(oi_usd=oi.usd_value, price=oi.price, timestamp=now)
        previous = self._previous.get(symbol)
        self._previous[symbol] = current

        if previous is None or previous.oi_usd <= 0:
            return LiquidationEstimate(method="open-interest")

        drop_usd = previous.oi_usd - current.oi_usd
        drop_pct = drop_usd / previous.oi_usd * 100
        if drop_usd <= 0 or drop_pct <= self._oi_drop_pct:
            return LiquidationEstimate(method="open-interest")
        if now - previous.timestamp >= self._lookback:
            return LiquidationEstimate(method="open-interest")

        if current.price > previous.price:
            direction = "short"
        elif current.price < previous.price:
            direction = "long"
        else:
            direction = "none"

        logger.info(
            "liquidation_oi_drop",
            symbol=symbol,
            drop_usd_m=round(drop_usd / 1e6, 2),
            drop_pct=round(drop_pct, 2),
            liquidated=direction,
        )
        return LiquidationEstimate(
            total_usd=drop_usd,
            long_usd=drop_usd if direction == "long" else 0.0,
            short_usd=drop_usd if direction == "short" else 0.0,
            direction=direction,
            method="open-interest",
        )

    async def _volatility_proxy(self, symbol: str) -> LiquidationEstimate:
        try:
            candles = await self._client.get_klines(symbol, interval="1h", limit=2)
        except ConnectorError as e:
            logger.debug("liquidation_proxy_failed", symbol=symbol, error=str(e))
            return _NONE
        if len(candles) < 2 or candles[0].close <= 0:
            return _NONE

        change_pct = abs(candles[1].close - candles[0].close) / candles[0].close * 100
        if change_pct <= _VOLATILITY_FLOOR_PCT:
            return LiquidationEstimate(method="volatility-proxy")

        estimate = (change_pct - _VOLATILITY_FLOOR_PCT) * _USD_PER_PCT_ABOVE_FLOOR
        logger.info(
            "liquidation_volatility_estimate",
            symbol=symbol,
            estimate_usd_m=round(estimate / 1e6, 1),
            hourly_move_pct=round(change_pct, 2),
        )
        return LiquidationEstimate(
            total_usd=estimate,
            direction="estimated",
            method="volatility-proxy",
        )
