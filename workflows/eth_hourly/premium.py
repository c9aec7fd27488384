"""
Futures premium analysis — crowding ("bounce risk") from mark vs index.

premium% = (mark - index) / index × 100. A large positive premium means
longs are paying up (crowded long), a large negative one means crowded
shorts. The thresholds mirror by direction:

    UP:    > high → HIGH,  > medium → MEDIUM,  < -room → LOW (room to run)
    DOWN:  < -high → HIGH, < -medium → MEDIUM, > room → LOW (room to run)
    otherwise LOW (neutral)

Readings are cached per symbol for a short TTL; when a refresh fails the
last reading is used regardless of age.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from hourwatch.connectors.binance_client import AsyncBinanceClient
from hourwatch.errors import ConnectorError
from hourwatch.utils.cache import TTLCache
from workflows.eth_hourly.models import (
    BounceRisk,
    Direction,
    PremiumAnalysis,
    PremiumReading,
)

logger = structlog.get_logger(__name__)


def premium_percent(mark_price: float, index_price: float) -> float:
    return (mark_price - index_price) / index_price * 100


def classify_bounce_risk(
    reading: PremiumReading,
    direction: Direction,
    *,
    high: float = 0.15,
    medium: float = 0.08,
    room: float = 0.05,
) -> PremiumAnalysis:
    """Classify crowding against a trade in ``direction``."""
    # Flip the sign for DOWN so one set of comparisons covers both sides
    p = reading.premium_percent * direction.sign
    side = "longs" if direction is Direction.UP else "shorts"
    pct = f"{reading.premium_percent:+.3f}%"

    if p > high:
        risk, crowded = BounceRisk.HIGH, True
        analysis = f"Extreme {side} crowding ({pct}) — high bounce risk"
    elif p > medium:
        risk, crowded = BounceRisk.MEDIUM, True
        analysis = f"Moderate {side} crowding ({pct})"
    elif p < -room:
        risk, crowded = BounceRisk.LOW, False
        analysis = f"Premium against the crowd ({pct}) — room to run"
    else:
        risk, crowded = BounceRisk.LOW, False
        analysis = f"Neutral premium ({pct})"

    return PremiumAnalysis(
        direction=direction,
        crowded=crowded,
        bounce_risk=risk,
        analysis=analysis,
        reading=reading,
    )


class PremiumAnalyzer:
    """Polls /fapi/v1/premiumIndex and classifies bounce risk."""

    def __init__(
        self,
        client: AsyncBinanceClient,
        *,
        ttl_seconds: float = 5.0,
        high_threshold: float = 0.15,
        medium_threshold: float = 0.08,
        room_threshold: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._cache = TTLCache(ttl_seconds, clock=clock)
        self._high = high_threshold
        self._medium = medium_threshold
        self._room = room_threshold

    async def get_reading(self, symbol: str) -> PremiumReading | None:
        """Fresh cached reading, a new fetch, or the stale reading on failure."""
        cached = self._cache.get(symbol)
        if cached is not None:
            return cached

        try:
            index = await self._client.get_premium_index(symbol)
        except ConnectorError as e:
            stale = self._cache.get_stale(symbol)
            logger.warning(
                "premium_fetch_failed",
                symbol=symbol,
                using_stale=stale is not None,
                **e.to_dict(),
            )
            return stale

        reading = PremiumReading(
            symbol=symbol,
            premium_percent=premium_percent(index.mark_price, index.index_price),
            mark_price=index.mark_price,
            index_price=index.index_price,
            funding_rate=index.last_funding_rate,
        )
        self._cache.set(symbol, reading)
        return reading

    async def analyze(self, symbol: str, direction: Direction) -> PremiumAnalysis | None:
        """Bounce-risk analysis for ``direction``; None if no reading was ever obtained."""
        reading = await self.get_reading(symbol)
        if reading is None:
            return None
        return classify_bounce_risk(
            reading,
            direction,
            high=self._high,
            medium=self._medium,
            room=self._room,
        )
