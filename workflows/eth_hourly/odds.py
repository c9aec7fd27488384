"""
Polymarket odds tracking for the hourly "Up or Down" market.

  - market_slug: deterministic slug from the market-timezone wall clock
  - parse_outcome_prices / decode_event: the one decode boundary for Gamma
    payloads (arrays may arrive JSON-encoded as strings)
  - OddsTracker: bounded per-hour sample buffer and odds velocity

Velocity compares the oldest and newest sample in the buffer. The buffer is
cleared on every hour rollover so velocity never spans two markets.
"""

from __future__ import annotations

import json
import time
from collections import deque
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import structlog

from hourwatch.connectors.polymarket_connector import AsyncPolymarketClient
from hourwatch.errors import ConnectorError
from workflows.eth_hourly.models import (
    Direction,
    OddsReading,
    OddsSample,
    OddsVelocity,
    VelocityStatus,
)

logger = structlog.get_logger(__name__)

_MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

_UP_LABELS = ("up", "yes")
_DOWN_LABELS = ("down", "no")

# Minimum span between oldest and newest sample before velocity is trusted
MIN_VELOCITY_MINUTES = 0.5
RESOLVED_PRICE = 0.99


# ── Market Discovery ────────────────────────────────────────────────


def market_slug(
    when: datetime,
    *,
    asset: str = "ethereum",
    tz: str = "America/New_York",
) -> str:
    """Slug of the hourly market covering ``when``.

    ``ethereum-up-or-down-january-14-3pm-et``: 12-hour clock, noon is 12pm,
    midnight is 12am. Naive datetimes are taken as UTC.
    """
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    local = when.astimezone(ZoneInfo(tz))

    hour = local.hour
    ampm = "pm" if hour >= 12 else "am"
    if hour == 0:
        hour = 12
    elif hour > 12:
        hour -= 12

    return f"{asset}-up-or-down-{_MONTHS[local.month - 1]}-{local.day}-{hour}{ampm}-et"


def market_hour(when: datetime, tz: str = "America/New_York") -> int:
    """Hour of day (0-23) in the market timezone."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(ZoneInfo(tz)).hour


# ── Decode Boundary ─────────────────────────────────────────────────


def _decode_array(value) -> list | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, list) else None


def _to_odds(value) -> float | None:
    try:
        odds = float(value)
    except (TypeError, ValueError):
        return None
    return odds if 0.0 <= odds <= 1.0 else None


def parse_outcome_prices(market: dict | None) -> tuple[float | None, float | None]:
    """Map a Gamma market's outcomes/outcomePrices onto (up, down).

    Labels are matched case-insensitively: "up"/"yes" → UP, "down"/"no" → DOWN.
    Anything unparseable leaves that side as None.
    """
    if not isinstance(market, dict):
        return None, None

    outcomes = _decode_array(market.get("outcomes"))
    prices = _decode_array(market.get("outcomePrices"))
    if not outcomes or not prices:
        return None, None

    up = down = None
    for label, price in zip(outcomes, prices):
        if not isinstance(label, str):
            continue
        key = label.strip().lower()
        if key in _UP_LABELS:
            up = _to_odds(price)
        elif key in _DOWN_LABELS:
            down = _to_odds(price)
    return up, down


def decode_event(event: dict | None, slug: str) -> OddsReading | None:
    """Turn a Gamma event into an OddsReading, or None when it has no market."""
    if not isinstance(event, dict):
        return None
    markets = event.get("markets")
    if not isinstance(markets, list) or not markets or not isinstance(markets[0], dict):
        return None
    market = markets[0]

    up, down = parse_outcome_prices(market)
    if up is None and down is None:
        return None

    return OddsReading(
        slug=slug,
        title=str(event.get("title") or market.get("question") or slug),
        up_odds=up,
        down_odds=down,
        closed=bool(market.get("closed") or event.get("closed")),
    )


def resolved_outcome(reading: OddsReading | None) -> Direction | None:
    """Side a settled market paid out on, if the prices show it."""
    if reading is None:
        return None
    if reading.up_odds is not None and reading.up_odds >= RESOLVED_PRICE:
        return Direction.UP
    if reading.down_odds is not None and reading.down_odds >= RESOLVED_PRICE:
        return Direction.DOWN
    return None


# ── Tracker ─────────────────────────────────────────────────────────


class OddsTracker:
    """
    Polls the current hour's market and tracks odds velocity.

    Owns its sample buffer; the strategy clears it on hour rollover via
    ``reset_on_new_hour``.
    """

    def __init__(
        self,
        client: AsyncPolymarketClient,
        *,
        capacity: int = 10,
        rapid_threshold: float = 0.02,
        rising_threshold: float = 0.01,
        asset: str = "ethereum",
        tz: str = "America/New_York",
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._samples: deque[OddsSample] = deque(maxlen=capacity)
        self._rapid = rapid_threshold
        self._rising = rising_threshold
        self._asset = asset
        self._tz = tz
        self._clock = clock
        self._last_reading: OddsReading | None = None

    @property
    def samples(self) -> tuple[OddsSample, ...]:
        return tuple(self._samples)

    @property
    def last_reading(self) -> OddsReading | None:
        return self._last_reading

    # ── Buffer ───────────────────────────────────────────────────────

    def record_sample(
        self, up_odds: float, down_odds: float, timestamp: float | None = None
    ) -> None:
        """Append a sample; the oldest is evicted once the buffer is full."""
        ts = self._clock() if timestamp is None else timestamp
        self._samples.append(OddsSample(timestamp=ts, up_odds=up_odds, down_odds=down_odds))

    def velocity(self, direction: Direction = Direction.UP) -> OddsVelocity:
        """Change per minute of ``direction``'s odds, oldest vs newest sample."""
        if len(self._samples) < 2:
            return OddsVelocity(status=VelocityStatus.UNKNOWN)

        oldest, newest = self._samples[0], self._samples[-1]
        old_odds = oldest.odds_for(direction)
        new_odds = newest.odds_for(direction)
        minutes = (newest.timestamp - oldest.timestamp) / 60

        if minutes < MIN_VELOCITY_MINUTES:
            return OddsVelocity(
                status=VelocityStatus.INSUFFICIENT_DATA,
                minutes_tracked=minutes,
                oldest_odds=old_odds,
                newest_odds=new_odds,
            )

        velocity = (new_odds - old_odds) / minutes

        if velocity >= self._rapid:
            status = VelocityStatus.RAPID_RISE
        elif velocity >= self._rising:
            status = VelocityStatus.RISING
        elif velocity <= -self._rising:
            status = VelocityStatus.FALLING
        else:
            status = VelocityStatus.STABLE

        return OddsVelocity(
            velocity_per_minute=velocity,
            status=status,
            minutes_tracked=minutes,
            oldest_odds=old_odds,
            newest_odds=new_odds,
        )

    def reset_on_new_hour(self) -> None:
        """Drop all samples and the last reading."""
        self._samples.clear()
        self._last_reading = None
        logger.info("odds_history_cleared")

    # ── Fetching ─────────────────────────────────────────────────────

    def market_slug(self, when: datetime | None = None) -> str:
        when = when or datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return market_slug(when, asset=self._asset, tz=self._tz)

    async def fetch_reading(self, slug: str) -> OddsReading | None:
        """Fetch and decode one market. Never raises; failures yield None."""
        try:
            event = await self._client.get_event_by_slug(slug)
        except ConnectorError as e:
            logger.warning("odds_fetch_failed", slug=slug, **e.to_dict())
            return None
        reading = decode_event(event, slug)
        if reading is None:
            logger.debug("odds_market_unavailable", slug=slug)
        return reading

    async def poll(self, hour: datetime | None = None) -> OddsReading | None:
        """Fetch the market for ``hour`` (default: the clock's hour) and record a
        sample when both sides parse."""
        slug = self.market_slug(hour)
        reading = await self.fetch_reading(slug)
        if reading is None:
            return None
        if reading.complete:
            self.record_sample(reading.up_odds, reading.down_odds)
        self._last_reading = reading
        return reading
