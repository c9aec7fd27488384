"""
Domain models for the ETH hourly workflow.

Feed-level records are frozen dataclasses (cheap, hashable, created on
every poll); the values handed between components and into alerts are
Pydantic models:

    IndicatorEngine   → IndicatorSnapshot
    OddsTracker       → OddsReading, OddsSample, OddsVelocity
    PremiumAnalyzer   → PremiumReading → PremiumAnalysis
    LiquidationTracker→ LiquidationEstimate
    ConfidenceScorer  → ConfidenceScore
    HourlyStateMachine→ HourWindow, HourPhase
    PositionMonitor   → Position, ExitKind
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from hourwatch.connectors.binance_client import Candle

__all__ = [
    "Candle",
    "Direction",
    "VelocityStatus",
    "BounceRisk",
    "Strength",
    "Recommendation",
    "HourPhase",
    "ExitKind",
    "IndicatorSnapshot",
    "OddsSample",
    "OddsReading",
    "OddsVelocity",
    "PremiumReading",
    "PremiumAnalysis",
    "LiquidationEstimate",
    "ScoreInputs",
    "ConfidenceScore",
    "HourWindow",
    "Position",
]


# ── Enumerations ────────────────────────────────────────────────────


class Direction(str, enum.Enum):
    UP = "UP"
    DOWN = "DOWN"

    @classmethod
    def of_move(cls, move: float) -> "Direction":
        """Flat counts as UP."""
        return cls.UP if move >= 0 else cls.DOWN

    @property
    def sign(self) -> int:
        return 1 if self is Direction.UP else -1


class VelocityStatus(str, enum.Enum):
    UNKNOWN = "UNKNOWN"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    STABLE = "STABLE"
    RISING = "RISING"
    RAPID_RISE = "RAPID_RISE"
    FALLING = "FALLING"


class BounceRisk(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Strength(str, enum.Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    EXTREME = "EXTREME"


class Recommendation(str, enum.Enum):
    WAIT = "WAIT"
    SKIP = "SKIP"
    SMALL_BET = "SMALL_BET"
    BUY = "BUY"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @property
    def opens_position(self) -> bool:
        return self in (Recommendation.BUY, Recommendation.SMALL_BET)


class HourPhase(str, enum.Enum):
    """Per-hour alert gate.

    WAITING → IN_WINDOW → ALERTED, or IN_WINDOW → EXPIRED when the entry
    window closes without a qualifying evaluation. Only rollover leaves
    ALERTED or EXPIRED.
    """

    WAITING = "WAITING"
    IN_WINDOW = "IN_WINDOW"
    ALERTED = "ALERTED"
    EXPIRED = "EXPIRED"


class ExitKind(str, enum.Enum):
    PRICE_REVERSAL = "PRICE_REVERSAL"
    BTC_REVERSAL = "BTC_REVERSAL"
    PREMIUM_FLIP = "PREMIUM_FLIP"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"


# ── Indicators ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndicatorSnapshot:
    """ATR14 and 20-bar average volume over completed bars."""

    atr14: float
    avg_volume20: float


# ── Odds ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OddsSample:
    """One odds poll. ``timestamp`` is epoch seconds."""

    timestamp: float
    up_odds: float
    down_odds: float

    def odds_for(self, direction: Direction) -> float:
        return self.up_odds if direction is Direction.UP else self.down_odds


@dataclass(frozen=True)
class OddsReading:
    """Decoded Polymarket market snapshot; either side may be missing."""

    slug: str
    title: str
    up_odds: float | None
    down_odds: float | None
    closed: bool = False

    @property
    def complete(self) -> bool:
        return self.up_odds is not None and self.down_odds is not None

    def odds_for(self, direction: Direction) -> float | None:
        return self.up_odds if direction is Direction.UP else self.down_odds


class OddsVelocity(BaseModel):
    """Rate of change of one side's odds across the sample buffer."""

    model_config = ConfigDict(frozen=True)

    velocity_per_minute: float = 0.0
    status: VelocityStatus = VelocityStatus.UNKNOWN
    minutes_tracked: float = 0.0
    oldest_odds: float | None = None
    newest_odds: float | None = None

    @property
    def velocity_percent(self) -> float:
        return self.velocity_per_minute * 100


# ── Premium ─────────────────────────────────────────────────────────


class PremiumReading(BaseModel):
    """Futures mark vs index price."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    premium_percent: float
    mark_price: float
    index_price: float
    funding_rate: float = 0.0


class PremiumAnalysis(BaseModel):
    """Bounce-risk classification of a premium reading for one direction."""

    model_config = ConfigDict(frozen=True)

    direction: Direction
    crowded: bool
    bounce_risk: BounceRisk
    analysis: str
    reading: PremiumReading

    @property
    def premium_percent(self) -> float:
        return self.reading.premium_percent


# ── Liquidations ────────────────────────────────────────────────────


class LiquidationEstimate(BaseModel):
    """Estimated liquidation volume over the lookback window."""

    model_config = ConfigDict(frozen=True)

    total_usd: float = 0.0
    long_usd: float = 0.0
    short_usd: float = 0.0
    direction: str = "none"  # "long", "short", "estimated", "none"
    method: str = "none"


# ── Scoring ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScoreInputs:
    """Everything the scorer reads, captured at one evaluation pass."""

    eth_move: float
    direction: Direction
    atr14: float | None = None
    relative_volume: float | None = None
    reference_move: float = 0.0
    current_odds: float | None = None
    premium: PremiumAnalysis | None = None
    liquidation_usd: float = 0.0
    velocity: VelocityStatus = VelocityStatus.UNKNOWN
    market_hour: int | None = None  # hour of day in the market timezone


class ConfidenceScore(BaseModel):
    """Weighted confidence score and the recommendation derived from it."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    breakdown: tuple[tuple[str, int], ...] = ()
    strength: Strength
    recommendation: Recommendation
    gate_reasons: tuple[str, ...] = ()

    @property
    def gated(self) -> bool:
        return bool(self.gate_reasons)


# ── Hour window & position ──────────────────────────────────────────


@dataclass(frozen=True)
class HourWindow:
    """One trading hour. Times are epoch milliseconds (Binance kline units)."""

    open_time: int
    open_price: float
    close_time: int
    reference_open_price: float | None = None

    def minute_of_hour(self, now_ms: int) -> float:
        return (now_ms - self.open_time) / 60_000


@dataclass
class Position:
    """A tracked recommendation; exit alerts accumulate until it is cleared."""

    direction: Direction
    entry_price: float
    entry_reference_price: float | None
    entry_premium: float | None
    entry_bounce_risk: BounceRisk | None
    entry_odds: float | None
    entry_time: datetime
    hour_end: datetime
    exit_alerts_sent: set[ExitKind] = field(default_factory=set)
