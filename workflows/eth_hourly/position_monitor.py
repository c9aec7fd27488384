"""
PositionMonitor — exit-risk watch over one registered recommendation.

Timer checks (``check_exit_conditions``, every few seconds):
  1. hour end reached → clear the position, no alert
  2. PRICE_REVERSAL   price moved ≥ threshold against the entry
  3. BTC_REVERSAL     reference asset moved ≥ its threshold against the entry
  4. PREMIUM_FLIP     entry bounce risk LOW, current bounce risk HIGH

Odds checks (``check_odds_conditions``, on every fresh odds reading):
  hour end reached → clear the position, no alert
  5. TAKE_PROFIT      position-side odds < take-profit threshold
     STOP_LOSS        position-side odds > stop-loss threshold

Each ExitKind fires at most once per Position. Firing never clears the
position; only hour end, rollover or a new registration do.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Protocol

import structlog

from workflows.eth_hourly import notifications
from workflows.eth_hourly.models import (
    BounceRisk,
    Direction,
    ExitKind,
    OddsReading,
    Position,
    PremiumAnalysis,
)
from workflows.eth_hourly.notifications import NotificationSink
from workflows.eth_hourly.premium import PremiumAnalyzer

logger = structlog.get_logger(__name__)


class PriceSource(Protocol):
    def price(self, symbol: str) -> float | None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PositionMonitor:
    """Holds at most one Position and raises each exit warning once."""

    def __init__(
        self,
        notifier: NotificationSink,
        premium: PremiumAnalyzer,
        prices: PriceSource,
        *,
        symbol: str = "ETHUSDT",
        reference_symbol: str = "BTCUSDT",
        price_reversal_usd: float = 15.0,
        reference_reversal_usd: float = 200.0,
        take_profit_odds: float = 0.50,
        stop_loss_odds: float = 0.85,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._notifier = notifier
        self._premium = premium
        self._prices = prices
        self._symbol = symbol
        self._reference_symbol = reference_symbol
        self._reference_label = reference_symbol.removesuffix("USDT")
        self._price_reversal = price_reversal_usd
        self._reference_reversal = reference_reversal_usd
        self._take_profit = take_profit_odds
        self._stop_loss = stop_loss_odds
        self._clock = clock
        self._position: Position | None = None

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def has_active_position(self) -> bool:
        return self._position is not None

    # ── Lifecycle ────────────────────────────────────────────────────

    def register(
        self,
        *,
        direction: Direction,
        entry_price: float,
        hour_end: datetime,
        entry_reference_price: float | None = None,
        premium: PremiumAnalysis | None = None,
        entry_odds: float | None = None,
    ) -> Position:
        """Start watching a new position, replacing any previous one."""
        if self._position is not None:
            self.clear(reason="replaced")

        self._position = Position(
            direction=direction,
            entry_price=entry_price,
            entry_reference_price=entry_reference_price,
            entry_premium=premium.premium_percent if premium else None,
            entry_bounce_risk=premium.bounce_risk if premium else None,
            entry_odds=entry_odds,
            entry_time=self._clock(),
            hour_end=hour_end,
        )
        logger.info(
            "position_registered",
            direction=direction.value,
            entry_price=entry_price,
            entry_odds=entry_odds,
            hour_end=hour_end.isoformat(),
        )
        return self._position

    def clear(self, reason: str = "manual") -> None:
        if self._position is None:
            return
        logger.info(
            "position_cleared",
            reason=reason,
            direction=self._position.direction.value,
            exits_fired=sorted(k.value for k in self._position.exit_alerts_sent),
        )
        self._position = None

    # ── Checks ───────────────────────────────────────────────────────

    async def check_exit_conditions(self) -> list[ExitKind]:
        """Run the timer checks. Returns the exit kinds fired this call."""
        pos = self._position
        if pos is None:
            return []

        if self._clock() >= pos.hour_end:
            self.clear(reason="hour_end")
            return []

        fired = []
        sign = pos.direction.sign

        price = self._prices.price(self._symbol)
        if price is not None:
            move = price - pos.entry_price
            if -move * sign >= self._price_reversal:
                fired += await self._fire(
                    pos,
                    ExitKind.PRICE_REVERSAL,
                    f"ETH reversed ${abs(move):.2f} against your {pos.direction.value} position!",
                    {"Current Price": price, "Entry Price": pos.entry_price, "Move": move},
                )

        ref_price = self._prices.price(self._reference_symbol)
        if ref_price is not None and pos.entry_reference_price is not None:
            ref_move = ref_price - pos.entry_reference_price
            if -ref_move * sign >= self._reference_reversal:
                fired += await self._fire(
                    pos,
                    ExitKind.BTC_REVERSAL,
                    f"{self._reference_label} reversed ${abs(ref_move):.2f} "
                    f"against your {pos.direction.value} position!",
                    {
                        f"Current {self._reference_label}": ref_price,
                        f"Entry {self._reference_label}": pos.entry_reference_price,
                        f"{self._reference_label} Move": ref_move,
                    },
                )

        if (
            pos.entry_bounce_risk is BounceRisk.LOW
            and ExitKind.PREMIUM_FLIP not in pos.exit_alerts_sent
            and self._position is pos
        ):
            analysis = await self._premium.analyze(self._symbol, pos.direction)
            if analysis is not None and analysis.bounce_risk is BounceRisk.HIGH:
                fired += await self._fire(
                    pos,
                    ExitKind.PREMIUM_FLIP,
                    "Bounce risk flipped from LOW to HIGH! "
                    f"Consider exiting your {pos.direction.value} position.",
                    {
                        "Entry Premium": pos.entry_premium,
                        "Current Premium": analysis.premium_percent,
                        "Analysis": analysis.analysis,
                    },
                )
        return fired

    async def check_odds_conditions(self, reading: OddsReading) -> list[ExitKind]:
        """Take-profit / stop-loss against the position side's odds."""
        pos = self._position
        if pos is None:
            return []
        if self._clock() >= pos.hour_end:
            self.clear(reason="hour_end")
            return []
        odds = reading.odds_for(pos.direction)
        if odds is None:
            return []

        fired = []
        details = {"Entry Odds": pos.entry_odds, "Current Odds": odds}
        if odds < self._take_profit:
            fired += await self._fire(
                pos,
                ExitKind.TAKE_PROFIT,
                f"Odds dropped to {odds * 100:.0f}%! "
                f"Consider taking profit on your {pos.direction.value} position.",
                details,
            )
        if odds > self._stop_loss:
            fired += await self._fire(
                pos,
                ExitKind.STOP_LOSS,
                f"Odds spiked to {odds * 100:.0f}%! "
                f"Your {pos.direction.value} position may be at risk.",
                details,
            )
        return fired

    async def _fire(
        self, pos: Position, kind: ExitKind, message: str, details: dict
    ) -> list[ExitKind]:
        # A position replaced or cleared during an await gets no alerts
        if pos is not self._position or kind in pos.exit_alerts_sent:
            return []
        pos.exit_alerts_sent.add(kind)

        logger.warning("exit_alert", kind=kind.value, direction=pos.direction.value)
        await self._notifier.notify(
            notifications.exit_alert(
                kind, pos, message, details, reference_label=self._reference_label
            )
        )
        return [kind]
