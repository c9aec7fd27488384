"""
EthHourlyStrategy — the hourly signal engine.

Owns the one mutable ``StrategyState`` and the components that feed it;
every service arrives by injection (``build`` wires the defaults).

Periodic tasks (Scheduler):
  - candle_refresh  klines → indicators → hour window / rollover
  - evaluate        indicators → odds → premium → liquidations → score → alert
  - exit_check      PositionMonitor timer checks
  - status          structured status line

Fetch results are written to state only after their await completes and
only if the hour has not rolled over meanwhile. ``status()`` reads whatever
is stored and never awaits.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Protocol

import structlog

from hourwatch.connectors.binance_client import AsyncBinanceClient
from hourwatch.connectors.polymarket_connector import AsyncPolymarketClient
from hourwatch.errors import ConnectorError, StrategyError
from workflows.eth_hourly import notifications
from workflows.eth_hourly.indicators import compute_indicators, relative_volume
from workflows.eth_hourly.liquidations import LiquidationTracker
from workflows.eth_hourly.models import (
    Candle,
    ConfidenceScore,
    Direction,
    ExitKind,
    HourWindow,
    IndicatorSnapshot,
    LiquidationEstimate,
    OddsReading,
    OddsVelocity,
    PremiumAnalysis,
    ScoreInputs,
)
from workflows.eth_hourly.notifications import NotificationSink
from workflows.eth_hourly.odds import OddsTracker, market_hour, resolved_outcome
from workflows.eth_hourly.position_monitor import PositionMonitor, PriceSource
from workflows.eth_hourly.premium import PremiumAnalyzer
from workflows.eth_hourly.scheduler import Scheduler
from workflows.eth_hourly.scoring import ScoringRules, score_confidence
from workflows.eth_hourly.settings import StrategySettings
from workflows.eth_hourly.signal_log import SignalLog, SignalRecord
from workflows.eth_hourly.state_machine import HourlyStateMachine

logger = structlog.get_logger(__name__)

HOUR_MS = 3_600_000


class PriceFeed(PriceSource, Protocol):
    def seconds_since_tick(self, symbol: str | None = None) -> float | None: ...


@dataclass
class StrategyState:
    """Most recent fully-resolved snapshot of every input."""

    window: HourWindow | None = None
    history: tuple[Candle, ...] = ()  # completed bars, oldest first
    current_bar: Candle | None = None
    indicators: IndicatorSnapshot | None = None
    odds: OddsReading | None = None
    velocity: OddsVelocity = field(default_factory=OddsVelocity)
    premium: PremiumAnalysis | None = None
    liquidation: LiquidationEstimate = field(default_factory=LiquidationEstimate)
    last_score: ConfidenceScore | None = None
    last_direction: Direction | None = None
    last_evaluated_at: float | None = None
    alert_direction: Direction | None = None
    evaluations: int = 0
    alerts_sent: int = 0

    def reset_for_hour(self, window: HourWindow) -> None:
        self.window = window
        self.odds = None
        self.velocity = OddsVelocity()
        self.premium = None
        self.last_score = None
        self.last_direction = None
        self.alert_direction = None


def _utc(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)


class EthHourlyStrategy:
    """ETH hourly signal engine: one alert per hour plus exit monitoring."""

    def __init__(
        self,
        settings: StrategySettings,
        *,
        prices: PriceFeed,
        binance: AsyncBinanceClient,
        odds: OddsTracker,
        premium: PremiumAnalyzer,
        liquidations: LiquidationTracker,
        monitor: PositionMonitor,
        notifier: NotificationSink,
        signal_log: SignalLog,
        state_machine: HourlyStateMachine | None = None,
        scheduler: Scheduler | None = None,
        rules: ScoringRules | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._prices = prices
        self._binance = binance
        self._odds = odds
        self._premium = premium
        self._liquidations = liquidations
        self._monitor = monitor
        self._notifier = notifier
        self._signal_log = signal_log
        self._machine = state_machine or HourlyStateMachine(
            window_start_minute=settings.entry_window_start_minute,
            window_end_minute=settings.entry_window_end_minute,
            min_alert_score=settings.min_alert_score,
        )
        self._scheduler = scheduler or Scheduler()
        self._rules = rules or ScoringRules.from_settings(settings)
        self._clock = clock
        self._reference_label = settings.reference_symbol.removesuffix("USDT")
        self._state = StrategyState()
        self._started = False

    @classmethod
    def build(
        cls,
        settings: StrategySettings,
        *,
        prices: PriceFeed,
        binance: AsyncBinanceClient,
        polymarket: AsyncPolymarketClient,
        notifier: NotificationSink,
        signal_log: SignalLog,
        clock: Callable[[], float] = time.time,
    ) -> "EthHourlyStrategy":
        """Wire the default components from settings and connector clients."""
        s = settings
        odds = OddsTracker(
            polymarket,
            capacity=s.odds_history_size,
            rapid_threshold=s.odds_velocity_rapid,
            rising_threshold=s.odds_velocity_rising,
            asset=s.market_asset,
            tz=s.market_timezone,
            clock=clock,
        )
        premium = PremiumAnalyzer(
            binance,
            ttl_seconds=s.premium_cache_ttl_seconds,
            high_threshold=s.premium_high_threshold,
            medium_threshold=s.premium_medium_threshold,
            room_threshold=s.premium_room_threshold,
        )
        liquidations = LiquidationTracker(
            binance,
            enabled=s.liquidations_enabled,
            cache_seconds=s.liquidation_cache_seconds,
            lookback_seconds=s.liquidation_lookback_seconds,
            oi_drop_pct=s.liquidation_oi_drop_pct,
        )
        monitor = PositionMonitor(
            notifier,
            premium,
            prices,
            symbol=s.symbol,
            reference_symbol=s.reference_symbol,
            price_reversal_usd=s.exit_price_reversal_usd,
            reference_reversal_usd=s.exit_reference_reversal_usd,
            take_profit_odds=s.exit_take_profit_odds,
            stop_loss_odds=s.exit_stop_loss_odds,
            clock=lambda: datetime.fromtimestamp(clock(), tz=timezone.utc),
        )
        return cls(
            settings,
            prices=prices,
            binance=binance,
            odds=odds,
            premium=premium,
            liquidations=liquidations,
            monitor=monitor,
            notifier=notifier,
            signal_log=signal_log,
            clock=clock,
        )

    @property
    def state(self) -> StrategyState:
        return self._state

    @property
    def state_machine(self) -> HourlyStateMachine:
        return self._machine

    @property
    def monitor(self) -> PositionMonitor:
        return self._monitor

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ── Candles & hour windows ───────────────────────────────────────

    async def refresh_candles(self) -> bool:
        """Refresh bars and indicators. True when a new hour started."""
        s = self._settings
        try:
            candles = await self._binance.get_klines(
                s.symbol, interval=s.candle_interval, limit=s.candle_limit
            )
        except ConnectorError as e:
            logger.warning("candle_fetch_failed", symbol=s.symbol, **e.to_dict())
            return False
        if not candles:
            logger.warning("candle_fetch_empty", symbol=s.symbol)
            return False

        current = candles[-1]
        reference = await self._fetch_reference_bar(current.open_time)

        window = HourWindow(
            open_time=current.open_time,
            open_price=current.open,
            close_time=current.open_time + HOUR_MS - 1,
            reference_open_price=reference.open if reference else None,
        )
        known = self._machine.window
        if (
            window.reference_open_price is None
            and known is not None
            and known.open_time == window.open_time
        ):
            window = replace(window, reference_open_price=known.reference_open_price)

        history = tuple(candles[:-1])
        self._state.history = history
        self._state.current_bar = current
        self._state.indicators = compute_indicators(history)
        if self._state.indicators is None:
            logger.debug("indicators_unavailable", bars=len(history))

        prior_alert = self._machine.alert
        prior_direction = self._state.alert_direction
        if not self._machine.observe_window(window):
            self._state.window = window
            return False

        previous = self._machine.previous_window
        self._state.reset_for_hour(window)
        self._odds.reset_on_new_hour()
        self._monitor.clear(reason="rollover")

        if previous is not None:
            logger.info(
                "hour_rollover",
                previous_open=previous.open_price,
                open_price=window.open_price,
            )
            await self._send_hour_summary(previous, history, prior_alert, prior_direction)
        await self._notifier.notify(
            notifications.new_hour(window, tz=s.market_timezone)
        )
        return True

    async def _fetch_reference_bar(self, open_time: int) -> Candle | None:
        s = self._settings
        try:
            bars = await self._binance.get_klines(
                s.reference_symbol, interval=s.candle_interval, limit=2
            )
        except ConnectorError as e:
            logger.warning(
                "reference_candle_fetch_failed", symbol=s.reference_symbol, **e.to_dict()
            )
            return None
        for bar in reversed(bars):
            if bar.open_time == open_time:
                return bar
        return None

    async def _send_hour_summary(
        self,
        previous: HourWindow,
        history: tuple[Candle, ...],
        alert: ConfidenceScore | None,
        alert_direction: Direction | None,
    ) -> None:
        closed = next((c for c in reversed(history) if c.open_time == previous.open_time), None)
        if closed is None:
            logger.debug("hour_summary_skipped", open_time=previous.open_time)
            return

        slug = self._odds.market_slug(_utc(previous.open_time))
        resolved = resolved_outcome(await self._odds.fetch_reading(slug))
        await self._notifier.notify(
            notifications.hour_summary(
                previous,
                close_price=closed.close,
                alert=alert,
                alert_direction=alert_direction,
                resolved=resolved,
                tz=self._settings.market_timezone,
            )
        )

    # ── Evaluation ───────────────────────────────────────────────────

    def _superseded(self, window: HourWindow) -> bool:
        current = self._state.window
        if current is not None and current.open_time == window.open_time:
            return False
        logger.info("evaluation_discarded", reason="rollover")
        return True

    async def evaluate(self) -> ConfidenceScore | None:
        """One scoring pass. Returns the score, or None when skipped."""
        s = self._settings
        window = self._state.window
        price = self._prices.price(s.symbol)
        if window is None or price is None:
            logger.debug(
                "evaluation_skipped", reason="no_window" if window is None else "no_price"
            )
            return None

        age = self._prices.seconds_since_tick(s.symbol)
        if age is None or age > s.price_stale_after_seconds:
            logger.warning("evaluation_skipped", reason="stale_price", age_seconds=age)
            return None

        if self._now_ms() > window.close_time:
            logger.debug("evaluation_skipped", reason="hour_ended")
            return None

        self._machine.tick(self._now_ms())
        move = price - window.open_price
        direction = Direction.of_move(move)

        # 1. indicators (kept current by the candle task)
        indicators = self._state.indicators
        bar = self._state.current_bar
        rel_volume = relative_volume(bar.volume, indicators) if bar else None

        # 2. odds
        reading = await self._odds.poll(_utc(window.open_time))
        if self._superseded(window):
            return None
        if reading is not None:
            self._state.odds = reading
            await self._monitor.check_odds_conditions(reading)
        velocity = self._odds.velocity(direction)

        # 3. premium, 4. liquidations
        premium = await self._premium.analyze(s.symbol, direction)
        liquidation = await self._liquidations.estimate(s.symbol)
        if self._superseded(window):
            return None

        # 5. score
        now_ms = self._now_ms()
        odds = self._state.odds.odds_for(direction) if self._state.odds else None
        reference_move = self._reference_move(window)
        inputs = ScoreInputs(
            eth_move=move,
            direction=direction,
            atr14=indicators.atr14 if indicators else None,
            relative_volume=rel_volume,
            reference_move=reference_move or 0.0,
            current_odds=odds,
            premium=premium,
            liquidation_usd=liquidation.total_usd,
            velocity=velocity.status,
            market_hour=market_hour(_utc(window.open_time), s.market_timezone),
        )
        score = score_confidence(inputs, self._rules)

        self._state.velocity = velocity
        self._state.premium = premium
        self._state.liquidation = liquidation
        self._state.last_score = score
        self._state.last_direction = direction
        self._state.last_evaluated_at = now_ms / 1000
        self._state.evaluations += 1

        if self._machine.try_alert(score, now_ms):
            await self._alert(
                score,
                inputs,
                price=price,
                window=window,
                now_ms=now_ms,
                velocity=velocity,
                reference_move=reference_move,
            )
        return score

    def _reference_move(self, window: HourWindow) -> float | None:
        ref_price = self._prices.price(self._settings.reference_symbol)
        if ref_price is None or window.reference_open_price is None:
            return None
        return ref_price - window.reference_open_price

    async def _alert(
        self,
        score: ConfidenceScore,
        inputs: ScoreInputs,
        *,
        price: float,
        window: HourWindow,
        now_ms: int,
        velocity: OddsVelocity,
        reference_move: float | None,
    ) -> None:
        s = self._settings
        direction = inputs.direction
        atr_ratio = abs(inputs.eth_move) / inputs.atr14 if inputs.atr14 else None

        register = score.recommendation.opens_position and (
            direction is Direction.UP or s.down_signal_mode == "outcome"
        )
        if register:
            self._monitor.register(
                direction=direction,
                entry_price=price,
                hour_end=_utc(window.open_time + HOUR_MS),
                entry_reference_price=self._prices.price(s.reference_symbol),
                premium=inputs.premium,
                entry_odds=inputs.current_odds,
            )
        self._state.alert_direction = direction
        self._state.alerts_sent += 1

        logger.info(
            "signal_alert",
            recommendation=score.recommendation.value,
            score=score.score,
            direction=direction.value,
            move=round(inputs.eth_move, 2),
            odds=inputs.current_odds,
            gates=list(score.gate_reasons),
            position_registered=register,
        )

        await self._notifier.notify(
            notifications.entry_alert(
                score,
                direction=direction,
                move=inputs.eth_move,
                price=price,
                window=window,
                minutes_left=max(0.0, 60 - window.minute_of_hour(now_ms)),
                atr_ratio=atr_ratio,
                relative_volume=inputs.relative_volume,
                reference_move=reference_move,
                reference_label=self._reference_label,
                odds=inputs.current_odds,
                velocity=velocity,
                premium=inputs.premium,
                liquidation_usd=inputs.liquidation_usd,
            )
        )

        self._signal_log.log_signal(
            SignalRecord(
                timestamp=_utc(now_ms),
                hour=_utc(window.open_time),
                symbol=s.symbol,
                price=price,
                hour_open=window.open_price,
                move=inputs.eth_move,
                direction=direction.value,
                score=score.score,
                strength=score.strength.value,
                recommendation=score.recommendation.value,
                breakdown=list(score.breakdown),
                gate_reasons=list(score.gate_reasons),
                odds=inputs.current_odds,
                odds_velocity=velocity.velocity_per_minute,
                velocity_status=velocity.status.value,
                premium_percent=inputs.premium.premium_percent if inputs.premium else None,
                bounce_risk=inputs.premium.bounce_risk.value if inputs.premium else None,
                atr_ratio=atr_ratio,
                relative_volume=inputs.relative_volume,
                reference_move=reference_move,
                liquidation_usd=inputs.liquidation_usd,
                position_registered=register,
            )
        )

    # ── Exits & status ───────────────────────────────────────────────

    async def check_exits(self) -> list[ExitKind]:
        return await self._monitor.check_exit_conditions()

    async def log_status(self) -> None:
        logger.info("status", **self.status())

    def status(self) -> dict:
        """Read-only snapshot of the current state. Never awaits."""
        s = self._settings
        st = self._state
        window = st.window
        price = self._prices.price(s.symbol)
        age = self._prices.seconds_since_tick(s.symbol)
        move = price - window.open_price if price is not None and window else None
        pos = self._monitor.position

        return {
            "phase": self._machine.phase.value,
            "price": price,
            "hour_open": window.open_price if window else None,
            "move": round(move, 2) if move is not None else None,
            "minute_of_hour": round(window.minute_of_hour(self._now_ms()), 1)
            if window
            else None,
            "price_age_seconds": round(age, 1) if age is not None else None,
            "price_stale": age is None or age > s.price_stale_after_seconds,
            "market_slug": st.odds.slug if st.odds else None,
            "up_odds": st.odds.up_odds if st.odds else None,
            "down_odds": st.odds.down_odds if st.odds else None,
            "odds_velocity": st.velocity.status.value,
            "bounce_risk": st.premium.bounce_risk.value if st.premium else None,
            "liquidation_usd_m": round(st.liquidation.total_usd / 1e6, 1),
            "atr14": round(st.indicators.atr14, 2) if st.indicators else None,
            "score": st.last_score.score if st.last_score else None,
            "recommendation": st.last_score.recommendation.value
            if st.last_score
            else None,
            "alerts_sent": st.alerts_sent,
            "position": {
                "direction": pos.direction.value,
                "entry_price": pos.entry_price,
                "exits_fired": sorted(k.value for k in pos.exit_alerts_sent),
            }
            if pos
            else None,
        }

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Seed the hour window, then start the periodic tasks."""
        if self._started:
            raise StrategyError("Strategy already started")
        self._started = True
        s = self._settings
        await self.refresh_candles()

        self._scheduler.add(
            "candle_refresh",
            s.candle_refresh_seconds,
            self.refresh_candles,
            run_immediately=False,
        )
        self._scheduler.add("evaluate", s.evaluation_interval_seconds, self.evaluate)
        self._scheduler.add("exit_check", s.exit_check_interval_seconds, self.check_exits)
        self._scheduler.add("status", s.status_interval_seconds, self.log_status)
        self._scheduler.start()
        logger.info(
            "strategy_started",
            symbol=s.symbol,
            reference=s.reference_symbol,
            entry_window=f"{s.entry_window_start_minute}-{s.entry_window_end_minute}",
        )

    async def stop(self) -> None:
        await self._scheduler.stop()
        self._monitor.clear(reason="shutdown")
        logger.info("strategy_stopped", alerts_sent=self._state.alerts_sent)
