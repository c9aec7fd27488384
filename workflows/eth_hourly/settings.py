"""
Strategy settings for the ETH hourly workflow.

Every threshold and interval the strategy uses, overridable from the
environment with the ``ETH_HOURLY_`` prefix (e.g. ``ETH_HOURLY_MAX_ODDS_FOR_BUY``).
Defaults mirror the values the strategy was tuned with.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StrategySettings(BaseSettings):
    """Tunables for the hourly signal engine."""

    model_config = SettingsConfigDict(
        env_prefix="ETH_HOURLY_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Instruments ───────────────────────────────────────────────────
    symbol: str = "ETHUSDT"
    reference_symbol: str = "BTCUSDT"
    market_asset: str = "ethereum"  # Polymarket slug prefix
    market_timezone: str = "America/New_York"
    candle_interval: str = "1h"
    candle_limit: int = Field(default=22, ge=2)

    # ── Entry window (minute of hour) ─────────────────────────────────
    entry_window_start_minute: int = Field(default=40, ge=0, le=59)
    entry_window_end_minute: int = Field(default=52, ge=1, le=60)
    skip_hours_et: list[int] = Field(default_factory=lambda: [3, 4, 5])

    # ── Scoring ───────────────────────────────────────────────────────
    max_odds_for_buy: float = 0.75
    good_odds: float = 0.65
    liquidation_threshold_usd: float = 30_000_000
    reference_confirm_threshold_usd: float = 150.0
    min_alert_score: int = 50
    buy_score: int = 75

    # ── Premium index (percent) ───────────────────────────────────────
    premium_high_threshold: float = 0.15
    premium_medium_threshold: float = 0.08
    premium_room_threshold: float = 0.05
    premium_cache_ttl_seconds: float = 5.0

    # ── Odds velocity (change per minute, decimal) ────────────────────
    odds_velocity_rapid: float = 0.02
    odds_velocity_rising: float = 0.01
    odds_history_size: int = Field(default=10, ge=2)

    # ── Exit / risk monitoring ────────────────────────────────────────
    exit_price_reversal_usd: float = 15.0
    exit_reference_reversal_usd: float = 200.0
    exit_take_profit_odds: float = 0.50
    exit_stop_loss_odds: float = 0.85
    # DOWN signals: "outcome" tracks them as a position on the DOWN outcome,
    # "alert_only" alerts without registering a position.
    down_signal_mode: Literal["outcome", "alert_only"] = "outcome"

    # ── Liquidations ──────────────────────────────────────────────────
    liquidations_enabled: bool = True
    liquidation_cache_seconds: float = 60.0
    liquidation_lookback_seconds: float = 300.0
    liquidation_oi_drop_pct: float = 1.0

    # ── Scheduling (seconds) ──────────────────────────────────────────
    candle_refresh_seconds: float = 60.0
    evaluation_interval_seconds: float = 5.0
    exit_check_interval_seconds: float = 5.0
    status_interval_seconds: float = 30.0
    price_stale_after_seconds: float = 30.0

    @model_validator(mode="after")
    def _check_window(self) -> "StrategySettings":
        if self.entry_window_end_minute <= self.entry_window_start_minute:
            raise ValueError("entry_window_end_minute must be after entry_window_start_minute")
        if self.odds_velocity_rapid < self.odds_velocity_rising:
            raise ValueError("odds_velocity_rapid must be >= odds_velocity_rising")
        return self


@lru_cache
def get_strategy_settings() -> StrategySettings:
    """Parsed once per process, used only by the CLI bootstrap."""
    return StrategySettings()
