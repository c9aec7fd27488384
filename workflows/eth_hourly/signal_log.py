"""
Signal log — append-only JSONL record of every hourly alert.

One line per alert:

    {"timestamp": "2025-01-14T20:44:05+00:00", "hour": "2025-01-14T20:00:00+00:00",
     "price": 3014.0, "move": 14.0, "direction": "UP", "score": 100,
     "strength": "EXTREME", "recommendation": "BUY", "breakdown": [...], ...}

Writes never raise: a failed append is logged and reported as False so the
alert path keeps going.
"""

from __future__ import annotations

import json
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Protocol

import structlog
from pydantic import BaseModel, Field, ValidationError

logger = structlog.get_logger(__name__)


class SignalRecord(BaseModel):
    """One alert as written to the signal log."""

    timestamp: datetime
    hour: datetime
    symbol: str = "ETHUSDT"
    price: float
    hour_open: float
    move: float
    direction: str
    score: int
    strength: str
    recommendation: str
    breakdown: list[tuple[str, int]] = Field(default_factory=list)
    gate_reasons: list[str] = Field(default_factory=list)
    odds: float | None = None
    odds_velocity: float | None = None
    velocity_status: str | None = None
    premium_percent: float | None = None
    bounce_risk: str | None = None
    atr_ratio: float | None = None
    relative_volume: float | None = None
    reference_move: float | None = None
    liquidation_usd: float = 0.0
    position_registered: bool = False


class SignalLog(Protocol):
    def log_signal(self, record: SignalRecord) -> bool: ...


class JsonlSignalLog:
    """Signal log backed by a local JSONL file."""

    def __init__(
        self,
        path: str | Path,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.enabled = enabled
        self._clock = clock

    def log_signal(self, record: SignalRecord) -> bool:
        if not self.enabled:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(record.model_dump_json() + "\n")
        except OSError as e:
            logger.error("signal_log_write_failed", path=str(self.path), error=str(e))
            return False

        logger.info(
            "signal_logged",
            recommendation=record.recommendation,
            score=record.score,
            price=record.price,
        )
        return True

    def read_signals(self) -> list[SignalRecord]:
        """All readable records, oldest first. Corrupt lines are skipped."""
        if not self.path.exists():
            return []

        records = []
        with self.path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(SignalRecord.model_validate(json.loads(line)))
                except (ValueError, ValidationError) as e:
                    logger.warning(
                        "signal_log_line_skipped", line=lineno, error=str(e)[:200]
                    )
        return records

    def recent_signals(self, hours: float = 24) -> list[SignalRecord]:
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        cutoff = now - timedelta(hours=hours)
        return [r for r in self.read_signals() if r.timestamp >= cutoff]

    def stats(self) -> dict:
        """Counts per recommendation, overall and for the last 24 hours."""
        signals = self.read_signals()
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        cutoff = now - timedelta(hours=24)
        recent = [r for r in signals if r.timestamp >= cutoff]

        overall = Counter(r.recommendation for r in signals)
        last_24h = Counter(r.recommendation for r in recent)
        return {
            "total": len(signals),
            "last_24h": len(recent),
            "buy_count": overall["BUY"],
            "small_bet_count": overall["SMALL_BET"],
            "skip_count": overall["SKIP"],
            "last_24h_buy": last_24h["BUY"],
            "last_24h_small_bet": last_24h["SMALL_BET"],
            "last_24h_skip": last_24h["SKIP"],
        }
