"""
HourlyStateMachine — one alert per trading hour.

    WAITING ──(minute ≥ start)──▶ IN_WINDOW ──(qualifying score)──▶ ALERTED
                                      │
                                      └──(minute ≥ end)──▶ EXPIRED

A new HourWindow (a different candle open time) is the only way back to
WAITING. The machine holds no I/O: the strategy feeds it windows, clock
readings and scores, and acts on the transitions it reports.
"""

from __future__ import annotations

import structlog

from workflows.eth_hourly.models import ConfidenceScore, HourPhase, HourWindow

logger = structlog.get_logger(__name__)


class HourlyStateMachine:
    """Tracks the current HourWindow and gates the per-hour alert."""

    def __init__(
        self,
        *,
        window_start_minute: int = 40,
        window_end_minute: int = 52,
        min_alert_score: int = 50,
    ):
        if window_end_minute <= window_start_minute:
            raise ValueError("window_end_minute must be after window_start_minute")
        self._start = window_start_minute
        self._end = window_end_minute
        self._min_score = min_alert_score
        self._phase = HourPhase.WAITING
        self._window: HourWindow | None = None
        self._previous: HourWindow | None = None
        self._alert: ConfidenceScore | None = None

    @property
    def phase(self) -> HourPhase:
        return self._phase

    @property
    def window(self) -> HourWindow | None:
        return self._window

    @property
    def previous_window(self) -> HourWindow | None:
        return self._previous

    @property
    def alert(self) -> ConfidenceScore | None:
        """The score that triggered this hour's alert, if any."""
        return self._alert

    # ── Hour windows ─────────────────────────────────────────────────

    def observe_window(self, window: HourWindow) -> bool:
        """Adopt the latest fetched window. True when a new hour started.

        The same open time refreshes the stored window (the reference open
        may arrive late) without touching the phase.
        """
        current = self._window
        if current is not None and current.open_time == window.open_time:
            self._window = window
            return False

        self._previous = current
        self._window = window
        self._phase = HourPhase.WAITING
        self._alert = None
        logger.info(
            "hour_window_started",
            open_time=window.open_time,
            open_price=window.open_price,
            rollover=current is not None,
        )
        return True

    # ── Transitions ──────────────────────────────────────────────────

    def tick(self, now_ms: int) -> HourPhase:
        """Advance on the clock alone and return the current phase."""
        if self._window is None:
            return self._phase

        minute = self._window.minute_of_hour(now_ms)
        if self._phase is HourPhase.WAITING and minute >= self._start:
            self._transition(HourPhase.IN_WINDOW, minute)
        if self._phase is HourPhase.IN_WINDOW and minute >= self._end:
            self._transition(HourPhase.EXPIRED, minute)
        return self._phase

    def qualifies(self, score: ConfidenceScore) -> bool:
        return score.score >= self._min_score

    def try_alert(self, score: ConfidenceScore, now_ms: int) -> bool:
        """Claim this hour's alert for ``score``.

        Succeeds at most once per window: only from IN_WINDOW and only for
        a qualifying score. Later calls in the same hour return False.
        """
        if self.tick(now_ms) is not HourPhase.IN_WINDOW:
            return False
        if not self.qualifies(score):
            return False
        self._alert = score
        self._transition(HourPhase.ALERTED, self._window.minute_of_hour(now_ms))
        return True

    def _transition(self, phase: HourPhase, minute: float) -> None:
        logger.info(
            "hour_phase_changed",
            from_phase=self._phase.value,
            to_phase=phase.value,
            minute=round(minute, 1),
        )
        self._phase = phase
