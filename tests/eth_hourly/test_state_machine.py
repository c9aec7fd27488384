"""Tests for HourlyStateMachine — phases, one alert per hour, rollover."""

import pytest

from conftest import HOUR_MS, HOUR_OPEN_MS
from workflows.eth_hourly.models import (
    ConfidenceScore,
    HourPhase,
    HourWindow,
    Recommendation,
    Strength,
)
from workflows.eth_hourly.state_machine import HourlyStateMachine

MINUTE_MS = 60_000


def _window(open_time: int = HOUR_OPEN_MS, open_price: float = 3000.0) -> HourWindow:
    return HourWindow(
        open_time=open_time, open_price=open_price, close_time=open_time + HOUR_MS - 1
    )


def _score(value: int) -> ConfidenceScore:
    return ConfidenceScore(
        score=value,
        strength=Strength.MODERATE if value >= 50 else Strength.LOW,
        recommendation=Recommendation.SMALL_BET if value >= 50 else Recommendation.WAIT,
    )


def _at(minute: float, open_time: int = HOUR_OPEN_MS) -> int:
    return int(open_time + minute * MINUTE_MS)


def _make_machine() -> HourlyStateMachine:
    machine = HourlyStateMachine()
    machine.observe_window(_window())
    return machine


class TestPhases:
    def test_waiting_before_window(self):
        machine = _make_machine()
        assert machine.tick(_at(39.9)) is HourPhase.WAITING

    def test_in_window_from_minute_40(self):
        machine = _make_machine()
        assert machine.tick(_at(40)) is HourPhase.IN_WINDOW

    def test_expired_from_minute_52(self):
        machine = _make_machine()
        machine.tick(_at(45))

        assert machine.tick(_at(52)) is HourPhase.EXPIRED

    def test_late_start_passes_through_window(self):
        machine = _make_machine()
        assert machine.tick(_at(55)) is HourPhase.EXPIRED

    def test_no_window_stays_waiting(self):
        assert HourlyStateMachine().tick(_at(45)) is HourPhase.WAITING

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            HourlyStateMachine(window_start_minute=52, window_end_minute=40)


class TestAlerts:
    def test_one_alert_per_hour(self):
        machine = _make_machine()

        assert machine.try_alert(_score(80), _at(41)) is True
        assert machine.phase is HourPhase.ALERTED
        assert machine.try_alert(_score(95), _at(42)) is False
        assert machine.alert.score == 80

    def test_alert_stays_after_window_end(self):
        machine = _make_machine()
        machine.try_alert(_score(80), _at(41))

        assert machine.tick(_at(55)) is HourPhase.ALERTED

    def test_not_before_window(self):
        machine = _make_machine()
        assert machine.try_alert(_score(100), _at(30)) is False
        assert machine.phase is HourPhase.WAITING

    def test_not_after_window(self):
        machine = _make_machine()
        assert machine.try_alert(_score(100), _at(52)) is False
        assert machine.phase is HourPhase.EXPIRED

    def test_low_score_keeps_window_open(self):
        machine = _make_machine()

        assert machine.try_alert(_score(49), _at(41)) is False
        assert machine.phase is HourPhase.IN_WINDOW
        assert machine.try_alert(_score(50), _at(44)) is True

    def test_qualifies(self):
        machine = HourlyStateMachine(min_alert_score=60)
        assert machine.qualifies(_score(60)) is True
        assert machine.qualifies(_score(59)) is False


class TestRollover:
    def test_first_window_is_new_hour(self):
        machine = HourlyStateMachine()
        assert machine.observe_window(_window()) is True
        assert machine.previous_window is None

    def test_same_hour_refreshes_without_reset(self):
        machine = _make_machine()
        machine.try_alert(_score(80), _at(41))

        refreshed = HourWindow(
            open_time=HOUR_OPEN_MS,
            open_price=3000.0,
            close_time=HOUR_OPEN_MS + HOUR_MS - 1,
            reference_open_price=95_000.0,
        )
        assert machine.observe_window(refreshed) is False
        assert machine.window.reference_open_price == 95_000.0
        assert machine.phase is HourPhase.ALERTED

    def test_new_hour_resets(self):
        machine = _make_machine()
        machine.try_alert(_score(80), _at(41))
        first = machine.window

        next_open = HOUR_OPEN_MS + HOUR_MS
        assert machine.observe_window(_window(next_open, 3020.0)) is True

        assert machine.phase is HourPhase.WAITING
        assert machine.alert is None
        assert machine.previous_window is first
        assert machine.try_alert(_score(80), _at(41, next_open)) is True

    def test_expired_hour_reopens_after_rollover(self):
        machine = _make_machine()
        machine.tick(_at(55))

        next_open = HOUR_OPEN_MS + HOUR_MS
        machine.observe_window(_window(next_open))

        assert machine.tick(_at(40, next_open)) is HourPhase.IN_WINDOW
