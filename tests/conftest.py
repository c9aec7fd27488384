import logging

import pytest

from hourwatch.logging import setup_logging
from workflows.eth_hourly.models import Candle
from workflows.eth_hourly.settings import StrategySettings

# 2025-01-14 20:00:00 UTC (3pm ET), a bar open time in epoch ms
HOUR_OPEN_MS = 1_736_884_800_000
HOUR_MS = 3_600_000


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Keep structlog output out of the test report."""
    setup_logging(logging.WARNING)
    yield


@pytest.fixture
def settings() -> StrategySettings:
    """Strategy settings with defaults only (no .env lookup)."""
    return StrategySettings(_env_file=None)


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_candle(
    open_time: int = HOUR_OPEN_MS,
    *,
    open: float = 3000.0,
    high: float | None = None,
    low: float | None = None,
    close: float | None = None,
    volume: float = 1000.0,
) -> Candle:
    close = open if close is None else close
    return Candle(
        open_time=open_time,
        open=open,
        high=max(open, close) + 5 if high is None else high,
        low=min(open, close) - 5 if low is None else low,
        close=close,
        volume=volume,
    )


def make_history(count: int, *, end_open_time: int = HOUR_OPEN_MS, volume=1000.0):
    """``count`` flat completed bars ending just before ``end_open_time``."""
    return [
        make_candle(end_open_time - (count - i) * HOUR_MS, volume=volume)
        for i in range(count)
    ]
