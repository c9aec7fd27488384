"""Tests for premium analysis — bounce-risk classification and caching."""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeClock
from hourwatch.connectors.binance_client import AsyncBinanceClient, PremiumIndex
from hourwatch.errors import ConnectorUnavailableError
from workflows.eth_hourly.models import BounceRisk, Direction, PremiumReading
from workflows.eth_hourly.premium import (
    PremiumAnalyzer,
    classify_bounce_risk,
    premium_percent,
)


def _reading(pct: float) -> PremiumReading:
    return PremiumReading(
        symbol="ETHUSDT", premium_percent=pct, mark_price=3000.0, index_price=3000.0
    )


def _index(mark: float = 3003.0, index: float = 3000.0) -> PremiumIndex:
    return PremiumIndex(
        symbol="ETHUSDT", mark_price=mark, index_price=index, last_funding_rate=0.0001
    )


def _make_analyzer(clock=None) -> PremiumAnalyzer:
    client = AsyncMock(spec=AsyncBinanceClient)
    client.get_premium_index.return_value = _index()
    return PremiumAnalyzer(client, ttl_seconds=5.0, clock=clock or FakeClock(0.0))


# ── Classification ───────────────────────────────────────────────────


def test_premium_percent():
    assert premium_percent(3003.0, 3000.0) == pytest.approx(0.1)
    assert premium_percent(2997.0, 3000.0) == pytest.approx(-0.1)


class TestClassifyBounceRisk:
    @pytest.mark.parametrize(
        "pct, direction, risk, crowded",
        [
            (0.20, Direction.UP, BounceRisk.HIGH, True),
            (0.10, Direction.UP, BounceRisk.MEDIUM, True),
            (0.02, Direction.UP, BounceRisk.LOW, False),
            (-0.10, Direction.UP, BounceRisk.LOW, False),
            (-0.20, Direction.DOWN, BounceRisk.HIGH, True),
            (-0.10, Direction.DOWN, BounceRisk.MEDIUM, True),
            (0.10, Direction.DOWN, BounceRisk.LOW, False),
            (0.20, Direction.DOWN, BounceRisk.LOW, False),
        ],
    )
    def test_mirrored_thresholds(self, pct, direction, risk, crowded):
        analysis = classify_bounce_risk(_reading(pct), direction)

        assert analysis.bounce_risk is risk
        assert analysis.crowded is crowded
        assert analysis.direction is direction

    def test_boundaries_are_strict(self):
        assert classify_bounce_risk(_reading(0.15), Direction.UP).bounce_risk is (
            BounceRisk.MEDIUM
        )
        assert classify_bounce_risk(_reading(0.08), Direction.UP).bounce_risk is (
            BounceRisk.LOW
        )

    def test_room_to_run_analysis(self):
        analysis = classify_bounce_risk(_reading(-0.06), Direction.UP)
        assert "room to run" in analysis.analysis
        assert analysis.premium_percent == -0.06

    def test_custom_thresholds(self):
        analysis = classify_bounce_risk(_reading(0.06), Direction.UP, high=0.05)
        assert analysis.bounce_risk is BounceRisk.HIGH


# ── Analyzer ─────────────────────────────────────────────────────────


class TestPremiumAnalyzer:
    @pytest.mark.asyncio
    async def test_reading_from_index(self):
        analyzer = _make_analyzer()

        reading = await analyzer.get_reading("ETHUSDT")

        assert reading.premium_percent == pytest.approx(0.1)
        assert reading.funding_rate == 0.0001

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self):
        clock = FakeClock(0.0)
        analyzer = _make_analyzer(clock)

        await analyzer.get_reading("ETHUSDT")
        clock.advance(4.9)
        await analyzer.get_reading("ETHUSDT")

        assert analyzer._client.get_premium_index.await_count == 1

        clock.advance(0.2)
        await analyzer.get_reading("ETHUSDT")
        assert analyzer._client.get_premium_index.await_count == 2

    @pytest.mark.asyncio
    async def test_stale_reading_on_failure(self):
        clock = FakeClock(0.0)
        analyzer = _make_analyzer(clock)
        first = await analyzer.get_reading("ETHUSDT")

        clock.advance(60)
        analyzer._client.get_premium_index.side_effect = ConnectorUnavailableError(
            "down", connector_name="binance"
        )

        assert await analyzer.get_reading("ETHUSDT") is first

    @pytest.mark.asyncio
    async def test_no_reading_ever(self):
        analyzer = _make_analyzer()
        analyzer._client.get_premium_index.side_effect = ConnectorUnavailableError(
            "down", connector_name="binance"
        )

        assert await analyzer.analyze("ETHUSDT", Direction.UP) is None

    @pytest.mark.asyncio
    async def test_analyze(self):
        analyzer = _make_analyzer()
        analyzer._client.get_premium_index.return_value = _index(mark=3006.0)

        analysis = await analyzer.analyze("ETHUSDT", Direction.UP)

        assert analysis.bounce_risk is BounceRisk.HIGH
