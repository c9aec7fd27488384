"""
Tests for Polymarket odds tracking — slug generation, the Gamma decode
boundary, velocity classification and the per-hour sample buffer.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import FakeClock
from hourwatch.connectors.polymarket_connector import AsyncPolymarketClient
from hourwatch.errors import ConnectorUnavailableError
from workflows.eth_hourly.models import Direction, OddsReading, VelocityStatus
from workflows.eth_hourly.odds import (
    OddsTracker,
    decode_event,
    market_hour,
    market_slug,
    parse_outcome_prices,
    resolved_outcome,
)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _make_event(up="0.62", down="0.38", *, encoded=True, labels=("Up", "Down")):
    outcomes = list(labels)
    prices = [up, down]
    return {
        "title": "Ethereum Up or Down - January 14, 3PM ET",
        "markets": [
            {
                "question": "Ethereum Up or Down?",
                "outcomes": json.dumps(outcomes) if encoded else outcomes,
                "outcomePrices": json.dumps(prices) if encoded else prices,
                "closed": False,
            }
        ],
    }


def _make_tracker(clock=None, **kwargs) -> OddsTracker:
    client = AsyncMock(spec=AsyncPolymarketClient)
    return OddsTracker(client, clock=clock or FakeClock(1_736_884_800.0), **kwargs)


# ── Slugs ────────────────────────────────────────────────────────────


class TestMarketSlug:
    @pytest.mark.parametrize(
        "when, expected",
        [
            (_utc(2025, 1, 14, 20, 30), "ethereum-up-or-down-january-14-3pm-et"),
            (_utc(2025, 1, 14, 17, 0), "ethereum-up-or-down-january-14-12pm-et"),
            (_utc(2025, 1, 15, 5, 0), "ethereum-up-or-down-january-15-12am-et"),
            (_utc(2025, 1, 15, 4, 59), "ethereum-up-or-down-january-14-11pm-et"),
            (_utc(2025, 1, 14, 14, 10), "ethereum-up-or-down-january-14-9am-et"),
            # Daylight saving time: UTC-4
            (_utc(2025, 7, 4, 16, 0), "ethereum-up-or-down-july-4-12pm-et"),
        ],
    )
    def test_slug(self, when, expected):
        assert market_slug(when) == expected

    def test_naive_datetime_is_utc(self):
        assert market_slug(datetime(2025, 1, 14, 20, 30)) == (
            "ethereum-up-or-down-january-14-3pm-et"
        )

    def test_asset_prefix(self):
        assert market_slug(_utc(2025, 1, 14, 20), asset="bitcoin").startswith(
            "bitcoin-up-or-down-"
        )

    def test_market_hour(self):
        assert market_hour(_utc(2025, 1, 14, 8, 30)) == 3
        assert market_hour(_utc(2025, 7, 4, 16, 0)) == 12


# ── Decode Boundary ──────────────────────────────────────────────────


class TestParseOutcomePrices:
    def test_json_encoded_arrays(self):
        market = _make_event()["markets"][0]
        assert parse_outcome_prices(market) == (0.62, 0.38)

    def test_plain_arrays(self):
        market = _make_event(encoded=False)["markets"][0]
        assert parse_outcome_prices(market) == (0.62, 0.38)

    def test_yes_no_labels_case_insensitive(self):
        market = _make_event(labels=("YES", "no"))["markets"][0]
        assert parse_outcome_prices(market) == (0.62, 0.38)

    def test_order_does_not_matter(self):
        market = _make_event(up="0.30", down="0.70", labels=("Down", "Up"))["markets"][0]
        assert parse_outcome_prices(market) == (0.70, 0.30)

    @pytest.mark.parametrize(
        "market",
        [
            None,
            {},
            {"outcomes": "not json", "outcomePrices": "[]"},
            {"outcomes": '["Up", "Down"]'},
            {"outcomes": '{"a": 1}', "outcomePrices": '["0.5", "0.5"]'},
        ],
    )
    def test_unparseable(self, market):
        assert parse_outcome_prices(market) == (None, None)

    def test_bad_price_leaves_side_missing(self):
        market = _make_event(up="abc", down="1.7")["markets"][0]
        assert parse_outcome_prices(market) == (None, None)

        market = _make_event(up="0.55", down="oops")["markets"][0]
        assert parse_outcome_prices(market) == (0.55, None)


class TestDecodeEvent:
    def test_reading(self):
        reading = decode_event(_make_event(), "slug-1")

        assert reading.slug == "slug-1"
        assert reading.title.startswith("Ethereum Up or Down")
        assert reading.up_odds == 0.62
        assert reading.down_odds == 0.38
        assert reading.complete is True
        assert reading.closed is False

    @pytest.mark.parametrize(
        "event",
        [None, {}, {"markets": []}, {"markets": ["x"]}, {"markets": [{}]}],
    )
    def test_no_market(self, event):
        assert decode_event(event, "slug-1") is None

    def test_partial_reading(self):
        event = _make_event(down="bad")
        reading = decode_event(event, "slug-1")

        assert reading.up_odds == 0.62
        assert reading.down_odds is None
        assert reading.complete is False


class TestResolvedOutcome:
    def test_resolved_up(self):
        reading = OddsReading("s", "t", up_odds=0.995, down_odds=0.005, closed=True)
        assert resolved_outcome(reading) is Direction.UP

    def test_resolved_down(self):
        reading = OddsReading("s", "t", up_odds=0.0, down_odds=1.0, closed=True)
        assert resolved_outcome(reading) is Direction.DOWN

    def test_unresolved(self):
        assert resolved_outcome(OddsReading("s", "t", 0.6, 0.4)) is None
        assert resolved_outcome(None) is None


# ── Velocity ─────────────────────────────────────────────────────────


class TestVelocity:
    def test_rapid_rise(self):
        tracker = _make_tracker()
        tracker.record_sample(0.40, 0.60, timestamp=0)
        tracker.record_sample(0.46, 0.54, timestamp=60)

        v = tracker.velocity(Direction.UP)

        assert v.velocity_per_minute == pytest.approx(0.06)
        assert v.status is VelocityStatus.RAPID_RISE
        assert v.minutes_tracked == pytest.approx(1.0)
        assert v.velocity_percent == pytest.approx(6.0)

    def test_down_side_falls(self):
        tracker = _make_tracker()
        tracker.record_sample(0.50, 0.50, timestamp=0)
        tracker.record_sample(0.56, 0.44, timestamp=60)

        assert tracker.velocity(Direction.DOWN).status is VelocityStatus.FALLING

    @pytest.mark.parametrize(
        "new_up, expected",
        [
            (0.515, VelocityStatus.RISING),
            (0.505, VelocityStatus.STABLE),
            (0.490, VelocityStatus.FALLING),
            (0.520, VelocityStatus.RAPID_RISE),
        ],
    )
    def test_thresholds(self, new_up, expected):
        tracker = _make_tracker()
        tracker.record_sample(0.50, 0.50, timestamp=0)
        tracker.record_sample(new_up, 1 - new_up, timestamp=60)

        assert tracker.velocity().status is expected

    def test_unknown_with_one_sample(self):
        tracker = _make_tracker()
        tracker.record_sample(0.50, 0.50, timestamp=0)

        assert tracker.velocity().status is VelocityStatus.UNKNOWN

    def test_insufficient_span(self):
        tracker = _make_tracker()
        tracker.record_sample(0.50, 0.50, timestamp=0)
        tracker.record_sample(0.60, 0.40, timestamp=20)

        v = tracker.velocity()
        assert v.status is VelocityStatus.INSUFFICIENT_DATA
        assert v.velocity_per_minute == 0.0

    def test_buffer_is_bounded(self):
        tracker = _make_tracker(capacity=3)
        for i in range(5):
            tracker.record_sample(0.50 + i * 0.01, 0.50, timestamp=i * 60)

        assert len(tracker.samples) == 3
        assert tracker.samples[0].timestamp == 120

    def test_reset_clears_samples(self):
        tracker = _make_tracker()
        tracker.record_sample(0.50, 0.50, timestamp=0)
        tracker.record_sample(0.56, 0.44, timestamp=60)

        tracker.reset_on_new_hour()

        assert tracker.samples == ()
        assert tracker.last_reading is None
        assert tracker.velocity().status is VelocityStatus.UNKNOWN


# ── Polling ──────────────────────────────────────────────────────────


class TestPoll:
    @pytest.mark.asyncio
    async def test_poll_records_sample(self):
        clock = FakeClock(1_736_886_600.0)  # 2025-01-14 20:30 UTC
        tracker = _make_tracker(clock)
        tracker._client.get_event_by_slug.return_value = _make_event()

        reading = await tracker.poll()

        tracker._client.get_event_by_slug.assert_awaited_once_with(
            "ethereum-up-or-down-january-14-3pm-et"
        )
        assert reading.up_odds == 0.62
        assert tracker.last_reading is reading
        assert tracker.samples[0].timestamp == 1_736_886_600.0

    @pytest.mark.asyncio
    async def test_poll_given_hour(self):
        clock = FakeClock(1_736_888_420.0)  # 2025-01-14 21:00:20 UTC
        tracker = _make_tracker(clock)
        tracker._client.get_event_by_slug.return_value = _make_event()

        await tracker.poll(_utc(2025, 1, 14, 20))

        tracker._client.get_event_by_slug.assert_awaited_once_with(
            "ethereum-up-or-down-january-14-3pm-et"
        )

    @pytest.mark.asyncio
    async def test_partial_reading_not_sampled(self):
        tracker = _make_tracker()
        tracker._client.get_event_by_slug.return_value = _make_event(down="bad")

        reading = await tracker.poll()

        assert reading is not None
        assert tracker.samples == ()

    @pytest.mark.asyncio
    async def test_missing_market(self):
        tracker = _make_tracker()
        tracker._client.get_event_by_slug.return_value = None

        assert await tracker.poll() is None
        assert tracker.samples == ()

    @pytest.mark.asyncio
    async def test_fetch_error_yields_none(self):
        tracker = _make_tracker()
        tracker._client.get_event_by_slug.side_effect = ConnectorUnavailableError(
            "timeout", connector_name="polymarket"
        )

        assert await tracker.poll() is None
