"""Tests for the JSONL signal log."""

from datetime import datetime, timedelta, timezone

from workflows.eth_hourly.signal_log import JsonlSignalLog, SignalRecord

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _record(recommendation: str = "BUY", *, age_hours: float = 1.0) -> SignalRecord:
    ts = NOW - timedelta(hours=age_hours)
    return SignalRecord(
        timestamp=ts,
        hour=ts.replace(minute=0, second=0, microsecond=0),
        price=3014.0,
        hour_open=3000.0,
        move=14.0,
        direction="UP",
        score=85,
        strength="EXTREME",
        recommendation=recommendation,
        breakdown=[("Move 1.2x ATR", 30), ("Volume 1.6x avg", 25)],
        odds=0.62,
    )


def _make_log(tmp_path, **kwargs) -> JsonlSignalLog:
    return JsonlSignalLog(
        tmp_path / "data" / "signals.jsonl", clock=NOW.timestamp, **kwargs
    )


class TestWrite:
    def test_appends_one_line_per_signal(self, tmp_path):
        log = _make_log(tmp_path)

        assert log.log_signal(_record()) is True
        assert log.log_signal(_record("SKIP")) is True

        lines = log.path.read_text().splitlines()
        assert len(lines) == 2
        assert '"recommendation":"SKIP"' in lines[1]

    def test_disabled(self, tmp_path):
        log = _make_log(tmp_path, enabled=False)

        assert log.log_signal(_record()) is False
        assert not log.path.exists()

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "data"
        blocker.write_text("not a directory")
        log = _make_log(tmp_path)

        assert log.log_signal(_record()) is False


class TestRead:
    def test_round_trip_fields(self, tmp_path):
        log = _make_log(tmp_path)
        log.log_signal(_record())

        [record] = log.read_signals()

        assert record.score == 85
        assert record.breakdown == [("Move 1.2x ATR", 30), ("Volume 1.6x avg", 25)]
        assert record.timestamp == NOW - timedelta(hours=1)

    def test_missing_file(self, tmp_path):
        assert _make_log(tmp_path).read_signals() == []

    def test_corrupt_lines_skipped(self, tmp_path):
        log = _make_log(tmp_path)
        log.log_signal(_record())
        with log.path.open("a") as fh:
            fh.write("{not json\n\n")
            fh.write('{"score": 1}\n')
        log.log_signal(_record("SMALL_BET"))

        assert [r.recommendation for r in log.read_signals()] == ["BUY", "SMALL_BET"]

    def test_recent_signals(self, tmp_path):
        log = _make_log(tmp_path)
        log.log_signal(_record(age_hours=30))
        log.log_signal(_record(age_hours=2))

        assert len(log.recent_signals(24)) == 1
        assert len(log.recent_signals(48)) == 2


class TestStats:
    def test_counts(self, tmp_path):
        log = _make_log(tmp_path)
        for rec, age in [("BUY", 30), ("BUY", 1), ("SMALL_BET", 2), ("SKIP", 3), ("SKIP", 40)]:
            log.log_signal(_record(rec, age_hours=age))

        assert log.stats() == {
            "total": 5,
            "last_24h": 3,
            "buy_count": 2,
            "small_bet_count": 1,
            "skip_count": 2,
            "last_24h_buy": 1,
            "last_24h_small_bet": 1,
            "last_24h_skip": 1,
        }

    def test_empty(self, tmp_path):
        stats = _make_log(tmp_path).stats()
        assert stats["total"] == 0
        assert stats["last_24h_buy"] == 0
