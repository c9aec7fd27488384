"""
Indicator engine — ATR14 and relative volume over completed 1h bars.

Input is the completed-bar history, oldest first, with the in-progress bar
excluded. Short history never raises: it yields no snapshot, and the
scorer treats a missing snapshot as a zero-weight factor.
"""

from typing import Sequence

from workflows.eth_hourly.models import Candle, IndicatorSnapshot

ATR_PERIOD = 14
VOLUME_PERIOD = 20
MIN_HISTORY = VOLUME_PERIOD


def true_ranges(candles: Sequence[Candle]) -> list[float]:
    """True range of every bar after the first.

    TR_i = max(high_i - low_i, |high_i - close_{i-1}|, |low_i - close_{i-1}|)
    """
    ranges = []
    for prev, bar in zip(candles, candles[1:]):
        ranges.append(
            max(
                bar.high - bar.low,
                abs(bar.high - prev.close),
                abs(bar.low - prev.close),
            )
        )
    return ranges


def compute_atr(candles: Sequence[Candle], period: int = ATR_PERIOD) -> float | None:
    """Simple mean of the last ``period`` true ranges (no Wilder smoothing)."""
    ranges = true_ranges(candles)
    if len(ranges) < period:
        return None
    return sum(ranges[-period:]) / period


def compute_avg_volume(
    candles: Sequence[Candle], period: int = VOLUME_PERIOD
) -> float | None:
    if len(candles) < period:
        return None
    return sum(c.volume for c in candles[-period:]) / period


def compute_indicators(candles: Sequence[Candle]) -> IndicatorSnapshot | None:
    """ATR14 + avgVolume20, or None with fewer than 20 completed bars."""
    if len(candles) < MIN_HISTORY:
        return None
    atr = compute_atr(candles)
    avg_volume = compute_avg_volume(candles)
    if atr is None or avg_volume is None:
        return None
    return IndicatorSnapshot(atr14=atr, avg_volume20=avg_volume)


def relative_volume(
    current_volume: float, snapshot: IndicatorSnapshot | None
) -> float | None:
    """Current bar volume over its 20-bar average; None when undefined."""
    if snapshot is None or snapshot.avg_volume20 <= 0:
        return None
    return current_volume / snapshot.avg_volume20
