"""
Confidence scorer — weighted 100-point score plus hard gates.

Factors (additive, capped at 100), in breakdown order:

    Move vs ATR        move/ATR ≥ 1.0 → 30, ≥ 0.5 → 15
    Relative volume    ≥ 1.5 → 25, ≥ 1.1 → 15
    Reference confirm  reference asset moved ≥ threshold the same way → 20
    Odds level         current odds present and < good_odds → 15
    Bounce risk        LOW → 10
    Liquidations       estimate ≥ threshold → 10 (bonus)

Tiers: ≥ 75 EXTREME/BUY, ≥ 50 MODERATE/SMALL_BET, else LOW/WAIT.

Hard gates run before the tier mapping and do not change the score:
odds ≥ max_odds_for_buy, a skip hour, or HIGH bounce risk force SKIP. A
RAPID_RISE odds velocity caps the recommendation at SMALL_BET when the
score clears the MODERATE bar and forces SKIP otherwise.

``score_confidence`` is pure: same inputs, same ConfidenceScore.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from workflows.eth_hourly.models import (
    BounceRisk,
    ConfidenceScore,
    Recommendation,
    ScoreInputs,
    Strength,
    VelocityStatus,
)
from workflows.eth_hourly.settings import StrategySettings

MAX_SCORE = 100


@dataclass(frozen=True)
class ScoringRules:
    """Thresholds and weights of the scorer."""

    strong_move_atr: float = 1.0
    moderate_move_atr: float = 0.5
    strong_move_points: int = 30
    moderate_move_points: int = 15

    high_volume: float = 1.5
    elevated_volume: float = 1.1
    high_volume_points: int = 25
    elevated_volume_points: int = 15

    reference_threshold_usd: float = 150.0
    reference_points: int = 20
    reference_label: str = "BTC"

    good_odds: float = 0.65
    good_odds_points: int = 15

    low_bounce_points: int = 10

    liquidation_threshold_usd: float = 30_000_000
    liquidation_points: int = 10

    buy_score: int = 75
    moderate_score: int = 50
    max_odds_for_buy: float = 0.75
    skip_hours: frozenset[int] = field(default_factory=lambda: frozenset({3, 4, 5}))

    @classmethod
    def from_settings(cls, settings: StrategySettings) -> "ScoringRules":
        return cls(
            reference_threshold_usd=settings.reference_confirm_threshold_usd,
            reference_label=settings.reference_symbol.removesuffix("USDT"),
            good_odds=settings.good_odds,
            liquidation_threshold_usd=settings.liquidation_threshold_usd,
            buy_score=settings.buy_score,
            moderate_score=settings.min_alert_score,
            max_odds_for_buy=settings.max_odds_for_buy,
            skip_hours=frozenset(settings.skip_hours_et),
        )


DEFAULT_RULES = ScoringRules()


def _move_points(inputs: ScoreInputs, rules: ScoringRules) -> tuple[str, int] | None:
    if inputs.atr14 is None or inputs.atr14 <= 0:
        return None
    ratio = abs(inputs.eth_move) / inputs.atr14
    if ratio >= rules.strong_move_atr:
        return f"Move {ratio:.1f}x ATR", rules.strong_move_points
    if ratio >= rules.moderate_move_atr:
        return f"Move {ratio:.1f}x ATR", rules.moderate_move_points
    return None


def _volume_points(inputs: ScoreInputs, rules: ScoringRules) -> tuple[str, int] | None:
    rv = inputs.relative_volume
    if rv is None:
        return None
    if rv >= rules.high_volume:
        return f"Volume {rv:.1f}x avg", rules.high_volume_points
    if rv >= rules.elevated_volume:
        return f"Volume {rv:.1f}x avg", rules.elevated_volume_points
    return None


def _reference_points(
    inputs: ScoreInputs, rules: ScoringRules
) -> tuple[str, int] | None:
    aligned = inputs.reference_move * inputs.direction.sign
    if aligned >= rules.reference_threshold_usd:
        return (
            f"{rules.reference_label} confirms ({inputs.reference_move:+.0f})",
            rules.reference_points,
        )
    return None


def _odds_points(inputs: ScoreInputs, rules: ScoringRules) -> tuple[str, int] | None:
    if inputs.current_odds is not None and inputs.current_odds < rules.good_odds:
        return f"Odds {inputs.current_odds * 100:.0f}%", rules.good_odds_points
    return None


def _bounce_points(inputs: ScoreInputs, rules: ScoringRules) -> tuple[str, int] | None:
    if inputs.premium is not None and inputs.premium.bounce_risk is BounceRisk.LOW:
        return "Low bounce risk", rules.low_bounce_points
    return None


def _liquidation_points(
    inputs: ScoreInputs, rules: ScoringRules
) -> tuple[str, int] | None:
    if inputs.liquidation_usd >= rules.liquidation_threshold_usd:
        return (
            f"Liquidations ${inputs.liquidation_usd / 1e6:.0f}M",
            rules.liquidation_points,
        )
    return None


# Breakdown order is this order
_FACTORS = (
    _move_points,
    _volume_points,
    _reference_points,
    _odds_points,
    _bounce_points,
    _liquidation_points,
)


def strength_for(score: int, rules: ScoringRules = DEFAULT_RULES) -> Strength:
    if score >= rules.buy_score:
        return Strength.EXTREME
    if score >= rules.moderate_score:
        return Strength.MODERATE
    return Strength.LOW


def hard_gates(inputs: ScoreInputs, rules: ScoringRules = DEFAULT_RULES) -> list[str]:
    """Reasons that force SKIP regardless of score, in evaluation order."""
    reasons = []
    if inputs.current_odds is not None and inputs.current_odds >= rules.max_odds_for_buy:
        reasons.append(
            f"Odds {inputs.current_odds * 100:.0f}% ≥ {rules.max_odds_for_buy * 100:.0f}% (priced in)"
        )
    if inputs.market_hour is not None and inputs.market_hour in rules.skip_hours:
        reasons.append(f"Skip hour ({inputs.market_hour}:00 ET)")
    if inputs.premium is not None and inputs.premium.bounce_risk is BounceRisk.HIGH:
        reasons.append("High bounce risk")
    return reasons


def score_confidence(
    inputs: ScoreInputs, rules: ScoringRules = DEFAULT_RULES
) -> ConfidenceScore:
    """Score one evaluation pass and map it to a recommendation."""
    breakdown = []
    for factor in _FACTORS:
        hit = factor(inputs, rules)
        if hit is not None:
            breakdown.append(hit)

    score = min(MAX_SCORE, sum(points for _, points in breakdown))
    strength = strength_for(score, rules)
    gate_reasons = hard_gates(inputs, rules)

    if gate_reasons:
        recommendation = Recommendation.SKIP
    elif inputs.velocity is VelocityStatus.RAPID_RISE:
        if score >= rules.moderate_score:
            recommendation = Recommendation.SMALL_BET
        else:
            recommendation = Recommendation.SKIP
        gate_reasons.append("Odds rising fast (move being priced in)")
    elif score >= rules.buy_score:
        recommendation = Recommendation.BUY
    elif score >= rules.moderate_score:
        recommendation = Recommendation.SMALL_BET
    else:
        recommendation = Recommendation.WAIT

    return ConfidenceScore(
        score=score,
        breakdown=tuple(breakdown),
        strength=strength,
        recommendation=recommendation,
        gate_reasons=tuple(gate_reasons),
    )
