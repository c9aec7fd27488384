"""
Alert formatting for the ETH hourly workflow.

Pure builders: each returns a ``Notification`` and performs no I/O. The
delivery seam is ``NotificationSink``; ``DiscordConnector`` is the
production implementation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from hourwatch.models import Notification, NotificationField, Severity
from workflows.eth_hourly.models import (
    BounceRisk,
    ConfidenceScore,
    Direction,
    ExitKind,
    HourWindow,
    OddsVelocity,
    Position,
    PremiumAnalysis,
    Recommendation,
    VelocityStatus,
)


class NotificationSink(Protocol):
    async def notify(self, notification: Notification) -> bool:
        """Deliver; return False on failure. Must not raise."""
        ...


_BAR_SLOTS = 10

_RISK_BADGES = {
    BounceRisk.LOW: "🟢 Low",
    BounceRisk.MEDIUM: "🟡 Medium",
    BounceRisk.HIGH: "🔴 High",
}

_EXIT_TITLES = {
    ExitKind.PRICE_REVERSAL: "⚠️ PRICE REVERSAL WARNING",
    ExitKind.BTC_REVERSAL: "⚠️ {ref} REVERSAL WARNING",
    ExitKind.PREMIUM_FLIP: "🔴 BOUNCE RISK INCREASED",
    ExitKind.TAKE_PROFIT: "💰 TAKE PROFIT OPPORTUNITY",
    ExitKind.STOP_LOSS: "🛑 STOP LOSS WARNING",
}

_EXIT_SEVERITY = {
    ExitKind.PRICE_REVERSAL: Severity.WARNING,
    ExitKind.BTC_REVERSAL: Severity.WARNING,
    ExitKind.PREMIUM_FLIP: Severity.DANGER,
    ExitKind.TAKE_PROFIT: Severity.BULLISH,
    ExitKind.STOP_LOSS: Severity.DANGER,
}


def _signed_usd(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}${abs(value):,.2f}"


def _pct(odds: float | None) -> str:
    return "N/A" if odds is None else f"{odds * 100:.0f}%"


def score_bar(score: int) -> str:
    filled = round(score / (100 / _BAR_SLOTS))
    return "🟩" * filled + "⬜" * (_BAR_SLOTS - filled)


def _entry_severity(score: ConfidenceScore, direction: Direction) -> Severity:
    if score.recommendation is Recommendation.SKIP:
        return Severity.WARNING
    if score.recommendation is Recommendation.WAIT:
        return Severity.MUTED
    return Severity.BULLISH if direction is Direction.UP else Severity.BEARISH


# ── Entry alert ─────────────────────────────────────────────────────


def entry_alert(
    score: ConfidenceScore,
    *,
    direction: Direction,
    move: float,
    price: float,
    window: HourWindow,
    minutes_left: float,
    atr_ratio: float | None = None,
    relative_volume: float | None = None,
    reference_move: float | None = None,
    reference_label: str = "BTC",
    odds: float | None = None,
    velocity: OddsVelocity | None = None,
    premium: PremiumAnalysis | None = None,
    liquidation_usd: float = 0.0,
) -> Notification:
    """The once-per-hour scorecard."""
    arrow = "📈" if direction is Direction.UP else "📉"
    rec = score.recommendation.label

    why = "\n".join(f"> {label} `+{points}`" for label, points in score.breakdown)
    lines = [
        f"**{score.strength.value}**",
        f"`{score_bar(score.score)}` **{score.score}/100**",
        "",
        "**🔎 Why?**",
        why or "> No contributing factors",
    ]
    if score.gate_reasons:
        lines += ["", "**⛔ Gates**"]
        lines += [f"> {reason}" for reason in score.gate_reasons]

    context = [
        f"• **Flow**: {_signed_usd(move)}"
        + (f" ({atr_ratio:.1f}x ATR)" if atr_ratio is not None else ""),
        "• **Vol**: "
        + (f"{relative_volume:.1f}x Avg" if relative_volume is not None else "N/A"),
    ]
    if reference_move is not None:
        confirms = reference_move * direction.sign > 0
        context.append(
            f"• **{reference_label}**: {'✅' if confirms else '❌'} {_signed_usd(reference_move)}"
        )
    if premium is not None:
        context.append(f"• **Risk**: {_RISK_BADGES[premium.bounce_risk]}")
    context.append(f"• **Time**: {minutes_left:.0f}m left")
    lines += ["", "**📊 Context**", *context]

    fields = [
        NotificationField(name="💵 Price", value=f"${price:,.2f}"),
        NotificationField(name="📊 Hour Open", value=f"${window.open_price:,.2f}"),
        NotificationField(name=f"🎯 {direction.value} Odds", value=_pct(odds)),
    ]
    if velocity is not None and velocity.status not in (
        VelocityStatus.UNKNOWN,
        VelocityStatus.INSUFFICIENT_DATA,
    ):
        fields.append(
            NotificationField(
                name="⚡ Odds Velocity",
                value=f"{velocity.velocity_percent:+.1f}%/min ({velocity.status.value})",
            )
        )
    if premium is not None:
        fields.append(
            NotificationField(
                name="🏦 Premium",
                value=f"{premium.premium_percent:+.3f}%",
            )
        )
        fields.append(
            NotificationField(name="Premium Read", value=premium.analysis, inline=False)
        )
    if liquidation_usd > 0:
        fields.append(
            NotificationField(name="💥 Liquidations", value=f"${liquidation_usd / 1e6:.1f}M")
        )

    return Notification(
        summary=(
            f"**{rec}** (Score: {score.score}) | ETH {_signed_usd(move)} "
            f"{direction.value} | ${price:,.2f} | {direction.value} odds {_pct(odds)}"
        ),
        title=f"{arrow} {rec} | ETH {_signed_usd(move)}",
        description="\n".join(lines),
        fields=fields,
        severity=_entry_severity(score, direction),
    )


# ── Exit alerts ─────────────────────────────────────────────────────


def exit_alert(
    kind: ExitKind,
    position: Position,
    message: str,
    details: dict[str, float | str | None],
    *,
    reference_label: str = "BTC",
) -> Notification:
    """Warning raised by the position monitor for one exit kind."""
    title = _EXIT_TITLES[kind].format(ref=reference_label)
    fields = [NotificationField(name="Position", value=position.direction.value)]
    for name, value in details.items():
        if value is None:
            continue
        text = f"{value:,.4f}" if isinstance(value, float) else str(value)
        fields.append(NotificationField(name=name, value=text))

    return Notification(
        summary=f"**{title}**",
        title=title,
        description=message,
        fields=fields,
        severity=_EXIT_SEVERITY[kind],
    )


# ── Hour boundaries ─────────────────────────────────────────────────


def _local_time(epoch_ms: int, tz: str) -> str:
    when = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).astimezone(ZoneInfo(tz))
    return when.strftime("%I:%M %p %Z").lstrip("0")


def new_hour(window: HourWindow, *, tz: str = "America/New_York") -> Notification:
    return Notification(
        summary=(
            f"⏰ **NEW HOUR** | ETH Open: **${window.open_price:,.2f}** | "
            f"Closes {_local_time(window.close_time + 1, tz)}"
        ),
        severity=Severity.INFO,
    )


def hour_summary(
    window: HourWindow,
    *,
    close_price: float,
    alert: ConfidenceScore | None,
    alert_direction: Direction | None = None,
    resolved: Direction | None = None,
    tz: str = "America/New_York",
) -> Notification:
    """End-of-hour recap of the prior market."""
    move = close_price - window.open_price
    outcome = resolved or Direction.of_move(move)
    source = "market" if resolved is not None else "candle"

    fields = [
        NotificationField(name="Open", value=f"${window.open_price:,.2f}"),
        NotificationField(name="Close", value=f"${close_price:,.2f}"),
        NotificationField(name="Result", value=f"{outcome.value} ({source})"),
    ]
    if alert is None:
        verdict = "No alert this hour"
    else:
        verdict = f"{alert.recommendation.label} @ {alert.score}/100"
        if alert_direction is not None and alert.recommendation.opens_position:
            hit = alert_direction is outcome
            verdict += f" on {alert_direction.value}: {'✅ correct' if hit else '❌ wrong'}"
    fields.append(NotificationField(name="Signal", value=verdict, inline=False))

    return Notification(
        summary=(
            f"🏁 **HOUR CLOSED** {_local_time(window.open_time, tz)} | "
            f"ETH {_signed_usd(move)} → {outcome.value}"
        ),
        title=f"Hour summary: {outcome.value}",
        fields=fields,
        severity=Severity.MUTED,
    )
