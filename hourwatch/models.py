"""
Platform Models — shared Pydantic models for the connector seams.

  - NotificationField: one name/value row of an alert
  - Notification: what a notification sink accepts
  - Severity: alert color classes
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Severity(str, enum.Enum):
    """Alert severity; each maps to an embed color."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    WARNING = "warning"
    DANGER = "danger"
    INFO = "info"
    MUTED = "muted"

    @property
    def color(self) -> int:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    Severity.BULLISH: 0x00FF00,
    Severity.BEARISH: 0xFF0000,
    Severity.WARNING: 0xFF6600,
    Severity.DANGER: 0xFF0000,
    Severity.INFO: 0x3498DB,
    Severity.MUTED: 0x666666,
}


class NotificationField(BaseModel):
    """A single labelled value shown under an alert."""

    name: str
    value: str
    inline: bool = True


class Notification(BaseModel):
    """Formatted alert handed to a notification sink.

    ``summary`` is the one-line text (message content); ``title``,
    ``description`` and ``fields`` form the structured body.
    """

    summary: str
    title: str = ""
    description: str = ""
    fields: list[NotificationField] = Field(default_factory=list)
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
