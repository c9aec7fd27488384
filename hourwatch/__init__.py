"""
hourwatch — platform layer for the hourly signal engine.

Provides the shared infrastructure the workflows build on: settings,
structured logging, the error taxonomy, notification models and the
connectors for Binance, Polymarket and Discord.
"""

from hourwatch.config import PlatformSettings, get_platform_settings
from hourwatch.errors import (
    ConnectorError,
    ConnectorRateLimitError,
    ConnectorUnavailableError,
    HourwatchError,
    PayloadError,
)
from hourwatch.models import Notification, NotificationField, Severity
from hourwatch.version import APP_NAME, VERSION

__all__ = [
    "PlatformSettings",
    "get_platform_settings",
    "HourwatchError",
    "ConnectorError",
    "ConnectorUnavailableError",
    "ConnectorRateLimitError",
    "PayloadError",
    "Notification",
    "NotificationField",
    "Severity",
    "APP_NAME",
    "VERSION",
]
