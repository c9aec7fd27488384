"""
Structured Error Taxonomy — Typed exceptions for hourwatch.

Design principles:
  - Every error carries `retryable` + `error_code` for automated decisions
  - Hierarchy mirrors the layers: Connector → Payload → Strategy
  - Structured logging friendly: all errors serialize cleanly to JSON

Connectors raise these; the strategy layer catches them at each fetch
boundary, logs them and keeps the last cached value.
"""

from __future__ import annotations

__all__ = [
    # Base
    "HourwatchError",
    # Connector layer
    "ConnectorError",
    "ConnectorUnavailableError",
    "ConnectorRateLimitError",
    # Payload layer
    "PayloadError",
    # Strategy layer
    "StrategyError",
]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Base
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class HourwatchError(Exception):
    """Root exception for hourwatch.

    Attributes:
        retryable: If True, the next scheduled attempt may succeed.
        error_code: Machine-readable code for log filtering and alerting.
    """

    retryable: bool = False
    error_code: str = "HOURWATCH_ERROR"

    def __init__(self, message: str, *, detail: str | None = None):
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for structured logging."""
        return {
            "error_code": self.error_code,
            "message": str(self),
            "detail": self.detail,
            "retryable": self.retryable,
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Connector Layer — Errors talking to Binance, Polymarket, Discord
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ConnectorError(HourwatchError):
    """Base for all connector/integration errors."""

    error_code = "CONNECTOR_ERROR"

    def __init__(self, message: str, *, connector_name: str | None = None, **kwargs):
        self.connector_name = connector_name or getattr(self, "connector_name", None)
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["connector_name"] = self.connector_name
        return d


class ConnectorUnavailableError(ConnectorError):
    """External service is unreachable, timed out or returned 5xx."""

    retryable = True
    error_code = "CONNECTOR_UNAVAILABLE"


class ConnectorRateLimitError(ConnectorError):
    """External service returned HTTP 429 / 418."""

    retryable = True
    error_code = "CONNECTOR_RATE_LIMIT"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Payload Layer — Response arrived but has an unexpected shape
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class PayloadError(ConnectorError):
    """Response body could not be decoded into the internal model."""

    retryable = True
    error_code = "PAYLOAD_MALFORMED"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Strategy Layer
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class StrategyError(HourwatchError):
    """Misuse of the strategy lifecycle (e.g. starting twice)."""

    error_code = "STRATEGY_ERROR"
