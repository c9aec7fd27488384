"""
Platform Configuration — process-wide settings for the hourwatch runner.

The platform config manages:
  - Environment and log level
  - Notification sink (Discord webhook)
  - Signal log location

Strategy thresholds live in ``workflows.eth_hourly.settings``.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class PlatformSettings(BaseSettings):
    """Platform-wide settings. Strategy settings are in each workflow package."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Platform ─────────────────────────────────────────────────────
    platform_name: str = "hourwatch"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Notifications ────────────────────────────────────────────────
    discord_webhook_eth_hourly: str = ""
    notification_footer: str = "ETH Hourly Watcher"

    # ── Signal Log ───────────────────────────────────────────────────
    signal_log_path: str = "./logs/signals.jsonl"
    signal_log_enabled: bool = True

    @property
    def json_logs(self) -> bool:
        """Machine-readable logs outside development."""
        return self.environment != "development"


@lru_cache
def get_platform_settings() -> PlatformSettings:
    """Parsed once per process, used only by the CLI bootstrap."""
    return PlatformSettings()
