"""
DiscordConnector — notification sink backed by a Discord webhook.

Posts ``{content, embeds: [embed]}`` to an incoming webhook URL. Delivery
is fire-and-report: failures are logged and ``notify`` returns False; it
never raises and never retries.

Usage:
    discord = DiscordConnector(webhook_url)
    ok = await discord.notify(Notification(summary="**ENTRY SIGNAL**", ...))
"""

from __future__ import annotations

import time

import httpx
import structlog

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.errors import (
    ConnectorError,
    ConnectorRateLimitError,
    ConnectorUnavailableError,
)
from hourwatch.models import Notification

logger = structlog.get_logger(__name__)


def build_embed(notification: Notification, footer: str) -> dict:
    """Render a Notification as a Discord embed object."""
    return {
        "title": notification.title or notification.summary,
        "description": notification.description,
        "color": notification.severity.color,
        "fields": [f.model_dump() for f in notification.fields],
        "footer": {"text": footer},
        "timestamp": notification.created_at.isoformat(),
    }


class AsyncDiscordWebhookClient:
    """Minimal async Discord webhook client (httpx, HTTP/2)."""

    def __init__(self, webhook_url: str, *, timeout: float = 10.0):
        self._webhook_url = webhook_url
        self._client = httpx.AsyncClient(
            http2=True,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout, connect=5.0),
        )

    async def execute(self, content: str, embeds: list[dict]) -> None:
        """POST one message to the webhook. Raises ConnectorError on failure."""
        start = time.monotonic()
        try:
            resp = await self._client.post(
                self._webhook_url, json={"content": content, "embeds": embeds}
            )
        except httpx.ConnectError as e:
            raise ConnectorUnavailableError(
                f"Connection failed: {e}", connector_name="discord"
            ) from e
        except httpx.TimeoutException as e:
            raise ConnectorUnavailableError(
                f"Request timed out: {e}", connector_name="discord"
            ) from e
        except httpx.HTTPError as e:
            raise ConnectorUnavailableError(
                f"Transport error: {e}", connector_name="discord"
            ) from e

        if resp.status_code == 429:
            raise ConnectorRateLimitError(
                "Rate limit exceeded", connector_name="discord"
            )
        if resp.status_code >= 400:
            raise ConnectorError(
                f"Webhook error: {resp.status_code} — {resp.text}",
                connector_name="discord",
                detail=str(resp.status_code),
            )

        logger.debug(
            "discord_webhook_sent",
            status=resp.status_code,
            latency_ms=round((time.monotonic() - start) * 1000),
        )

    async def close(self) -> None:
        await self._client.aclose()


class DiscordConnector(BaseConnector):
    """Discord webhook notification sink."""

    @property
    def name(self) -> str:
        return "discord"

    @property
    def description(self) -> str:
        return "Discord webhook alerts"

    def __init__(self, webhook_url: str = "", *, footer: str = "ETH Hourly Watcher"):
        self._webhook_url = webhook_url
        self._footer = footer
        self._client: AsyncDiscordWebhookClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    @property
    def client(self) -> AsyncDiscordWebhookClient:
        if self._client is None:
            self._client = AsyncDiscordWebhookClient(self._webhook_url)
        return self._client

    async def notify(self, notification: Notification) -> bool:
        """Deliver a notification. Returns False on any failure."""
        if not self.enabled:
            logger.warning("discord_no_webhook", summary=notification.summary)
            return False
        try:
            await self.client.execute(notification.summary, self._embeds(notification))
        except ConnectorError as e:
            logger.error("discord_send_failed", **e.to_dict())
            return False
        return True

    def _embeds(self, notification: Notification) -> list[dict]:
        # Plain one-line messages go out without an embed
        if not (notification.title or notification.description or notification.fields):
            return []
        return [build_embed(notification, self._footer)]

    async def teardown(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
