"""
PolymarketConnector — async Polymarket Gamma API reads.

Market discovery for the hourly "Up or Down" events: the strategy derives
the event slug from the clock and asks Gamma for it. The Gamma API
(https://gamma-api.polymarket.com) is public, no auth needed.

Responses are returned as plain dicts; decoding outcome labels and prices
into odds happens in exactly one place (``workflows.eth_hourly.odds``).

Usage:
    client = AsyncPolymarketClient()
    event = await client.get_event_by_slug("ethereum-up-or-down-january-14-3pm-et")
    await client.close()
"""

import time

import httpx
import structlog

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.errors import (
    ConnectorError,
    ConnectorRateLimitError,
    ConnectorUnavailableError,
    PayloadError,
)

logger = structlog.get_logger(__name__)

GAMMA_API_URL = "https://gamma-api.polymarket.com"


class AsyncPolymarketClient:
    """
    Async Polymarket Gamma client.

    Features:
    - httpx.AsyncClient with HTTP/2 and connection pooling
    - Structured logging for every API call
    - Errors mapped onto the hourwatch connector taxonomy
    """

    def __init__(self, *, base_url: str = GAMMA_API_URL, timeout: float = 5.0):
        self._gamma = httpx.AsyncClient(
            base_url=base_url,
            http2=True,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout, connect=3.0),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
        )

    async def _gamma_request(self, method: str, path: str, **kwargs) -> dict | list:
        """Execute a Gamma API request with error handling."""
        start = time.monotonic()
        try:
            resp = await self._gamma.request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise ConnectorUnavailableError(
                f"Connection failed: {e}", connector_name="polymarket"
            ) from e
        except httpx.TimeoutException as e:
            raise ConnectorUnavailableError(
                f"Request timed out: {e}", connector_name="polymarket"
            ) from e
        except httpx.HTTPError as e:
            raise ConnectorUnavailableError(
                f"Transport error: {e}", connector_name="polymarket"
            ) from e

        latency_ms = (time.monotonic() - start) * 1000

        if resp.status_code == 429:
            logger.warning("polymarket_rate_limited", path=path)
            raise ConnectorRateLimitError(
                "Rate limit exceeded", connector_name="polymarket"
            )
        if resp.status_code >= 500:
            raise ConnectorUnavailableError(
                f"Gamma API error: {resp.status_code}",
                connector_name="polymarket",
                detail=str(resp.status_code),
            )
        if resp.status_code >= 400:
            raise ConnectorError(
                f"Gamma API error: {resp.status_code} — {resp.text}",
                connector_name="polymarket",
                detail=str(resp.status_code),
            )

        logger.debug(
            "polymarket_gamma_request",
            method=method,
            path=path,
            status=resp.status_code,
            latency_ms=round(latency_ms),
        )
        try:
            return resp.json()
        except ValueError as e:
            raise PayloadError(
                f"Response is not JSON: {e}", connector_name="polymarket"
            ) from e

    # ── Gamma API — Market Discovery ────────────────────────────────

    async def get_event_by_slug(self, slug: str) -> dict | None:
        """Fetch a single event by slug. Returns None when Gamma has no such event."""
        data = await self._gamma_request("GET", "/events", params={"slug": slug})
        if isinstance(data, list):
            return data[0] if data and isinstance(data[0], dict) else None
        if isinstance(data, dict):
            return data or None
        raise PayloadError(
            "events payload is neither list nor object", connector_name="polymarket"
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self):
        """Close the HTTP connection pool."""
        await self._gamma.aclose()


# ── Connector ────────────────────────────────────────────────────────


class PolymarketConnector(BaseConnector):
    """Polymarket integration block — hourly prediction market odds."""

    @property
    def name(self) -> str:
        return "polymarket"

    @property
    def description(self) -> str:
        return "Polymarket Gamma API — hourly Up/Down market odds"

    def __init__(self, *, timeout: float = 5.0):
        self._timeout = timeout
        self._client: AsyncPolymarketClient | None = None

    @property
    def client(self) -> AsyncPolymarketClient:
        """Get the async Polymarket client. Lazy-initializes on first access."""
        if self._client is None:
            self._client = AsyncPolymarketClient(timeout=self._timeout)
        return self._client

    async def setup(self) -> None:
        """Pre-initialize the client."""
        _ = self.client

    async def teardown(self) -> None:
        """Close the HTTP connection pool."""
        if self._client:
            await self._client.close()
            self._client = None
