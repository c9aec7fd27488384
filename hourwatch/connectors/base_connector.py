"""
BaseConnector — Abstract base class for all integration blocks.

Every external service hourwatch talks to (Binance REST, Binance stream,
Polymarket Gamma, Discord webhooks) is wrapped in a connector so the
runner can set them up and tear them down uniformly.

Usage:
    class MyConnector(BaseConnector):
        name = "my_service"
        description = "Connects to My Service API"

        async def setup(self) -> None:
            self._client = MyServiceClient()

        async def teardown(self) -> None:
            await self._client.close()
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseConnector(ABC):
    """
    Abstract base class for all integration connectors.

    Subclasses MUST define:
      - name: str — Unique identifier (e.g. "binance", "polymarket")
      - description: str — What this connector does

    Subclasses MAY override:
      - setup(): One-time initialization (client creation, stream start)
      - teardown(): Cleanup (close connections)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique connector identifier (e.g. 'binance')."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this connector does."""
        ...

    # ── Lifecycle Hooks ──────────────────────────────────────────────

    async def setup(self) -> None:
        """Called once before the strategy starts. Override for initialization."""
        pass

    async def teardown(self) -> None:
        """Called on shutdown. Override for cleanup."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
