"""
ConnectorRegistry — lifecycle management for integration blocks.

The runner builds one registry, registers the connectors it created and
hands the connectors' clients to the strategy by reference. There is no
process-global instance: two runners in one process get two registries.

Usage:
    registry = ConnectorRegistry()
    registry.register(BinanceConnector())
    registry.register(PolymarketConnector())
    await registry.setup_all()
    ...
    await registry.teardown_all()
"""

import structlog

from hourwatch.connectors.base_connector import BaseConnector

logger = structlog.get_logger(__name__)


class ConnectorRegistry:
    """
    Registry for the connectors one runner owns.

    Provides:
      - Registration by name
      - Lifecycle management (setup_all, teardown_all)
    """

    def __init__(self):
        self._connectors: dict[str, BaseConnector] = {}

    def register(self, connector: BaseConnector) -> None:
        """Register a connector by its name."""
        if connector.name in self._connectors:
            logger.warning(
                "connector_already_registered",
                name=connector.name,
                replacing=True,
            )
        self._connectors[connector.name] = connector
        logger.debug(
            "connector_registered",
            name=connector.name,
            description=connector.description,
        )

    async def setup_all(self) -> None:
        """Initialize all registered connectors."""
        for name, connector in self._connectors.items():
            try:
                await connector.setup()
                logger.info("connector_setup_complete", name=name)
            except Exception as e:
                logger.error("connector_setup_failed", name=name, error=str(e))

    async def teardown_all(self) -> None:
        """Graceful shutdown of all connectors, in reverse registration order."""
        for name, connector in reversed(list(self._connectors.items())):
            try:
                await connector.teardown()
                logger.info("connector_teardown_complete", name=name)
            except Exception as e:
                logger.error("connector_teardown_failed", name=name, error=str(e))

    @property
    def names(self) -> list[str]:
        """List of registered connector names."""
        return list(self._connectors.keys())
