"""Tests for ConnectorRegistry — registration and lifecycle."""

import pytest

from hourwatch.connectors.base_connector import BaseConnector
from hourwatch.connectors.registry import ConnectorRegistry


class RecordingConnector(BaseConnector):
    def __init__(self, name: str, log: list, *, fail_setup: bool = False):
        self._name = name
        self._log = log
        self._fail_setup = fail_setup

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"{self._name} test connector"

    async def setup(self) -> None:
        self._log.append(("setup", self._name))
        if self._fail_setup:
            raise RuntimeError("boom")

    async def teardown(self) -> None:
        self._log.append(("teardown", self._name))


class TestConnectorRegistry:
    def test_register(self):
        registry = ConnectorRegistry()

        registry.register(RecordingConnector("binance", []))
        registry.register(RecordingConnector("discord", []))

        assert registry.names == ["binance", "discord"]

    @pytest.mark.asyncio
    async def test_register_same_name_replaces(self):
        old, new = [], []
        registry = ConnectorRegistry()
        registry.register(RecordingConnector("binance", old))
        registry.register(RecordingConnector("binance", new))

        await registry.setup_all()

        assert registry.names == ["binance"]
        assert old == []
        assert new == [("setup", "binance")]

    def test_registries_are_independent(self):
        a, b = ConnectorRegistry(), ConnectorRegistry()
        a.register(RecordingConnector("binance", []))

        assert b.names == []

    @pytest.mark.asyncio
    async def test_setup_continues_after_failure(self):
        log = []
        registry = ConnectorRegistry()
        registry.register(RecordingConnector("a", log, fail_setup=True))
        registry.register(RecordingConnector("b", log))

        await registry.setup_all()

        assert log == [("setup", "a"), ("setup", "b")]

    @pytest.mark.asyncio
    async def test_teardown_in_reverse_order(self):
        log = []
        registry = ConnectorRegistry()
        registry.register(RecordingConnector("stream", log))
        registry.register(RecordingConnector("binance", log))

        await registry.teardown_all()

        assert log == [("teardown", "binance"), ("teardown", "stream")]
