"""
ETH Hourly — one scored alert per hour on the Polymarket "Ethereum Up or
Down" market, plus exit-risk monitoring of the recommended side.
"""

from workflows.eth_hourly.settings import StrategySettings, get_strategy_settings
from workflows.eth_hourly.strategy import EthHourlyStrategy, StrategyState

__all__ = [
    "EthHourlyStrategy",
    "StrategySettings",
    "StrategyState",
    "get_strategy_settings",
]
