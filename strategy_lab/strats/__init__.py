from __future__ import annotations

# Public API for strategies

from .arbitrage import ArbitrageStrategy, RandomDiscrepancy, VenueSpreadDiscrepancy
from .base import Strategy, StrategyBacktestStats
from .manager import StrategyManager
from .ml import MachineLearningStrategy
from .params import StrategyParameters
from .registry import available_strategies, create_strategy, register_strategy
from .technical import TechnicalAnalysisStrategy

__all__ = [
    "Strategy",
    "StrategyBacktestStats",
    "StrategyParameters",
    "StrategyManager",
    "TechnicalAnalysisStrategy",
    "MachineLearningStrategy",
    "ArbitrageStrategy",
    "RandomDiscrepancy",
    "VenueSpreadDiscrepancy",
    "available_strategies",
    "create_strategy",
    "register_strategy",
]
