from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type

from strategy_lab.core.exceptions import ConfigError
from strategy_lab.strats.arbitrage import ArbitrageStrategy
from strategy_lab.strats.base import Strategy
from strategy_lab.strats.ml import MachineLearningStrategy
from strategy_lab.strats.params import StrategyParameters
from strategy_lab.strats.technical import TechnicalAnalysisStrategy

STRATEGIES: Dict[str, Type[Strategy]] = {
    "technical": TechnicalAnalysisStrategy,
    "ml": MachineLearningStrategy,
    "arbitrage": ArbitrageStrategy,
}

DEFAULT_STRATEGIES = ("technical", "ml", "arbitrage")


def register_strategy(name: str, cls: Type[Strategy]) -> Type[Strategy]:
    """Add a strategy class under ``name``; replaces any previous entry."""
    if not (isinstance(cls, type) and issubclass(cls, Strategy)):
        raise ConfigError(f"{cls!r} is not a Strategy subclass")
    STRATEGIES[name] = cls
    return cls


def available_strategies() -> List[str]:
    return list(STRATEGIES)


def create_strategy(
    name: str,
    parameters: Optional[StrategyParameters] = None,
    **options: Any,
) -> Strategy:
    try:
        cls = STRATEGIES[name]
    except KeyError:
        raise ConfigError(
            f"Unknown strategy '{name}'. Available: {available_strategies()}"
        ) from None
    return cls(parameters, **options)


def create_strategies(
    names: Optional[List[str]] = None,
    parameters: Optional[StrategyParameters] = None,
    options: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, Strategy]:
    """Instantiate ``names`` (default: all built-ins) with shared parameters."""
    options = options or {}
    return {
        name: create_strategy(name, parameters, **dict(options.get(name, {})))
        for name in (names or DEFAULT_STRATEGIES)
    }


__all__ = [
    "STRATEGIES",
    "DEFAULT_STRATEGIES",
    "register_strategy",
    "available_strategies",
    "create_strategy",
    "create_strategies",
]
