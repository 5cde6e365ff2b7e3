from __future__ import annotations

from typing import Any, Mapping


class StrategyLabError(Exception):
    """Base class for all strategy-lab exceptions."""


class ConfigError(StrategyLabError):
    """Raised for missing/malformed configuration."""


class DataValidationError(StrategyLabError):
    """Raised when supplied bars fail sanity or schema validation."""


class SymbolNotFoundError(StrategyLabError):
    """Raised when no historical series exists for the requested symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No historical data available for {symbol}")
        self.symbol = symbol


class InsufficientDataError(StrategyLabError):
    """Raised when the filtered series is too short to simulate."""

    def __init__(self, symbol: str, available: int, required: int) -> None:
        super().__init__(
            f"Insufficient historical data for {symbol}: "
            f"{available} bars in range, {required} required"
        )
        self.symbol = symbol
        self.available = available
        self.required = required


class StrategyEvaluationError(StrategyLabError):
    """Raised when one strategy's analyze() fails; the strategy's vote is dropped."""

    def __init__(self, strategy: str, cause: BaseException) -> None:
        super().__init__(f"Strategy '{strategy}' failed: {cause}")
        self.strategy = strategy
        self.cause = cause


class InferenceFailure(StrategyLabError):
    """Raised when the inference collaborator times out or returns garbage."""


class OptimizationCombinationError(StrategyLabError):
    """Raised when a single parameter combination cannot be simulated."""

    def __init__(self, parameters: Mapping[str, Any], cause: BaseException) -> None:
        super().__init__(f"Combination {dict(parameters)} failed: {cause}")
        self.parameters = dict(parameters)
        self.cause = cause


__all__ = [
    "StrategyLabError",
    "ConfigError",
    "DataValidationError",
    "SymbolNotFoundError",
    "InsufficientDataError",
    "StrategyEvaluationError",
    "InferenceFailure",
    "OptimizationCombinationError",
]
