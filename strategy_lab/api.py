"""
Caller-facing entry points.

Engines and managers are constructed by the host and passed in; nothing here
keeps process-wide state.
"""
from __future__ import annotations

import threading
from typing import Any, Iterable, List, Mapping, Optional

from strategy_lab.backtest.engine import BacktestEngine, BacktestResult
from strategy_lab.backtest.optimizer import OptimizationResult
from strategy_lab.backtest.optimizer import optimize_parameters as _optimize
from strategy_lab.core.models import BacktestConfig, Signal
from strategy_lab.strats.manager import StrategyManager


def run_backtest(engine: BacktestEngine, config: BacktestConfig) -> BacktestResult:
    """Raises ``SymbolNotFoundError`` or ``InsufficientDataError`` on bad input."""
    return engine.run_backtest(config)


def optimize_parameters(
    engine: BacktestEngine,
    config: BacktestConfig,
    ranges: Mapping[str, Iterable[Any]],
    *,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> List[OptimizationResult]:
    return _optimize(
        engine, config, ranges, max_workers=max_workers, cancel_event=cancel_event
    )


def evaluate_signal(manager: StrategyManager, symbol: str, window: Any) -> List[Signal]:
    return manager.evaluate_all(symbol, window)


def evaluate_consensus(
    manager: StrategyManager, symbol: str, window: Any
) -> Optional[Signal]:
    return manager.consensus(symbol, window)


__all__ = [
    "run_backtest",
    "optimize_parameters",
    "evaluate_signal",
    "evaluate_consensus",
]
