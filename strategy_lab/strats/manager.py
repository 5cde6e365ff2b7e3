"""
Strategy manager: runs the active strategies on a window and merges their
votes into a single consensus decision.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from strategy_lab.core.exceptions import ConfigError, StrategyEvaluationError
from strategy_lab.core.models import Action, Signal
from strategy_lab.features.indicators import atr
from strategy_lab.strats.base import Strategy, StrategyBacktestStats
from strategy_lab.strats.common import latest_close, latest_timestamp, risk_levels, to_frame
from strategy_lab.strats.params import StrategyParameters
from strategy_lab.strats.registry import create_strategies

# Fixed tie-break order when two actions share the plurality.
VOTE_ORDER = (Action.BUY, Action.SELL, Action.HOLD)


class StrategyManager:
    def __init__(
        self,
        strategies: Optional[Mapping[str, Strategy]] = None,
        active: Optional[Iterable[str]] = None,
        *,
        atr_period: int = 14,
    ):
        self._strategies: Dict[str, Strategy] = dict(strategies or {})
        names = self._strategies.keys() if active is None else active
        self._active: set[str] = set()
        for name in names:
            self.activate(name)
        self.atr_period = atr_period

    @classmethod
    def from_registry(
        cls,
        names: Optional[List[str]] = None,
        parameters: Optional[StrategyParameters] = None,
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
        active: Optional[Iterable[str]] = None,
    ) -> "StrategyManager":
        params = parameters or StrategyParameters()
        return cls(
            create_strategies(names, params, options),
            active=active,
            atr_period=params.atr_period,
        )

    # -------- Registration --------
    def register(self, name: str, strategy: Strategy, *, activate: bool = True) -> None:
        self._strategies[name] = strategy
        if activate:
            self._active.add(name)

    def activate(self, name: str) -> None:
        if name not in self._strategies:
            raise ConfigError(f"Unknown strategy '{name}'")
        self._active.add(name)

    def deactivate(self, name: str) -> None:
        self._active.discard(name)

    def active_strategies(self) -> List[str]:
        return [name for name in self._strategies if name in self._active]

    def get(self, name: str) -> Strategy:
        return self._strategies[name]

    @property
    def strategies(self) -> Dict[str, Strategy]:
        return dict(self._strategies)

    # -------- Evaluation --------
    def evaluate_all(self, symbol: str, window: Any) -> List[Signal]:
        """
        Run every active strategy on ``window``.

        A strategy that raises is logged and left out of the batch.
        """
        df = to_frame(window)
        signals: List[Signal] = []
        for name in self.active_strategies():
            try:
                signals.append(self._strategies[name].analyze(df, symbol))
            except Exception as exc:
                err = StrategyEvaluationError(name, exc)
                logger.warning("[strategy] {} skipped for {}: {}", name, symbol, err)
        return signals

    def consensus(
        self,
        symbol: str,
        window: Any,
        signals: Optional[Sequence[Signal]] = None,
    ) -> Optional[Signal]:
        """
        Majority vote across active strategies.

        Returns ``None`` unless the plurality action holds a strict majority
        of the signals. Stop/target are recomputed from the window's ATR.
        """
        df = to_frame(window)
        if signals is None:
            signals = self.evaluate_all(symbol, df)
        if not signals or df.empty:
            return None

        votes = Counter(s.action for s in signals)
        winner = max(VOTE_ORDER, key=lambda a: (votes[a], -VOTE_ORDER.index(a)))
        count = votes[winner]
        if count <= len(signals) / 2:
            logger.trace("[strategy] no majority for {}: {}", symbol, dict(votes))
            return None

        confidences = [s.confidence for s in signals if s.action is winner]
        entry = latest_close(df)
        stop, target = risk_levels(entry, winner, atr(df, self.atr_period))
        return Signal(
            symbol=symbol,
            action=winner,
            strength=count / len(signals) * 100.0,
            confidence=sum(confidences) / len(confidences),
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            reason=f"Consensus signal from {count} strategies",
            timestamp=latest_timestamp(df),
        )

    def backtest_all(self, history: Any, symbol: str = "") -> Dict[str, StrategyBacktestStats]:
        """Stand-alone backtest of every registered strategy; failures are omitted."""
        df = to_frame(history)
        results: Dict[str, StrategyBacktestStats] = {}
        for name, strategy in self._strategies.items():
            try:
                results[name] = strategy.backtest(df, symbol)
            except Exception as exc:
                logger.exception("[strategy] backtest of {} failed: {}", name, exc)
        return results


__all__ = ["StrategyManager", "VOTE_ORDER"]
