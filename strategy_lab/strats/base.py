"""
Strategy base class.

A strategy turns a window of bars (oldest first) into one ``Signal`` for the
latest bar. Concrete strategies implement ``generate_signal`` on a validated
OHLCV frame; ``analyze`` accepts any window shape ``to_frame`` understands.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List

import pandas as pd
from loguru import logger

from strategy_lab.backtest.metrics import profit_factor, sharpe_ratio
from strategy_lab.core.exceptions import DataValidationError
from strategy_lab.core.models import Action, Signal
from strategy_lab.features.indicators import atr
from strategy_lab.strats.common import (
    latest_close,
    latest_timestamp,
    risk_levels,
    to_frame,
)
from strategy_lab.strats.params import StrategyParameters

STANDALONE_CAPITAL = 100_000.0
STANDALONE_START = 50


@dataclass
class StrategyBacktestStats:
    """
    Summary of a strategy's stand-alone simplified backtest.

    Attributes:
        total_trades (int): Number of simulated round trips.
        winning_trades (int): Trades with positive profit.
        losing_trades (int): Trades with zero or negative profit.
        win_rate (float): Winning share in percent.
        total_return (float): Return on the starting balance in percent.
        max_drawdown (float): Worst peak-to-trough decline in percent.
        sharpe_ratio (float): Mean / stdev of per-trade return percent.
        profit_factor (float): Gross profit / gross loss (inf without losses).
        average_win (float): Mean profit of winning trades.
        average_loss (float): Mean absolute loss of losing trades.
    """

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_return: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    profit_factor: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0


class Strategy(ABC):
    """Base class for signal-generating strategies."""

    name: str = "strategy"
    #: Signals at or below this confidence are ignored by the stand-alone backtest.
    min_backtest_confidence: float | None = None

    def __init__(self, parameters: StrategyParameters | None = None):
        self.parameters = parameters or StrategyParameters()

    def analyze(self, window: Any, symbol: str = "") -> Signal:
        """Produce a signal for the latest bar of ``window``."""
        df = to_frame(window)
        if df.empty:
            raise DataValidationError(f"{self.name}: empty window")
        return self.generate_signal(df, symbol)

    @abstractmethod
    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        """
        Strategy implementation goes here.

        Args:
            df: Non-empty OHLCV frame indexed by timestamp.
            symbol: Instrument the window belongs to.
        """

    def hold_signal(
        self,
        df: pd.DataFrame,
        symbol: str,
        reason: str,
        *,
        strength: float = 0.0,
        confidence: float = 0.0,
    ) -> Signal:
        return Signal(
            symbol=symbol,
            action=Action.HOLD,
            strength=strength,
            confidence=confidence,
            entry_price=latest_close(df),
            reason=reason,
            timestamp=latest_timestamp(df),
        )

    def directional_signal(
        self,
        df: pd.DataFrame,
        symbol: str,
        action: Action,
        *,
        strength: float,
        confidence: float,
        reason: str,
    ) -> Signal:
        """Signal with stop/target placed at 2x/3x ATR of the window."""
        entry = latest_close(df)
        stop, target = risk_levels(entry, action, atr(df, self.parameters.atr_period))
        return Signal(
            symbol=symbol,
            action=action,
            strength=strength,
            confidence=confidence,
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            reason=reason,
            timestamp=latest_timestamp(df),
        )

    def _accepts_for_backtest(self, signal: Signal) -> bool:
        if not signal.is_actionable:
            return False
        if self.min_backtest_confidence is None:
            return True
        return signal.confidence > self.min_backtest_confidence

    def backtest(self, history: Any, symbol: str = "") -> StrategyBacktestStats:
        """
        Simplified stand-alone backtest used to compare strategies.

        Each accepted signal is a one-bar round trip sized so that hitting the
        stop would lose ``risk_per_trade`` percent of the balance. Trades whose
        notional exceeds the balance are skipped.
        """
        df = to_frame(history)
        balance = STANDALONE_CAPITAL
        peak = balance
        max_dd = 0.0
        profits: List[float] = []
        returns_pct: List[float] = []

        closes = df["close"].astype(float).to_numpy()
        for i in range(STANDALONE_START, len(df) - 1):
            signal = self.analyze(df.iloc[: i + 1], symbol)
            if not self._accepts_for_backtest(signal) or signal.stop_loss is None:
                continue

            price_risk = abs(signal.entry_price - signal.stop_loss)
            if price_risk <= 0:
                continue
            size = balance * (self.parameters.risk_per_trade / 100.0) / price_risk
            entry_cost = size * signal.entry_price
            if entry_cost <= 0 or entry_cost > balance:
                continue

            exit_price = float(closes[i + 1])
            profit = (exit_price - signal.entry_price) * size * signal.action.direction
            balance += profit
            peak = max(peak, balance)
            max_dd = max(max_dd, (peak - balance) / peak * 100.0)
            profits.append(profit)
            returns_pct.append(profit / entry_cost * 100.0)

        wins = [p for p in profits if p > 0]
        losses = [p for p in profits if p <= 0]
        n = len(profits)
        stats = StrategyBacktestStats(
            total_trades=n,
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=(len(wins) / n * 100.0) if n else 0.0,
            total_return=(balance - STANDALONE_CAPITAL) / STANDALONE_CAPITAL * 100.0,
            max_drawdown=max_dd,
            sharpe_ratio=sharpe_ratio(returns_pct),
            profit_factor=profit_factor(profits),
            average_win=(sum(wins) / len(wins)) if wins else 0.0,
            average_loss=(sum(abs(p) for p in losses) / len(losses)) if losses else 0.0,
        )
        logger.debug(
            "[strategy] {} stand-alone backtest trades={} return={:.2f}%",
            self.name,
            stats.total_trades,
            stats.total_return,
        )
        return stats

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


__all__ = ["Strategy", "StrategyBacktestStats"]
