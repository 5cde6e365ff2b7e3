"""
Bar-by-bar simulation engine.

Every non-hold consensus decision becomes a one-bar round trip: entered at
the signal bar's close and exited at the next bar's close. No position is
carried across bars.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from loguru import logger

from strategy_lab.backtest.metrics import (
    RiskMetrics,
    SummaryMetrics,
    risk_metrics,
    trade_summary,
)
from strategy_lab.core.exceptions import InsufficientDataError
from strategy_lab.core.models import BacktestConfig, BacktestTrade, EquityPoint, Signal
from strategy_lab.data.provider import HistoricalDataProvider
from strategy_lab.logging_utils import logging_context
from strategy_lab.settings import BacktestSettings, get_backtest_settings
from strategy_lab.strats.manager import StrategyManager
from strategy_lab.strats.params import StrategyParameters

CONSENSUS_LABELS = {"consensus", "all", ""}

ManagerFactory = Callable[[BacktestConfig], StrategyManager]


class RunState(str, Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BacktestResult:
    """
    Outcome of one completed simulation run.

    Attributes:
        config (BacktestConfig): The inputs the run was started with.
        summary (SummaryMetrics): Trade and capital statistics.
        risk_metrics (RiskMetrics): Ratios derived from the summary.
        trades (List[BacktestTrade]): Round trips ordered by entry time.
        equity_curve (List[EquityPoint]): One point per simulated bar.
    """

    config: BacktestConfig
    summary: SummaryMetrics
    risk_metrics: RiskMetrics
    trades: List[BacktestTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)

    @property
    def final_capital(self) -> float:
        return self.summary.final_capital

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.model_dump(mode="json"),
            "summary": asdict(self.summary),
            "metrics": asdict(self.risk_metrics),
            "trades": [t.model_dump(mode="json") for t in self.trades],
            "equity_curve": [p.model_dump(mode="json") for p in self.equity_curve],
        }


def strategy_names(label: str) -> Optional[List[str]]:
    """``"consensus"`` selects every built-in strategy; otherwise a comma list."""
    if label.strip().lower() in CONSENSUS_LABELS:
        return None
    return [name.strip() for name in label.split(",") if name.strip()]


def default_manager_factory(config: BacktestConfig) -> StrategyManager:
    params = StrategyParameters().with_overrides(config.parameters)
    return StrategyManager.from_registry(strategy_names(config.strategy), params)


class BacktestRun:
    """
    One simulation run: ``Initialized -> Running -> Completed`` or ``Failed``.

    Runs share nothing with each other; the manager is built per run from the
    config's parameters.
    """

    def __init__(
        self,
        config: BacktestConfig,
        provider: HistoricalDataProvider,
        settings: BacktestSettings,
        manager_factory: ManagerFactory,
    ):
        self.config = config
        self.provider = provider
        self.settings = settings
        self.manager_factory = manager_factory
        self.state = RunState.INITIALIZED
        self.result: Optional[BacktestResult] = None

    def _load_bars(self) -> pd.DataFrame:
        cfg = self.config
        df = self.provider.get_bars(cfg.symbol, cfg.start_date, cfg.end_date)
        if len(df) < self.settings.min_bars:
            raise InsufficientDataError(cfg.symbol, len(df), self.settings.min_bars)
        return df

    def _position_size(self, capital: float, entry_price: float) -> float:
        risk_amount = capital * self.settings.risk_fraction
        return risk_amount / (entry_price * self.settings.adverse_move)

    def _make_trade(
        self,
        i: int,
        signal: Signal,
        current: pd.Series,
        nxt: pd.Series,
        capital: float,
    ) -> Optional[BacktestTrade]:
        entry_price = float(current["close"])
        exit_price = float(nxt["close"])
        if entry_price <= 0 or capital <= 0:
            logger.warning(
                "[backtest] bar {} not traded: entry={} capital={}", i, entry_price, capital
            )
            return None

        size = self._position_size(capital, entry_price)
        notional = entry_price * size
        profit = (exit_price - entry_price) * size * signal.action.direction
        fees = abs(notional) * self.settings.fee_rate
        net = profit - fees
        return BacktestTrade(
            id=f"{self.config.symbol}-{i}",
            symbol=self.config.symbol,
            action=signal.action,
            quantity=size,
            entry_price=entry_price,
            exit_price=exit_price,
            entry_time=current.name,
            exit_time=nxt.name,
            profit_loss=net,
            profit_loss_percent=net / notional * 100.0,
            fees=fees,
            strategy_label=self.config.strategy,
            reason=signal.reason,
        )

    def _simulate(self, df: pd.DataFrame) -> BacktestResult:
        cfg = self.config
        manager = self.manager_factory(cfg)
        capital = float(cfg.initial_capital)
        peak = capital
        current_dd = 0.0
        trades: List[BacktestTrade] = []
        equity: List[EquityPoint] = []

        for i in range(self.settings.warmup_bars, len(df) - 1):
            current = df.iloc[i]
            try:
                window = df.iloc[: i + 1]
                signals = manager.evaluate_all(cfg.symbol, window)
                signal = manager.consensus(cfg.symbol, window, signals=signals)
                if signal is not None and signal.is_actionable:
                    trade = self._make_trade(i, signal, current, df.iloc[i + 1], capital)
                    if trade is not None:
                        trades.append(trade)
                        capital += trade.profit_loss
                        peak = max(peak, capital)
                        current_dd = (peak - capital) / peak * 100.0
            except Exception:
                logger.exception("[backtest] error processing bar {}, skipped", i)
            equity.append(
                EquityPoint(
                    timestamp=current.name,
                    equity=capital,
                    drawdown_percent=max(current_dd, 0.0),
                )
            )

        summary = trade_summary(
            trades,
            initial_capital=cfg.initial_capital,
            final_capital=capital,
            capital_curve=[p.equity for p in equity],
        )
        return BacktestResult(
            config=cfg,
            summary=summary,
            risk_metrics=risk_metrics(trades, summary),
            trades=trades,
            equity_curve=equity,
        )

    def execute(self) -> BacktestResult:
        cfg = self.config
        with logging_context(run_id=f"{cfg.symbol}:{cfg.strategy}"):
            try:
                df = self._load_bars()
                self.state = RunState.RUNNING
                logger.info(
                    "[backtest] start symbol={} strategy={} bars={} range={}..{}",
                    cfg.symbol,
                    cfg.strategy,
                    len(df),
                    cfg.start_date,
                    cfg.end_date,
                )
                result = self._simulate(df)
            except Exception:
                self.state = RunState.FAILED
                raise
            self.state = RunState.COMPLETED
            self.result = result
            logger.info(
                "[backtest] done symbol={} trades={} return={:.4f}% maxDD={:.4f}%",
                cfg.symbol,
                result.summary.total_trades,
                result.summary.total_return_percent,
                result.summary.max_drawdown,
            )
            return result


class BacktestEngine:
    """Runs simulations against a historical data provider."""

    def __init__(
        self,
        provider: HistoricalDataProvider,
        settings: BacktestSettings | None = None,
        manager_factory: ManagerFactory | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_backtest_settings()
        self.manager_factory = manager_factory or default_manager_factory

    def start(self, config: BacktestConfig) -> BacktestRun:
        """Create a run without executing it; useful for inspecting ``state``."""
        return BacktestRun(config, self.provider, self.settings, self.manager_factory)

    def run_backtest(self, config: BacktestConfig) -> BacktestResult:
        """
        Simulate ``config`` and return the completed result.

        Raises:
            SymbolNotFoundError: The provider has no series for the symbol.
            InsufficientDataError: Fewer than ``min_bars`` bars fall in range.
        """
        return self.start(config).execute()


__all__ = [
    "RunState",
    "BacktestResult",
    "BacktestRun",
    "BacktestEngine",
    "default_manager_factory",
    "strategy_names",
]
