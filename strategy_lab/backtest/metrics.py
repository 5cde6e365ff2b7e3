# strategy_lab/backtest/metrics.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from strategy_lab.core.models import BacktestTrade

FLAT_TOLERANCE = 1e-12


# -------- Data classes --------
@dataclass
class SummaryMetrics:
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    initial_capital: float
    final_capital: float
    total_return: float
    total_return_percent: float
    max_drawdown: float
    max_drawdown_percent: float
    current_drawdown: float
    sharpe_ratio: float
    profit_factor: float
    average_win: float
    average_loss: float
    largest_win: float
    largest_loss: float
    average_hold_time: float


@dataclass
class RiskMetrics:
    calmar_ratio: float
    sortino_ratio: float
    win_loss_ratio: float
    profit_factor: float
    recovery_factor: float
    risk_adjusted_return: float


# -------- Ratio helpers --------
def _as_array(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def _negligible(dispersion: float, mean: float) -> bool:
    # float noise from averaging identical values such as 0.1
    return not math.isfinite(dispersion) or dispersion <= FLAT_TOLERANCE * max(1.0, abs(mean))


def sharpe_ratio(returns_pct: Iterable[float]) -> float:
    """Mean over population stdev of per-trade returns; 0 when flat or empty."""
    r = _as_array(returns_pct)
    if r.size == 0:
        return 0.0
    mean = float(r.mean())
    std = float(r.std(ddof=0))
    if _negligible(std, mean):
        return 0.0
    return mean / std


def sortino_ratio(returns_pct: Iterable[float]) -> float:
    """
    Mean return over downside deviation (root mean square of negative returns).

    Infinite when there are no negative returns and the mean is positive.
    """
    r = _as_array(returns_pct)
    if r.size == 0:
        return 0.0
    mean = float(r.mean())
    neg = r[r < 0]
    if neg.size == 0:
        return math.inf if mean > 0 else 0.0
    downside = float(np.sqrt(np.mean(neg**2)))
    return 0.0 if _negligible(downside, mean) else mean / downside


def profit_factor(pnls: Iterable[float]) -> float:
    """Gross profit over absolute gross loss; infinite when nothing was lost."""
    p = _as_array(pnls)
    gross_profit = float(p[p > 0].sum())
    gross_loss = abs(float(p[p <= 0].sum()))
    if gross_loss == 0:
        return math.inf
    return gross_profit / gross_loss


def _drawdown_curve(curve: pd.Series) -> Tuple[pd.Series, float, float]:
    s = curve.astype(float).dropna()
    if s.empty:
        return pd.Series(dtype=float), 0.0, 0.0
    cummax = s.cummax()
    dd = ((cummax - s) / cummax * 100.0).clip(lower=0.0)
    return dd, float(dd.max()), float(dd.iloc[-1])


def drawdown_stats(
    capital_curve: Sequence[float] | pd.Series,
) -> Tuple[float, float]:
    """Return (max_drawdown_pct, current_drawdown_pct) of a realized capital curve."""
    _, max_dd, current_dd = _drawdown_curve(pd.Series(list(capital_curve), dtype=float))
    return max_dd, current_dd


# -------- Public API --------
def trade_summary(
    trades: Sequence[BacktestTrade],
    *,
    initial_capital: float,
    final_capital: float,
    capital_curve: Sequence[float] | None = None,
) -> SummaryMetrics:
    """
    Summary statistics for a completed run.

    capital_curve: realized capital after each bar, starting value excluded; the
    initial capital is prepended before drawdowns are measured.
    """
    pnls = _as_array(t.profit_loss for t in trades)
    returns = _as_array(t.profit_loss_percent for t in trades)
    wins = pnls[pnls > 0]
    losses = pnls[pnls < 0]
    n = len(pnls)

    curve = [initial_capital, *(capital_curve or [])]
    if capital_curve is None:
        curve += list(initial_capital + np.cumsum(pnls))
    max_dd, current_dd = drawdown_stats(curve)

    total_return = float(final_capital - initial_capital)
    total_return_pct = (total_return / initial_capital * 100.0) if initial_capital else 0.0
    hold_days = [t.hold_days for t in trades]

    summary = SummaryMetrics(
        total_trades=n,
        winning_trades=int(len(wins)),
        losing_trades=int(len(losses)),
        win_rate=(len(wins) / n * 100.0) if n else 0.0,
        initial_capital=float(initial_capital),
        final_capital=float(final_capital),
        total_return=total_return,
        total_return_percent=total_return_pct,
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd,
        current_drawdown=current_dd,
        sharpe_ratio=sharpe_ratio(returns),
        profit_factor=profit_factor(pnls),
        average_win=float(wins.mean()) if len(wins) else 0.0,
        average_loss=float(np.abs(losses).mean()) if len(losses) else 0.0,
        largest_win=float(wins.max()) if len(wins) else 0.0,
        largest_loss=float(np.abs(losses).max()) if len(losses) else 0.0,
        average_hold_time=float(np.mean(hold_days)) if hold_days else 0.0,
    )
    logger.debug(
        "[metrics] trades={} win_rate={:.2f} ret={:.4f}% sharpe={:.3f} maxDD={:.4f}%",
        summary.total_trades,
        summary.win_rate,
        summary.total_return_percent,
        summary.sharpe_ratio,
        summary.max_drawdown,
    )
    return summary


def risk_metrics(trades: Sequence[BacktestTrade], summary: SummaryMetrics) -> RiskMetrics:
    returns = _as_array(t.profit_loss_percent for t in trades)
    max_dd = summary.max_drawdown
    ret_pct = summary.total_return_percent

    calmar = abs(ret_pct) / max_dd if max_dd != 0 else 0.0
    win_loss = summary.average_win / summary.average_loss if summary.average_loss != 0 else 0.0
    recovery = ret_pct / max_dd if max_dd != 0 else 0.0

    return RiskMetrics(
        calmar_ratio=calmar,
        sortino_ratio=sortino_ratio(returns),
        win_loss_ratio=win_loss,
        profit_factor=summary.profit_factor,
        recovery_factor=recovery,
        risk_adjusted_return=recovery,
    )


def summarize(
    trades: Sequence[BacktestTrade],
    *,
    initial_capital: float,
    final_capital: float,
    capital_curve: Sequence[float] | None = None,
) -> Dict[str, Any]:
    summary = trade_summary(
        trades,
        initial_capital=initial_capital,
        final_capital=final_capital,
        capital_curve=capital_curve,
    )
    rm = risk_metrics(trades, summary)
    logger.debug("[metrics] summary built: trades & risk")
    return {"summary": asdict(summary), "metrics": asdict(rm)}


__all__ = [
    "SummaryMetrics",
    "RiskMetrics",
    "sharpe_ratio",
    "sortino_ratio",
    "profit_factor",
    "drawdown_stats",
    "trade_summary",
    "risk_metrics",
    "summarize",
]
