"""Markdown report and rule-based recommendations for a completed backtest."""
from __future__ import annotations

import math
from typing import List

from strategy_lab.backtest.engine import BacktestResult

GOOD_PERFORMANCE = "Strategy shows good performance across all metrics"


def _fmt(value: float, digits: int = 2) -> str:
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return f"{value:.{digits}f}"


def generate_recommendations(result: BacktestResult) -> List[str]:
    s = result.summary
    recs: List[str] = []
    if s.win_rate < 60:
        recs.append("Consider refining entry/exit criteria to improve win rate")
    if s.max_drawdown > 20:
        recs.append("Implement stricter risk management to reduce drawdowns")
    if s.sharpe_ratio < 1:
        recs.append("Strategy shows low risk-adjusted returns - consider optimization")
    if s.profit_factor < 1.5:
        recs.append("Profit factor is low - focus on improving win rate or average win size")
    if s.average_hold_time < 1:
        recs.append("Very short holding periods may indicate over-trading")
    return recs or [GOOD_PERFORMANCE]


def generate_backtest_report(result: BacktestResult) -> str:
    cfg = result.config
    s = result.summary
    m = result.risk_metrics
    lines = [
        f"# Backtest Report for {cfg.symbol}",
        "",
        "## Configuration",
        f"- Strategy: {cfg.strategy}",
        f"- Period: {cfg.start_date.isoformat()} to {cfg.end_date.isoformat()}",
        f"- Initial Capital: ${cfg.initial_capital:,.2f}",
        "",
        "## Performance Summary",
        f"- Total Return: {_fmt(s.total_return_percent)}%",
        f"- Win Rate: {_fmt(s.win_rate)}%",
        f"- Total Trades: {s.total_trades}",
        f"- Max Drawdown: {_fmt(s.max_drawdown)}%",
        f"- Sharpe Ratio: {_fmt(s.sharpe_ratio)}",
        f"- Profit Factor: {_fmt(s.profit_factor)}",
        "",
        "## Trade Statistics",
        f"- Winning Trades: {s.winning_trades}",
        f"- Losing Trades: {s.losing_trades}",
        f"- Average Win: ${_fmt(s.average_win)}",
        f"- Average Loss: ${_fmt(s.average_loss)}",
        f"- Largest Win: ${_fmt(s.largest_win)}",
        f"- Largest Loss: ${_fmt(s.largest_loss)}",
        f"- Average Hold Time: {_fmt(s.average_hold_time)} days",
        "",
        "## Risk Metrics",
        f"- Calmar Ratio: {_fmt(m.calmar_ratio)}",
        f"- Sortino Ratio: {_fmt(m.sortino_ratio)}",
        f"- Win/Loss Ratio: {_fmt(m.win_loss_ratio)}",
        f"- Recovery Factor: {_fmt(m.recovery_factor)}",
        f"- Risk-Adjusted Return: {_fmt(m.risk_adjusted_return)}",
        "",
        "## Recommendations",
        *(f"- {rec}" for rec in generate_recommendations(result)),
    ]
    return "\n".join(lines)


__all__ = ["generate_backtest_report", "generate_recommendations"]
