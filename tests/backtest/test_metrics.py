from __future__ import annotations

import math
from datetime import datetime, timedelta

import pytest

from strategy_lab.backtest import metrics
from strategy_lab.core.models import Action, BacktestTrade


def _trade(pnl: float, pct: float, *, hours: int = 24, i: int = 0) -> BacktestTrade:
    t0 = datetime(2024, 1, 1) + timedelta(days=i)
    return BacktestTrade(
        id=f"X-{i}",
        symbol="X",
        action=Action.BUY,
        quantity=1.0,
        entry_price=100.0,
        exit_price=100.0 + pnl,
        entry_time=t0,
        exit_time=t0 + timedelta(hours=hours),
        profit_loss=pnl,
        profit_loss_percent=pct,
        fees=0.0,
        strategy_label="technical",
    )


def test_profit_factor_infinite_without_losses():
    assert metrics.profit_factor([10.0, 5.0]) == math.inf
    assert metrics.profit_factor([10.0, -5.0]) == pytest.approx(2.0)


def test_sharpe_zero_for_identical_returns():
    assert metrics.sharpe_ratio([1.5, 1.5, 1.5]) == 0.0
    assert metrics.sharpe_ratio([0.1, 0.1, 0.1]) == 0.0
    assert metrics.sharpe_ratio([-0.7] * 5) == 0.0
    assert metrics.sharpe_ratio([]) == 0.0
    assert metrics.sharpe_ratio([1.0, 3.0]) == pytest.approx(2.0)


def test_sortino_uses_negative_returns_only():
    assert metrics.sortino_ratio([1.0, 2.0]) == math.inf
    # mean 1, downside rms of [-2] is 2
    assert metrics.sortino_ratio([3.0, 2.0, -2.0]) == pytest.approx(0.5)


def test_drawdown_stats():
    max_dd, current = metrics.drawdown_stats([100.0, 120.0, 90.0, 100.0])
    assert max_dd == pytest.approx(25.0)
    assert current == pytest.approx(100.0 * 20.0 / 120.0)
    assert max_dd >= current >= 0.0


def test_trade_summary_and_risk_metrics():
    trades = [
        _trade(200.0, 2.0, i=0),
        _trade(-100.0, -1.0, i=1),
        _trade(100.0, 1.0, hours=48, i=2),
    ]
    summary = metrics.trade_summary(
        trades,
        initial_capital=1_000.0,
        final_capital=1_200.0,
        capital_curve=[1_200.0, 1_100.0, 1_200.0],
    )
    assert summary.total_trades == 3
    assert summary.winning_trades == 2
    assert summary.losing_trades == 1
    assert summary.win_rate == pytest.approx(200 / 3)
    assert summary.total_return == pytest.approx(200.0)
    assert summary.total_return_percent == pytest.approx(20.0)
    assert summary.profit_factor == pytest.approx(3.0)
    assert summary.average_win == pytest.approx(150.0)
    assert summary.average_loss == pytest.approx(100.0)
    assert summary.largest_win == pytest.approx(200.0)
    assert summary.largest_loss == pytest.approx(100.0)
    assert summary.average_hold_time == pytest.approx(4 / 3)
    assert summary.max_drawdown == pytest.approx(100.0 / 12.0)
    assert summary.current_drawdown == 0.0

    risk = metrics.risk_metrics(trades, summary)
    assert risk.calmar_ratio == pytest.approx(20.0 / summary.max_drawdown)
    assert risk.recovery_factor == pytest.approx(risk.calmar_ratio)
    assert risk.risk_adjusted_return == risk.recovery_factor
    assert risk.win_loss_ratio == pytest.approx(1.5)
    assert risk.profit_factor == summary.profit_factor


def test_ratios_are_zero_without_drawdown():
    trades = [_trade(50.0, 5.0)]
    summary = metrics.trade_summary(trades, initial_capital=1_000.0, final_capital=1_050.0)
    risk = metrics.risk_metrics(trades, summary)

    assert summary.max_drawdown == 0.0
    assert risk.calmar_ratio == 0.0
    assert risk.recovery_factor == 0.0
    assert risk.win_loss_ratio == 0.0


def test_summarize_empty_run():
    out = metrics.summarize([], initial_capital=1_000.0, final_capital=1_000.0)
    assert out["summary"]["total_trades"] == 0
    assert out["summary"]["win_rate"] == 0.0
    assert out["metrics"]["sortino_ratio"] == 0.0
