from __future__ import annotations

from datetime import datetime, timedelta

import pandas as pd
import pytest

from strategy_lab.core.exceptions import DataValidationError
from strategy_lab.core.models import Action, Bar
from strategy_lab.strats.common import pick_col, risk_levels, to_frame
from strategy_lab.strats.params import StrategyParameters


def _bars(n: int):
    t0 = datetime(2024, 1, 1)
    return [
        Bar(timestamp=t0 + timedelta(days=i), open=10 + i, high=11 + i, low=9 + i, close=10 + i)
        for i in range(n)
    ]


def test_to_frame_from_bar_models_and_mappings():
    df = to_frame(_bars(5))
    assert list(df.columns) == ["open", "high", "low", "close", "volume"]
    assert isinstance(df.index, pd.DatetimeIndex)
    assert df["close"].iloc[-1] == 14.0

    raw = [{"t": "2024-01-01T00:00:00", "o": 1, "h": 2, "l": 0.5, "c": 1.5, "v": 10}]
    assert to_frame(raw)["close"].iloc[0] == 1.5


def test_to_frame_rejects_unordered_timestamps():
    bars = _bars(3)
    with pytest.raises(DataValidationError):
        to_frame([bars[1], bars[0], bars[2]])


def test_to_frame_requires_ohlc_columns():
    df = pd.DataFrame({"close": [1.0, 2.0]}, index=pd.date_range("2024-01-01", periods=2))
    with pytest.raises(DataValidationError):
        to_frame(df)


def test_to_frame_defaults_volume_and_lowercases():
    df = pd.DataFrame(
        {"Open": [1.0], "High": [2.0], "Low": [0.5], "Close": [1.5]},
        index=pd.date_range("2024-01-01", periods=1),
    )
    out = to_frame(df)
    assert out["volume"].iloc[0] == 0.0


def test_pick_col_fallbacks():
    df = pd.DataFrame({"Close_Price": [1.0, 2.0, 3.0]})
    out = pick_col(df, "close", "adj_close", "close_price")
    assert isinstance(out, pd.Series)
    assert out.iloc[-1] == 3.0


def test_risk_levels_follow_direction():
    assert risk_levels(100.0, Action.BUY, 2.0) == (96.0, 106.0)
    assert risk_levels(100.0, Action.SELL, 2.0) == (104.0, 94.0)
    assert risk_levels(100.0, Action.HOLD, 2.0) == (None, None)


def test_parameter_overrides_accept_camel_case_and_ignore_unknown():
    params = StrategyParameters().with_overrides(
        {"rsiPeriod": "10", "sma_short": 5, "a": 1, "riskPerTrade": 2}
    )
    assert params.rsi_period == 10
    assert params.sma_short == 5
    assert params.risk_per_trade == 2.0
    assert not hasattr(params, "a")


def test_pick_col_takes_first_of_duplicate_columns():
    df = pd.DataFrame([[1.0, 2.0, 3.0]], columns=["close", "close", "open"])

    out = pick_col(df, "close")
    assert isinstance(out, pd.Series)
    assert out.iloc[0] == 1.0

    with pytest.raises(KeyError):
        pick_col(df, "volume")
