from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from strategy_lab.features import indicators


def test_rsi_monotonic_increase_is_100():
    series = [float(x) for x in range(1, 21)]
    assert indicators.rsi(series, 14) == 100.0


def test_rsi_divides_by_period_not_by_count():
    # changes +1, -1, +2 -> gains 3/2, losses 1/2 -> rs 3
    assert indicators.rsi([10.0, 11.0, 10.0, 12.0], period=2) == pytest.approx(75.0)


def test_rsi_short_history_is_neutral():
    assert indicators.rsi([1.0, 2.0, 3.0], period=14) == 50.0


def test_sma_short_history_returns_last_value():
    assert indicators.sma([1.0, 2.0, 7.0], period=5) == 7.0
    assert indicators.sma([1.0, 2.0, 3.0, 4.0], period=2) == pytest.approx(3.5)


def test_ema_recurrence_over_whole_series():
    # alpha = 2 / (2 + 1); seeded with the first value
    expected = 1.0
    for price in (2.0, 3.0):
        expected = (price - expected) * (2.0 / 3.0) + expected
    assert indicators.ema([1.0, 2.0, 3.0], period=2) == pytest.approx(expected)


def test_ema_short_history_returns_last_value():
    assert indicators.ema([5.0, 6.0], period=10) == 6.0


def test_simple_macd_signal_is_scaled_line():
    series = 100.0 * 1.01 ** np.arange(40)
    m = indicators.macd(series)
    assert m.macd > 0
    assert m.signal == pytest.approx(m.macd * 0.9)
    assert m.histogram == pytest.approx(m.macd * 0.1)


def test_macd_history_signal_needs_enough_history():
    short = 100.0 * 1.01 ** np.arange(30)
    m_short = indicators.macd_with_history(short)
    assert m_short.signal == m_short.macd
    assert m_short.histogram == 0.0

    longer = 100.0 * 1.01 ** np.arange(60)
    m_long = indicators.macd_with_history(longer)
    assert m_long.macd > m_long.signal
    assert m_long.histogram > 0


def test_atr_constant_range():
    df = pd.DataFrame(
        {"high": [11.0] * 20, "low": [9.0] * 20, "close": [10.0] * 20},
        index=pd.date_range("2024-01-01", periods=20, freq="D"),
    )
    assert indicators.atr(df, 14) == pytest.approx(2.0)
    assert indicators.atr(df.iloc[:10], 14) == 0.0


def test_true_range_requires_columns():
    with pytest.raises(ValueError):
        indicators.true_range(pd.DataFrame({"close": [1.0, 2.0]}))


def test_bollinger_uses_population_std():
    bands = indicators.bollinger_bands([1.0, 2.0, 3.0, 4.0], period=4)
    std = np.sqrt(1.25)
    assert bands.middle == pytest.approx(2.5)
    assert bands.upper == pytest.approx(2.5 + 2 * std)
    assert bands.lower == pytest.approx(2.5 - 2 * std)


def test_stochastic_position_in_range(noisy_ohlcv):
    stoch = indicators.stochastic(noisy_ohlcv, 14)
    assert 0.0 <= stoch.k <= 100.0
    assert stoch.d == stoch.k
    assert indicators.stochastic(noisy_ohlcv.iloc[:5], 14).k == 50.0
