"""
Feature engineering: technical indicators.

Each function reduces an ordered price series (oldest first) to the latest
indicator value. The formulas are reproduced as the strategies expect them,
including the non-Wilder RSI averaging over ``period``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd
from loguru import logger

REQUIRED_COLUMNS = ("high", "low", "close")


@dataclass(frozen=True)
class MACDValue:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class Stochastic:
    k: float
    d: float


def _closes(series: pd.Series | Iterable[float]) -> pd.Series:
    if isinstance(series, pd.DataFrame):
        s = series["close"] if "close" in series.columns else series.iloc[:, 0]
    elif isinstance(series, pd.Series):
        s = series
    else:
        s = pd.Series(list(series), dtype=float)
    return s.astype(float).reset_index(drop=True)


def sma(series: pd.Series | Iterable[float], period: int = 20) -> float:
    """Mean of the last ``period`` values; the last value when history is short."""
    s = _closes(series)
    if s.empty:
        return 0.0
    if len(s) < period:
        return float(s.iloc[-1])
    return float(s.iloc[-period:].mean())


def ema_series(series: pd.Series | Iterable[float], period: int) -> pd.Series:
    """Running EMA seeded with the first value (``adjust=False`` recurrence)."""
    return _closes(series).ewm(span=period, adjust=False).mean()


def ema(series: pd.Series | Iterable[float], period: int = 20) -> float:
    """
    Exponential moving average over the entire series.

    The recurrence ``ema = (price - ema) * 2 / (period + 1) + ema`` is seeded
    with the first value. With fewer than ``period`` samples the last value is
    returned.
    """
    s = _closes(series)
    if s.empty:
        return 0.0
    if len(s) < period:
        return float(s.iloc[-1])
    return float(ema_series(s, period).iloc[-1])


def rsi(series: pd.Series | Iterable[float], period: int = 14) -> float:
    """
    Relative Strength Index.

    Gains and losses are summed over the whole change list and divided by
    ``period`` (not by the number of observed changes). Returns 50 when fewer
    than ``period + 1`` samples exist and 100 when the average loss is zero.
    """
    s = _closes(series)
    if len(s) < period + 1:
        logger.debug("[indicators] RSI input too short (len={} < {})", len(s), period + 1)
        return 50.0

    delta = s.diff().iloc[1:]
    avg_gain = float(delta[delta > 0].sum()) / period
    avg_loss = float(-delta[delta < 0].sum()) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(
    series: pd.Series | Iterable[float], fast: int = 12, slow: int = 26
) -> MACDValue:
    """MACD with the fixed ``signal = macd * 0.9`` line."""
    s = _closes(series)
    line = ema(s, fast) - ema(s, slow)
    signal = line * 0.9
    return MACDValue(macd=line, signal=signal, histogram=line - signal)


def macd_with_history(
    series: pd.Series | Iterable[float],
    fast: int = 12,
    slow: int = 26,
    signal_period: int = 9,
) -> MACDValue:
    """
    MACD whose signal line is the EMA of the MACD history.

    History holds the MACD of every prefix longer than ``slow`` values. The
    signal line is only used once more than ``signal_period`` history values
    exist; before that it equals the MACD itself.
    """
    s = _closes(series)
    line = ema(s, fast) - ema(s, slow)

    history = (ema_series(s, fast) - ema_series(s, slow)).iloc[slow:]
    if len(history) > signal_period:
        signal = ema(history, signal_period)
    else:
        signal = line
    return MACDValue(macd=line, signal=signal, histogram=line - signal)


def true_range(df: pd.DataFrame) -> pd.Series:
    """True range per bar; the first bar has no previous close and is dropped."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"DataFrame must contain columns: {missing}")
    high = df["high"].astype(float)
    low = df["low"].astype(float)
    close = df["close"].astype(float)
    prev_c = close.shift(1)
    tr = pd.concat(
        [(high - low), (high - prev_c).abs(), (low - prev_c).abs()],
        axis=1,
    ).max(axis=1)
    return tr.iloc[1:]


def atr(df: pd.DataFrame, period: int = 14) -> float:
    """Mean true range of the last ``period`` bars; 0 without ``period + 1`` bars."""
    if df is None or len(df) < period + 1:
        return 0.0
    tr = true_range(df)
    return float(tr.iloc[-period:].sum()) / period


def bollinger_bands(
    series: pd.Series | Iterable[float], period: int = 20
) -> BollingerBands:
    """Bands at two population standard deviations around the SMA."""
    s = _closes(series)
    middle = sma(s, period)
    recent = s.iloc[-period:].to_numpy(dtype=float)
    variance = float(np.sum((recent - middle) ** 2)) / period if period else 0.0
    std = float(np.sqrt(variance))
    return BollingerBands(upper=middle + 2 * std, middle=middle, lower=middle - 2 * std)


def stochastic(df: pd.DataFrame, period: int = 14) -> Stochastic:
    """%K over the last ``period`` bars; %D mirrors %K."""
    if df is None or len(df) < period:
        return Stochastic(k=50.0, d=50.0)
    recent = df.iloc[-period:]
    highest = float(recent["high"].max())
    lowest = float(recent["low"].min())
    close = float(df["close"].iloc[-1])
    span = highest - lowest
    if span <= 0:
        return Stochastic(k=50.0, d=50.0)
    k = (close - lowest) / span * 100.0
    return Stochastic(k=k, d=k)


__all__ = [
    "MACDValue",
    "BollingerBands",
    "Stochastic",
    "sma",
    "ema",
    "ema_series",
    "rsi",
    "macd",
    "macd_with_history",
    "true_range",
    "atr",
    "bollinger_bands",
    "stochastic",
]
