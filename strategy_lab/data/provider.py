"""
Historical data collaborators.

``get_bars`` returns an OHLCV frame indexed by timestamp (ascending, no
duplicates) restricted to the inclusive ``[start, end]`` range, and raises
``SymbolNotFoundError`` when the provider has no series for the symbol.
"""
from __future__ import annotations

import threading
import zlib
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

import numpy as np
import pandas as pd
from loguru import logger

from strategy_lab.core.exceptions import SymbolNotFoundError
from strategy_lab.strats.common import to_frame

BASE_PRICES: Dict[str, float] = {
    "BTC/USD": 45000.0,
    "ETH/USD": 3000.0,
    "EUR/USD": 1.08,
    "GBP/USD": 1.27,
    "AAPL": 180.0,
    "TSLA": 240.0,
}
VOLATILITIES: Dict[str, float] = {
    "BTC/USD": 0.05,
    "ETH/USD": 0.06,
    "EUR/USD": 0.01,
    "GBP/USD": 0.012,
    "AAPL": 0.02,
    "TSLA": 0.04,
}
DEFAULT_BASE_PRICE = 100.0
DEFAULT_VOLATILITY = 0.02
DEFAULT_SYMBOLS = tuple(BASE_PRICES)


class HistoricalDataProvider(Protocol):
    def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame: ...

    def available_symbols(self) -> List[str]: ...


def _bound(ts: datetime | None, index: pd.DatetimeIndex) -> Optional[pd.Timestamp]:
    """Express ``ts`` in the timezone convention of ``index``."""
    if ts is None:
        return None
    stamp = pd.Timestamp(ts)
    if index.tz is not None:
        return stamp.tz_localize(index.tz) if stamp.tzinfo is None else stamp.tz_convert(index.tz)
    if stamp.tzinfo is not None:
        return stamp.tz_convert("UTC").tz_localize(None)
    return stamp


def slice_range(
    df: pd.DataFrame, start: datetime | None = None, end: datetime | None = None
) -> pd.DataFrame:
    """Rows with ``start <= timestamp <= end``; either bound may be open."""
    if df.empty:
        return df
    index = pd.DatetimeIndex(df.index)
    lo, hi = _bound(start, index), _bound(end, index)
    mask = np.ones(len(df), dtype=bool)
    if lo is not None:
        mask &= index >= lo
    if hi is not None:
        mask &= index <= hi
    return df.loc[mask]


class InMemoryBarStore:
    """Bar series held in memory, keyed by symbol."""

    def __init__(self, series: Optional[Dict[str, Any]] = None):
        self._series: Dict[str, pd.DataFrame] = {}
        self._lock = threading.Lock()
        for symbol, bars in (series or {}).items():
            self.add(symbol, bars)

    def add(self, symbol: str, bars: Any) -> None:
        """Store ``bars`` (frame, ``Bar`` models or mappings) for ``symbol``."""
        df = to_frame(bars)
        with self._lock:
            self._series[symbol] = df
        logger.debug("[data] stored {} bars for {}", len(df), symbol)

    def available_symbols(self) -> List[str]:
        with self._lock:
            return sorted(self._series)

    def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        with self._lock:
            df = self._series.get(symbol)
        if df is None:
            raise SymbolNotFoundError(symbol)
        return slice_range(df, start, end).copy()


def generate_synthetic_bars(
    symbol: str,
    *,
    days: int = 365,
    end: datetime | None = None,
    rng: np.random.Generator | None = None,
    trend_amplitude: float = 0.01,
) -> pd.DataFrame:
    """
    Daily random-walk bars with a slow sinusoidal drift.

    Produces ``days + 1`` bars ending at ``end`` (default: today, UTC midnight).
    Open/high/low are scattered around the close within half the symbol's
    volatility and always bracket open and close.
    """
    rng = rng or np.random.default_rng()
    end_ts = pd.Timestamp(end or datetime.now(timezone.utc)).normalize()
    if end_ts.tzinfo is None:
        end_ts = end_ts.tz_localize("UTC")

    price = BASE_PRICES.get(symbol, DEFAULT_BASE_PRICE)
    vol = VOLATILITIES.get(symbol, DEFAULT_VOLATILITY)
    half = vol * 0.5

    rows = []
    for i in range(days, -1, -1):
        trend = np.sin(i / 30.0) * trend_amplitude
        price *= 1.0 + (rng.random() - 0.5) * vol + trend
        high = price * (1.0 + rng.random() * half)
        low = price * (1.0 - rng.random() * half)
        open_ = price * (1.0 + (rng.random() - 0.5) * half * 0.5)
        rows.append(
            {
                "timestamp": end_ts - pd.Timedelta(days=i),
                "open": max(open_, low),
                "high": max(high, open_, price),
                "low": min(low, open_, price),
                "close": price,
                "volume": float(rng.integers(100_000, 1_100_000)),
            }
        )
    return pd.DataFrame(rows).set_index("timestamp")


class SyntheticDataProvider:
    """
    Generated daily history for a fixed symbol set.

    With ``seed`` set, each symbol's series depends only on the seed and the
    symbol name, so repeated runs see identical bars.
    """

    def __init__(
        self,
        symbols: Iterable[str] = DEFAULT_SYMBOLS,
        *,
        seed: int | None = None,
        days: int = 365,
        end: datetime | None = None,
        trend_amplitude: float = 0.01,
    ):
        self.symbols = list(symbols)
        self.seed = seed
        self.days = days
        self.end = end or datetime.now(timezone.utc)
        self.trend_amplitude = trend_amplitude
        self._store = InMemoryBarStore()

    def _rng(self, symbol: str) -> np.random.Generator:
        if self.seed is None:
            return np.random.default_rng()
        return np.random.default_rng([self.seed, zlib.crc32(symbol.encode("utf-8"))])

    def available_symbols(self) -> List[str]:
        return list(self.symbols)

    def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        if symbol not in self.symbols:
            raise SymbolNotFoundError(symbol)
        if symbol not in self._store.available_symbols():
            self._store.add(
                symbol,
                generate_synthetic_bars(
                    symbol,
                    days=self.days,
                    end=self.end,
                    rng=self._rng(symbol),
                    trend_amplitude=self.trend_amplitude,
                ),
            )
        return self._store.get_bars(symbol, start, end)


__all__ = [
    "BASE_PRICES",
    "VOLATILITIES",
    "HistoricalDataProvider",
    "InMemoryBarStore",
    "SyntheticDataProvider",
    "generate_synthetic_bars",
    "slice_range",
]
