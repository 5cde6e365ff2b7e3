from __future__ import annotations

from datetime import datetime, timezone

import pandas as pd
import pytest

from strategy_lab.core.exceptions import SymbolNotFoundError
from strategy_lab.data.provider import (
    BASE_PRICES,
    InMemoryBarStore,
    SyntheticDataProvider,
    generate_synthetic_bars,
)

END = datetime(2024, 6, 30, tzinfo=timezone.utc)


def test_store_filters_inclusive_range(trending_frame):
    store = InMemoryBarStore({"X": trending_frame(30)})
    bars = store.get_bars("X", datetime(2024, 1, 5), datetime(2024, 1, 14))

    assert len(bars) == 10
    assert bars.index[0] == pd.Timestamp("2024-01-05")
    assert bars.index[-1] == pd.Timestamp("2024-01-14")
    assert store.available_symbols() == ["X"]


def test_store_accepts_aware_bounds_for_naive_index(trending_frame):
    store = InMemoryBarStore({"X": trending_frame(30)})
    bars = store.get_bars("X", datetime(2024, 1, 5, tzinfo=timezone.utc), None)
    assert len(bars) == 26


def test_store_unknown_symbol():
    with pytest.raises(SymbolNotFoundError):
        InMemoryBarStore().get_bars("NOPE")


def test_synthetic_provider_is_reproducible_with_seed():
    a = SyntheticDataProvider(seed=7, days=120, end=END).get_bars("BTC/USD")
    b = SyntheticDataProvider(seed=7, days=120, end=END).get_bars("BTC/USD")
    c = SyntheticDataProvider(seed=8, days=120, end=END).get_bars("BTC/USD")

    pd.testing.assert_frame_equal(a, b)
    assert not a["close"].equals(c["close"])
    assert len(a) == 121
    assert a.index.is_monotonic_increasing


def test_synthetic_provider_symbols():
    provider = SyntheticDataProvider(seed=1)
    assert provider.available_symbols() == list(BASE_PRICES)
    with pytest.raises(SymbolNotFoundError):
        provider.get_bars("DOGE/USD")


def test_synthetic_bars_are_consistent():
    import numpy as np

    df = generate_synthetic_bars("EUR/USD", days=200, end=END, rng=np.random.default_rng(5))
    assert (df["high"] >= df[["open", "close"]].max(axis=1)).all()
    assert (df["low"] <= df[["open", "close"]].min(axis=1)).all()
    assert (df["volume"] >= 100_000).all()
    assert df["close"].iloc[0] == pytest.approx(1.08, rel=0.1)
