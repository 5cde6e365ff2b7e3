from __future__ import annotations

import os
from typing import Callable

import numpy as np
import pandas as pd
import pytest

from strategy_lab.logging_utils import setup_test_logging

os.environ.setdefault("ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def configure_logging(tmp_path_factory):
    setup_test_logging(tmp_path_factory.mktemp("strategy-lab-logs"))
    yield


@pytest.fixture(autouse=True)
def _no_inference_endpoint(monkeypatch):
    monkeypatch.delenv("INFERENCE_URL", raising=False)


def _frame_from_close(close: np.ndarray, start: str = "2024-01-01") -> pd.DataFrame:
    idx = pd.date_range(start, periods=len(close), freq="D")
    open_ = pd.Series(close).shift(1).fillna(close[0]).to_numpy()
    return pd.DataFrame(
        {
            "open": open_,
            "high": np.maximum(close, open_) * 1.005,
            "low": np.minimum(close, open_) * 0.995,
            "close": close,
            "volume": np.linspace(1_000_000, 2_000_000, len(close)),
        },
        index=idx,
    )


@pytest.fixture
def trending_frame() -> Callable[..., pd.DataFrame]:
    """
    Geometric closes growing by ``rate`` per bar, or linear closes moving by
    ``step`` per bar from ``base`` when ``step`` is given.
    """

    def make(
        n: int = 60,
        rate: float = 0.01,
        start: str = "2024-01-01",
        *,
        step: float | None = None,
        base: float = 100.0,
    ) -> pd.DataFrame:
        if step is not None:
            close = base + step * np.arange(n, dtype=float)
        else:
            close = base * (1.0 + rate) ** np.arange(n)
        return _frame_from_close(close, start)

    return make


@pytest.fixture(scope="module")
def noisy_ohlcv() -> pd.DataFrame:
    """Random walk with drift changes; deterministic via a fixed seed."""
    rng = np.random.default_rng(seed=42)
    n = 160
    drift = np.r_[np.full(60, 0.002), np.full(50, -0.003), np.full(50, 0.001)]
    close = 100.0 * np.cumprod(1 + drift + rng.normal(0.0, 0.01, n))
    return _frame_from_close(close)
