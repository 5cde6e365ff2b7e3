from __future__ import annotations

from datetime import datetime

import pytest

from strategy_lab.backtest.engine import BacktestEngine
from strategy_lab.core.models import BacktestConfig
from strategy_lab.data.provider import InMemoryBarStore
from strategy_lab.settings import BacktestSettings


@pytest.fixture
def backtest_settings() -> BacktestSettings:
    return BacktestSettings()


@pytest.fixture
def store(trending_frame, noisy_ohlcv) -> InMemoryBarStore:
    return InMemoryBarStore(
        {
            "X": trending_frame(60),
            "NOISY": noisy_ohlcv,
            "SHORT": trending_frame(10),
        }
    )


@pytest.fixture
def engine(store, backtest_settings) -> BacktestEngine:
    return BacktestEngine(store, backtest_settings)


@pytest.fixture
def technical_config() -> BacktestConfig:
    return BacktestConfig(
        symbol="X",
        strategy="technical",
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 12, 31),
        initial_capital=100_000.0,
        parameters={"sma_short": 5, "sma_long": 10},
    )
