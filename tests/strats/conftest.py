from __future__ import annotations

import pandas as pd
import pytest

from strategy_lab.core.models import Action, Signal
from strategy_lab.strats.base import Strategy
from strategy_lab.strats.params import StrategyParameters


class StaticStrategy(Strategy):
    """Always votes ``action`` with a fixed confidence."""

    def __init__(self, name: str, action: Action, confidence: float = 80.0):
        super().__init__(StrategyParameters())
        self.name = name
        self.action = action
        self.confidence = confidence

    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        if self.action is Action.HOLD:
            return self.hold_signal(df, symbol, "static hold", confidence=self.confidence)
        return self.directional_signal(
            df,
            symbol,
            self.action,
            strength=50.0,
            confidence=self.confidence,
            reason=f"static {self.action.value}",
        )


class ExplodingStrategy(Strategy):
    name = "exploding"

    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        raise RuntimeError("indicator blew up")


@pytest.fixture
def static_strategy():
    return StaticStrategy


@pytest.fixture
def exploding_strategy():
    return ExplodingStrategy()


@pytest.fixture
def short_trend_params() -> StrategyParameters:
    return StrategyParameters(sma_short=5, sma_long=10)
