from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol

import numpy as np
import pandas as pd

from strategy_lab.core.models import Action, Signal
from strategy_lab.strats.base import Strategy
from strategy_lab.strats.common import latest_close, latest_timestamp
from strategy_lab.strats.params import StrategyParameters

DISCREPANCY_THRESHOLD = 0.001  # 0.1%
STOP_FRACTION = 0.999
TARGET_FRACTION = 1.002


class DiscrepancySource(Protocol):
    def __call__(self, symbol: str, price: float) -> float:
        """Fractional price discrepancy for ``symbol`` (0.002 == 0.2%)."""
        ...


class RandomDiscrepancy:
    """Uniform 0-0.5% discrepancy; pass ``seed`` for reproducible runs."""

    def __init__(self, seed: int | None = None, high: float = 0.005):
        self._rng = np.random.default_rng(seed)
        self.high = high

    def __call__(self, symbol: str, price: float) -> float:
        return float(self._rng.uniform(0.0, self.high))


class VenueSpreadDiscrepancy:
    """
    Cross-venue comparison: widest relative spread between venue quotes.

    ``quotes`` returns a mapping of venue name to last price for a symbol.
    Fewer than two usable quotes means no discrepancy.
    """

    def __init__(self, quotes: Callable[[str], Mapping[str, float]]):
        self.quotes = quotes

    def __call__(self, symbol: str, price: float) -> float:
        prices = [float(p) for p in self.quotes(symbol).values() if p and p > 0]
        if len(prices) < 2:
            return 0.0
        low, high = min(prices), max(prices)
        return (high - low) / low


class ArbitrageStrategy(Strategy):
    name = "arbitrage"

    def __init__(
        self,
        parameters: Optional[StrategyParameters] = None,
        discrepancy: Optional[DiscrepancySource] = None,
    ):
        super().__init__(parameters)
        self.discrepancy = discrepancy or RandomDiscrepancy()

    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        price = latest_close(df)
        gap = float(self.discrepancy(symbol, price))

        if gap > DISCREPANCY_THRESHOLD:
            return Signal(
                symbol=symbol,
                action=Action.BUY,
                strength=min(gap * 10_000, 100.0),
                confidence=95.0,
                entry_price=price,
                stop_loss=price * STOP_FRACTION,
                take_profit=price * TARGET_FRACTION,
                reason=f"Arbitrage opportunity detected: {gap * 100:.4f}% price discrepancy",
                timestamp=latest_timestamp(df),
            )
        return self.hold_signal(df, symbol, "No arbitrage opportunity detected")


__all__ = [
    "ArbitrageStrategy",
    "DiscrepancySource",
    "RandomDiscrepancy",
    "VenueSpreadDiscrepancy",
]
