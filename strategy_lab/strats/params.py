from __future__ import annotations

import re
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

from loguru import logger


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class StrategyParameters:
    # Execution
    timeframe: str = "1h"
    risk_per_trade: float = 1.0  # percent of balance risked per trade
    max_positions: int = 10

    # RSI
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    # MACD
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    # Trend
    sma_short: int = 20
    sma_long: int = 50

    # Volatility
    atr_period: int = 14

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "StrategyParameters":
        """
        Return a copy with matching keys replaced.

        Keys may be snake_case (``rsi_period``) or camelCase (``rsiPeriod``);
        values are coerced to the field's type. Unknown keys are ignored so a
        sweep may carry labels that are not strategy parameters.
        """
        if not overrides:
            return self
        known = {f.name: f for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            name = _snake(str(key))
            if name not in known:
                logger.debug("[strategy] ignoring non-strategy parameter {}", key)
                continue
            current = getattr(self, name)
            updates[name] = type(current)(value)
        return replace(self, **updates)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_PARAMETERS = StrategyParameters()

__all__ = ["StrategyParameters", "DEFAULT_PARAMETERS"]
