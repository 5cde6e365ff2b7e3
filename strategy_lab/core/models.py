from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.fields import AliasChoices


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"

    @property
    def direction(self) -> int:
        """+1 for buy, -1 for sell, 0 for hold."""
        return {Action.BUY: 1, Action.SELL: -1}.get(self, 0)


class Bar(BaseModel):
    """
    A Pydantic model for one OHLCV sample of a single symbol.

    Attributes:
        timestamp (datetime): Start of the interval.
        open (float): The open price.
        high (float): The high price.
        low (float): The low price.
        close (float): The close price.
        volume (float): The traded volume.
    """

    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "t", "ts"))
    open: float = Field(validation_alias=AliasChoices("open", "o"))
    high: float = Field(validation_alias=AliasChoices("high", "h"))
    low: float = Field(validation_alias=AliasChoices("low", "l"))
    close: float = Field(validation_alias=AliasChoices("close", "c"))
    volume: float = Field(0.0, validation_alias=AliasChoices("volume", "v"))

    def __repr__(self) -> str:
        return (
            f"Bar({self.timestamp:%Y-%m-%d %H:%M}, o={self.open:.2f}, h={self.high:.2f}, "
            f"l={self.low:.2f}, c={self.close:.2f}, v={self.volume:.0f})"
        )

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}


class Signal(BaseModel):
    """
    A strategy's recommendation for one evaluation point.

    Attributes:
        symbol (str): The instrument the signal refers to.
        action (Action): buy, sell or hold.
        strength (float): Signal strength in [0, 100].
        confidence (float): Confidence in [0, 100].
        entry_price (float): Close of the latest bar in the window.
        stop_loss (Optional[float]): Protective stop for non-hold actions.
        take_profit (Optional[float]): Profit target for non-hold actions.
        reason (str): Human-readable explanation.
        timestamp (datetime): Timestamp of the bar the signal was produced on.
    """

    symbol: str
    action: Action
    strength: float = Field(0.0, ge=0.0, le=100.0)
    confidence: float = Field(0.0, ge=0.0, le=100.0)
    entry_price: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    reason: str = ""
    timestamp: datetime

    @property
    def is_actionable(self) -> bool:
        return self.action is not Action.HOLD

    model_config = {"frozen": True, "use_enum_values": False}


class BacktestConfig(BaseModel):
    """
    Inputs for one simulation run.

    ``parameters`` holds strategy parameter overrides (flat names such as
    ``rsi_period`` or ``risk_per_trade``); the optimizer clones the config with
    ``model_copy(update={"parameters": ...})`` for every combination.
    """

    symbol: str
    strategy: str = "consensus"
    start_date: datetime
    end_date: datetime
    initial_capital: float = Field(100_000.0, gt=0.0)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_range(self) -> "BacktestConfig":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self

    def with_parameters(self, parameters: Dict[str, Any]) -> "BacktestConfig":
        merged = {**self.parameters, **parameters}
        return self.model_copy(update={"parameters": merged}, deep=True)

    model_config = {"frozen": True, "extra": "ignore"}


class BacktestTrade(BaseModel):
    """One-bar round trip recorded by the simulation engine."""

    id: str
    symbol: str
    action: Action
    quantity: float = Field(gt=0.0)
    entry_price: float
    exit_price: float
    entry_time: datetime
    exit_time: datetime
    profit_loss: float
    profit_loss_percent: float
    fees: float
    strategy_label: str
    reason: str = ""
    status: str = "completed"

    @model_validator(mode="after")
    def _check_times(self) -> "BacktestTrade":
        if not self.entry_time < self.exit_time:
            raise ValueError("entry_time must precede exit_time")
        return self

    @property
    def hold_days(self) -> float:
        return (self.exit_time - self.entry_time).total_seconds() / 86_400.0

    model_config = {"frozen": True}


class EquityPoint(BaseModel):
    timestamp: datetime
    equity: float
    drawdown_percent: float = Field(0.0, ge=0.0)

    model_config = {"frozen": True}


__all__ = [
    "Action",
    "Bar",
    "Signal",
    "BacktestConfig",
    "BacktestTrade",
    "EquityPoint",
]
