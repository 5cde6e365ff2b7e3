from __future__ import annotations

import re
from typing import Any, Sequence, Tuple

import pandas as pd

from strategy_lab.core.exceptions import DataValidationError
from strategy_lab.core.models import Action, Bar

OHLCV_COLUMNS = ("open", "high", "low", "close", "volume")

STOP_ATR_MULT = 2.0
TARGET_ATR_MULT = 3.0


def _normalize_name(s: str) -> str:
    return re.sub(r"[\s\-]+", "_", s).lower()


def first_column(df: pd.DataFrame, name: str) -> pd.Series:
    """
    Return a Series for the given column even if duplicates exist
    (DataFrame would be returned otherwise).
    """
    obj = df.loc[:, name]
    if isinstance(obj, pd.DataFrame):
        obj = obj.iloc[:, 0]
    return obj


def pick_col(df: pd.DataFrame, *candidates: str) -> pd.Series:
    """
    Return the first matching column (case-insensitive, with basic normalization).
    """
    if df is None or df.empty:
        raise KeyError("Empty DataFrame")

    cols = list(df.columns)
    lower_map = {_normalize_name(str(c)): c for c in cols}

    for name in candidates:
        if name in df.columns:
            return first_column(df, name)

    for name in candidates:
        key = _normalize_name(name)
        if key in lower_map:
            return first_column(df, lower_map[key])

    raise KeyError(
        f"None of {candidates} found in DataFrame. "
        f"Available: {cols[:12]}{'...' if len(cols) > 12 else ''}"
    )


def ensure_flat_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    - Lowercase col names
    - Drop duplicate columns (keep first)
    - Require open/high/low/close; default volume to 0
    - Require a strictly increasing index
    """
    out = df.copy()
    out.columns = pd.Index([str(c).strip().lower() for c in out.columns])
    out = out.loc[:, ~out.columns.duplicated(keep="first")]

    missing = [c for c in OHLCV_COLUMNS[:4] if c not in out.columns]
    if missing:
        raise DataValidationError(f"OHLCV frame missing columns: {missing}")
    if "volume" not in out.columns:
        out["volume"] = 0.0

    if not out.index.is_monotonic_increasing or out.index.has_duplicates:
        raise DataValidationError("bar timestamps must be strictly increasing")
    return out


def to_frame(window: Any) -> pd.DataFrame:
    """
    Coerce a window of bars into an OHLCV DataFrame indexed by timestamp.

    Accepts a DataFrame (timestamp index or ``timestamp`` column), a sequence
    of ``Bar`` models, or a sequence of mappings with bar fields.
    """
    if isinstance(window, pd.DataFrame):
        df = window
        if "timestamp" in df.columns:
            df = df.set_index("timestamp")
        return ensure_flat_ohlcv(df)

    if not isinstance(window, Sequence) or isinstance(window, (str, bytes)):
        raise DataValidationError(f"unsupported window type: {type(window).__name__}")
    if len(window) == 0:
        return pd.DataFrame(columns=list(OHLCV_COLUMNS), dtype=float)

    try:
        bars = [b if isinstance(b, Bar) else Bar.model_validate(b) for b in window]
    except ValueError as exc:
        raise DataValidationError(f"invalid bar in window: {exc}") from exc

    df = pd.DataFrame(
        [b.model_dump() for b in bars],
        columns=["timestamp", *OHLCV_COLUMNS],
    ).set_index("timestamp")
    df.index = pd.DatetimeIndex(df.index)
    return ensure_flat_ohlcv(df)


def latest_close(df: pd.DataFrame) -> float:
    return float(pick_col(df, "close", "c").iloc[-1])


def latest_timestamp(df: pd.DataFrame) -> pd.Timestamp:
    return pd.Timestamp(df.index[-1])


def risk_levels(
    entry_price: float, action: Action, atr_value: float
) -> Tuple[float | None, float | None]:
    """Stop at 2x ATR against the trade and target at 3x ATR with it; none for hold."""
    direction = action.direction
    if direction == 0:
        return None, None
    stop = entry_price - direction * STOP_ATR_MULT * atr_value
    target = entry_price + direction * TARGET_ATR_MULT * atr_value
    return stop, target


__all__ = [
    "OHLCV_COLUMNS",
    "first_column",
    "pick_col",
    "ensure_flat_ohlcv",
    "to_frame",
    "latest_close",
    "latest_timestamp",
    "risk_levels",
]
