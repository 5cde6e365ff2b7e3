from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from loguru import logger

from strategy_lab.core.exceptions import InferenceFailure
from strategy_lab.core.models import Action, Signal
from strategy_lab.inference.client import (
    HttpInferenceClient,
    InferenceClient,
    infer_with_timeout,
)
from strategy_lab.settings import InferenceSettings, get_inference_settings
from strategy_lab.strats.base import Strategy
from strategy_lab.strats.params import StrategyParameters

FEATURE_WINDOW = 20
FALLBACK_REASON = "AI analysis unavailable - holding position"


def extract_features(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Summarize the last bars for the inference collaborator.

    volatility is the population stdev of simple returns; momentum is the
    fractional change from the first to the last close.
    """
    recent = df.iloc[-FEATURE_WINDOW:]
    prices = recent["close"].astype(float).to_numpy()
    volumes = recent["volume"].astype(float).to_numpy()

    returns = np.diff(prices) / prices[:-1] if len(prices) > 1 else np.array([])
    volatility = float(returns.std(ddof=0)) if returns.size else 0.0
    momentum = float((prices[-1] - prices[0]) / prices[0]) if len(prices) > 1 else 0.0

    return {
        "price_trend": "up" if prices[-1] > prices[0] else "down",
        "volatility": volatility,
        "volume_trend": "up" if volumes[-1] > volumes[0] else "down",
        "momentum": momentum,
        "range": float(prices.max() - prices.min()),
    }


class MachineLearningStrategy(Strategy):
    """
    Delegates scoring to an external inference collaborator.

    Any collaborator failure, timeout included, yields a neutral hold with
    strength and confidence 50. Collaborator values are echoed unchanged.

    Calls run on ``executor`` when given. Otherwise the strategy owns a thread
    pool of ``INFERENCE_MAX_WORKERS`` workers, released by ``close()``.
    """

    name = "ml"
    min_backtest_confidence = 70.0

    def __init__(
        self,
        parameters: Optional[StrategyParameters] = None,
        client: Optional[InferenceClient] = None,
        *,
        settings: Optional[InferenceSettings] = None,
        executor: Optional[Executor] = None,
    ):
        super().__init__(parameters)
        self.settings = settings or get_inference_settings()
        self.client = client
        if self.client is None and self.settings.enabled:
            self.client = HttpInferenceClient(self.settings)
        self._owns_executor = executor is None
        self.executor: Executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="inference"
        )

    def close(self) -> None:
        """Shut down an owned thread pool without waiting on abandoned calls."""
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)

    def fallback_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        return self.hold_signal(
            df, symbol, FALLBACK_REASON, strength=50.0, confidence=50.0
        )

    def generate_signal(self, df: pd.DataFrame, symbol: str) -> Signal:
        if self.client is None:
            return self.fallback_signal(df, symbol)

        recent = df["close"].astype(float).iloc[-FEATURE_WINDOW:]
        prompt = {
            "symbol": symbol,
            "recent_prices": recent.tolist(),
            "current_price": float(recent.iloc[-1]),
            **extract_features(df),
        }
        try:
            result = infer_with_timeout(
                self.client, prompt, self.settings.timeout_secs, executor=self.executor
            )
        except InferenceFailure as exc:
            logger.warning("[strategy] ml inference failed for {}: {}", symbol, exc)
            return self.fallback_signal(df, symbol)

        if result.action is Action.HOLD:
            return self.hold_signal(
                df,
                symbol,
                result.reason,
                strength=result.strength,
                confidence=result.confidence,
            )
        return self.directional_signal(
            df,
            symbol,
            result.action,
            strength=result.strength,
            confidence=result.confidence,
            reason=result.reason,
        )


__all__ = ["MachineLearningStrategy", "extract_features"]
