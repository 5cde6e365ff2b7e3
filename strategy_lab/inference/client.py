"""
Inference collaborator used by the machine-learning strategy.

The collaborator receives extracted market features and answers with
``{action, strength, confidence, reason}``. Every failure mode (timeout,
transport error, unparseable payload) surfaces as ``InferenceFailure`` so the
caller can fall back to a neutral hold.
"""
from __future__ import annotations

import json
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, Mapping, Optional, Protocol

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from strategy_lab.core.exceptions import InferenceFailure
from strategy_lab.core.models import Action
from strategy_lab.settings import InferenceSettings, get_inference_settings
from strategy_lab.utils.http import http_post_json

SYSTEM_PROMPT = (
    "You are an expert AI trading analyst. "
    "Provide trading recommendations in JSON format only."
)


class InferenceResult(BaseModel):
    action: Action
    strength: float = Field(ge=0.0, le=100.0)
    confidence: float = Field(ge=0.0, le=100.0)
    reason: str = ""

    model_config = {"extra": "ignore", "frozen": True}


class InferenceClient(Protocol):
    def infer(self, prompt: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return the raw recommendation payload for ``prompt``."""
        ...


def build_prompt(features: Mapping[str, Any]) -> str:
    symbol = features.get("symbol", "")
    recent = ", ".join(f"{float(p):.4f}" for p in features.get("recent_prices", []))
    current = features.get("current_price")
    market = {k: v for k, v in features.items() if k not in {"symbol", "recent_prices"}}
    return (
        f"Analyze the following market data for {symbol} and provide trading recommendation:\n"
        f"Recent Price Action: {recent}\n"
        f"Current Price: {current}\n"
        f"Market Features: {json.dumps(market, default=str)}\n"
        "Consider technical patterns, market sentiment, and statistical indicators.\n"
        "Provide recommendation in JSON format with:\n"
        '- action: "buy", "sell", or "hold"\n'
        "- strength: number 0-100\n"
        "- confidence: number 0-100\n"
        "- reason: detailed explanation"
    )


class HttpInferenceClient:
    """Chat-completions style HTTP client for the inference collaborator."""

    def __init__(self, settings: Optional[InferenceSettings] = None, session=None):
        self.settings = settings or get_inference_settings()
        self.session = session

    def _headers(self) -> Dict[str, str]:
        if self.settings.api_key:
            return {"Authorization": f"Bearer {self.settings.api_key}"}
        return {}

    def infer(self, prompt: Mapping[str, Any]) -> Mapping[str, Any]:
        if not self.settings.url:
            raise InferenceFailure("inference endpoint not configured")
        body: Dict[str, Any] = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(prompt)},
            ],
            "temperature": self.settings.temperature,
        }
        if self.settings.model:
            body["model"] = self.settings.model

        status, payload = http_post_json(
            self.settings.url,
            body,
            headers=self._headers(),
            timeout=self.settings.timeout_secs,
            retries=0,
            session=self.session,
        )
        if not 200 <= status < 300:
            raise InferenceFailure(f"inference endpoint returned status {status}")

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise InferenceFailure(f"unexpected inference payload: {exc}") from exc
        try:
            parsed = json.loads(content)
        except (TypeError, ValueError) as exc:
            raise InferenceFailure(f"inference content is not JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise InferenceFailure("inference content is not a JSON object")
        return parsed


def infer_with_timeout(
    client: InferenceClient,
    prompt: Mapping[str, Any],
    timeout: float,
    *,
    executor: Executor,
) -> InferenceResult:
    """
    Run ``client.infer`` on ``executor`` bounded by ``timeout`` seconds and
    validate the answer.

    A call that outlives the timeout is abandoned; its worker finishes in the
    background and the result is discarded.
    """
    future = executor.submit(client.infer, prompt)
    try:
        raw = future.result(timeout=timeout)
    except FutureTimeout as exc:
        future.cancel()
        raise InferenceFailure(f"inference timed out after {timeout:.1f}s") from exc
    except InferenceFailure:
        raise
    except Exception as exc:
        raise InferenceFailure(f"inference call failed: {exc}") from exc

    try:
        result = InferenceResult.model_validate(raw)
    except ValidationError as exc:
        raise InferenceFailure(f"unparseable inference response: {exc}") from exc
    logger.debug(
        "[inference] action={} strength={} confidence={}",
        result.action.value,
        result.strength,
        result.confidence,
    )
    return result


__all__ = [
    "InferenceClient",
    "InferenceResult",
    "HttpInferenceClient",
    "build_prompt",
    "infer_with_timeout",
]
