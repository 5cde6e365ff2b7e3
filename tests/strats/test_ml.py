from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from strategy_lab.core.models import Action
from strategy_lab.settings import InferenceSettings
from strategy_lab.strats.ml import FALLBACK_REASON, MachineLearningStrategy, extract_features


class FakeClient:
    def __init__(self, payload=None, *, error: Exception | None = None, delay: float = 0.0):
        self.payload = payload or {}
        self.error = error
        self.delay = delay
        self.prompts = []

    def infer(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def fast_settings() -> InferenceSettings:
    return InferenceSettings(timeout_secs=0.2)


def _assert_fallback(signal):
    assert signal.action is Action.HOLD
    assert signal.confidence == 50.0
    assert signal.strength == 50.0
    assert signal.reason == FALLBACK_REASON


def test_collaborator_values_are_echoed(noisy_ohlcv, fast_settings):
    client = FakeClient(
        {"action": "buy", "strength": 72, "confidence": 81, "reason": "breakout pattern"}
    )
    strategy = MachineLearningStrategy(client=client, settings=fast_settings)

    signal = strategy.analyze(noisy_ohlcv, "AAPL")

    assert signal.action is Action.BUY
    assert signal.strength == 72.0
    assert signal.confidence == 81.0
    assert signal.reason == "breakout pattern"
    assert signal.stop_loss < signal.entry_price < signal.take_profit

    prompt = client.prompts[0]
    assert prompt["symbol"] == "AAPL"
    assert len(prompt["recent_prices"]) == 20
    assert prompt["current_price"] == pytest.approx(noisy_ohlcv["close"].iloc[-1])
    assert {"price_trend", "volatility", "volume_trend", "momentum", "range"} <= set(prompt)


def test_collaborator_error_falls_back(noisy_ohlcv, fast_settings):
    strategy = MachineLearningStrategy(
        client=FakeClient(error=ConnectionError("down")), settings=fast_settings
    )
    _assert_fallback(strategy.analyze(noisy_ohlcv, "AAPL"))


def test_collaborator_timeout_falls_back(noisy_ohlcv):
    settings = InferenceSettings(timeout_secs=0.05)
    strategy = MachineLearningStrategy(
        client=FakeClient({"action": "buy", "strength": 90, "confidence": 90}, delay=0.5),
        settings=settings,
    )
    started = time.perf_counter()
    signal = strategy.analyze(noisy_ohlcv, "AAPL")

    _assert_fallback(signal)
    assert time.perf_counter() - started < 0.45


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "moon", "strength": 10, "confidence": 10},
        {"action": "buy", "strength": "lots", "confidence": 10},
        {"action": "sell", "strength": 10, "confidence": 150},
    ],
)
def test_unparseable_payload_falls_back(noisy_ohlcv, fast_settings, payload):
    strategy = MachineLearningStrategy(client=FakeClient(payload), settings=fast_settings)
    _assert_fallback(strategy.analyze(noisy_ohlcv, "AAPL"))


def test_without_client_holds(noisy_ohlcv):
    strategy = MachineLearningStrategy(settings=InferenceSettings())
    assert strategy.client is None
    _assert_fallback(strategy.analyze(noisy_ohlcv, "AAPL"))


def test_extract_features_on_rising_series(trending_frame):
    features = extract_features(trending_frame(30))
    assert features["price_trend"] == "up"
    assert features["volume_trend"] == "up"
    assert features["momentum"] == pytest.approx(1.01**19 - 1)
    # identical 1% returns have no dispersion
    assert features["volatility"] == pytest.approx(0.0, abs=1e-12)


def test_each_strategy_owns_its_inference_pool(fast_settings):
    first = MachineLearningStrategy(client=FakeClient(), settings=fast_settings)
    second = MachineLearningStrategy(client=FakeClient(), settings=fast_settings)
    try:
        assert isinstance(first.executor, ThreadPoolExecutor)
        assert first.executor is not second.executor
    finally:
        first.close()
        second.close()

    with pytest.raises(RuntimeError):
        first.executor.submit(lambda: None)


def test_injected_executor_runs_calls_and_survives_close(noisy_ohlcv, fast_settings):
    pool = ThreadPoolExecutor(max_workers=1)
    client = FakeClient({"action": "sell", "strength": 40, "confidence": 60})
    strategy = MachineLearningStrategy(client=client, settings=fast_settings, executor=pool)
    try:
        assert strategy.executor is pool
        assert strategy.analyze(noisy_ohlcv, "AAPL").action is Action.SELL

        strategy.close()
        assert pool.submit(lambda: 7).result(timeout=1.0) == 7
    finally:
        pool.shutdown(wait=True)
