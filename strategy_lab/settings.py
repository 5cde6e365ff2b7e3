"""Centralized application settings powered by Pydantic.

Environment matrix:

| Section   | Environment Variable          | Default          | Purpose                                        |
|-----------|-------------------------------|------------------|------------------------------------------------|
| Backtest  | `BACKTEST_MIN_BARS`           | `50`             | Minimum filtered bars required for a run       |
| Backtest  | `BACKTEST_WARMUP_BARS`        | `20`             | Bars skipped before the first decision         |
| Backtest  | `BACKTEST_RISK_FRACTION`      | `0.01`           | Fraction of capital risked per trade           |
| Backtest  | `BACKTEST_ADVERSE_MOVE`       | `0.02`           | Assumed adverse move used for sizing           |
| Backtest  | `BACKTEST_FEE_RATE`           | `0.001`          | Fee charged on entry notional                  |
| Backtest  | `BACKTEST_INITIAL_CAPITAL`    | `100000`         | Default starting capital                       |
| Inference | `INFERENCE_URL`               | `None`           | Chat-completions style endpoint for ML scoring |
| Inference | `INFERENCE_API_KEY`           | `None`           | Bearer token for the inference endpoint        |
| Inference | `INFERENCE_MODEL`             | `None`           | Model identifier forwarded to the endpoint     |
| Inference | `INFERENCE_TIMEOUT_SECS`      | `10`             | Hard bound on one inference call               |
| Inference | `INFERENCE_TEMPERATURE`       | `0.2`            | Sampling temperature                           |
| Inference | `INFERENCE_MAX_WORKERS`       | `2`              | Thread pool size per ML strategy instance      |
| Optimizer | `OPTIMIZER_MAX_WORKERS`       | `4`              | Thread pool size for parameter sweeps          |
| HTTP      | `HTTP_TIMEOUT`                | `10`             | Per-request timeout in seconds                 |
| HTTP      | `HTTP_RETRIES`                | `2`              | Retries on 408/429/5xx and network errors      |
| HTTP      | `HTTP_BACKOFF`                | `1.5`            | Base backoff in seconds                        |
| Sentry    | `SENTRY_DSN`                  | `None`           | Sentry ingest DSN                              |
| Sentry    | `SENTRY_TRACES_SAMPLE_RATE`   | `0.0`            | Trace sampling rate                            |
| Sentry    | `SENTRY_ENVIRONMENT`          | `ENV`            | Environment tag reported to Sentry             |

The settings objects expose structured access to these values. They source
environment variables at construction time and are intended to be treated as
read-only; pass instances explicitly into engines instead of relying on globals.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class BacktestSettings(_SettingsBase):
    """Constants driving the bar-by-bar simulation."""

    min_bars: int = Field(default=50, alias="BACKTEST_MIN_BARS")
    warmup_bars: int = Field(default=20, alias="BACKTEST_WARMUP_BARS")
    risk_fraction: float = Field(default=0.01, alias="BACKTEST_RISK_FRACTION")
    adverse_move: float = Field(default=0.02, alias="BACKTEST_ADVERSE_MOVE")
    fee_rate: float = Field(default=0.001, alias="BACKTEST_FEE_RATE")
    initial_capital: float = Field(default=100_000.0, alias="BACKTEST_INITIAL_CAPITAL")

    @field_validator("warmup_bars", "min_bars", mode="before")
    @classmethod
    def _coerce_non_negative(cls, value: int | str | None) -> int:
        if value in (None, ""):
            return 0
        return max(0, int(value))


class InferenceSettings(_SettingsBase):
    """External inference collaborator used by the machine-learning strategy."""

    url: str | None = Field(default=None, alias="INFERENCE_URL")
    api_key: str | None = Field(default=None, alias="INFERENCE_API_KEY")
    model: str | None = Field(default=None, alias="INFERENCE_MODEL")
    timeout_secs: float = Field(default=10.0, alias="INFERENCE_TIMEOUT_SECS")
    temperature: float = Field(default=0.2, alias="INFERENCE_TEMPERATURE")
    max_workers: int = Field(default=2, ge=1, alias="INFERENCE_MAX_WORKERS")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.url)


class OptimizerSettings(_SettingsBase):
    max_workers: int = Field(default=4, alias="OPTIMIZER_MAX_WORKERS")

    @field_validator("max_workers", mode="before")
    @classmethod
    def _coerce_workers(cls, value: int | str | None) -> int:
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            return 4


class HttpSettings(_SettingsBase):
    timeout: float = Field(default=10.0, alias="HTTP_TIMEOUT")
    retries: int = Field(default=2, alias="HTTP_RETRIES")
    backoff: float = Field(default=1.5, alias="HTTP_BACKOFF")
    user_agent: str = Field(default="strategy-lab/1.0", alias="HTTP_USER_AGENT")


class SentrySettings(_SettingsBase):
    """Sentry SDK configuration."""

    dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    traces_sample_rate: float = Field(default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE")
    environment: str | None = Field(default=None, alias="SENTRY_ENVIRONMENT")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.dsn)


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def reload_settings() -> Settings:
    """Alias for get_settings to maintain a consistent API."""
    return get_settings()


def get_backtest_settings() -> BacktestSettings:
    return get_settings().backtest


def get_inference_settings() -> InferenceSettings:
    return get_settings().inference


def get_optimizer_settings() -> OptimizerSettings:
    return get_settings().optimizer


def get_http_settings() -> HttpSettings:
    return get_settings().http


def get_sentry_settings() -> SentrySettings:
    return get_settings().sentry


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "get_backtest_settings",
    "get_inference_settings",
    "get_optimizer_settings",
    "get_http_settings",
    "get_sentry_settings",
    "BacktestSettings",
    "InferenceSettings",
    "OptimizerSettings",
    "HttpSettings",
    "SentrySettings",
]
