"""Strategy evaluation, consensus voting, backtesting and parameter search."""

import logging
import os
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv
from sentry_sdk.integrations.logging import LoggingIntegration

__version__ = "0.4.0"

# Load environment variables early so SENTRY_DSN is available for local/dev runs
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

from strategy_lab.settings import SentrySettings, get_sentry_settings  # noqa: E402


def init_sentry(settings: SentrySettings | None = None) -> bool:
    """Initialise the Sentry SDK when a DSN is configured; returns whether it did."""
    cfg = settings or get_sentry_settings()
    if not cfg.enabled:
        logging.getLogger(__name__).debug("Sentry DSN not set; Sentry disabled")
        return False
    sentry_sdk.init(
        dsn=cfg.dsn,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=cfg.traces_sample_rate,
        environment=cfg.environment or os.getenv("ENV", "local"),
        release=__version__,
    )
    return True


init_sentry()
