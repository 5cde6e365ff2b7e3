"""Loguru setup shared by the CLIs and the test suite."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from loguru import logger

from strategy_lab import __version__

PathLikeArg = Union[str, PathLike]

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "run={extra[run_id]} | env={extra[environment]} | "
    "ver={extra[service_version]} | {message}"
)

_SINK_OPTIONS: Dict[str, Any] = {"enqueue": False, "backtrace": False, "diagnose": False}


def _resolve_level(level: Optional[str], *env_names: str) -> str:
    for candidate in (level, *(os.getenv(name) for name in env_names)):
        if candidate:
            return candidate.upper()
    return "INFO"


def _forward_to_stdlib(message) -> None:
    """Re-emit a loguru record on the stdlib root logger with its extras as attributes."""
    record = message.record
    exc = record["exception"]
    log_record = logging.LogRecord(
        name=record["name"],
        level=record["level"].no,
        pathname=record["file"].path,
        lineno=record["line"],
        msg=record["message"],
        args=(),
        exc_info=(exc.type, exc.value, exc.traceback) if exc else None,
        func=record["function"],
    )
    log_record.__dict__.update(record["extra"])
    logging.getLogger().handle(log_record)


def setup_logging(*, force: bool = False, level: str | None = None) -> None:
    """Install the stdout sink and the stdlib bridge once per process."""
    if getattr(setup_logging, "_configured", False) and not force:
        return

    log_level = _resolve_level(level, "LOG_LEVEL")
    logger.remove()
    logger.configure(
        extra={
            "run_id": "-",
            "environment": os.getenv("ENV", "local"),
            "service_version": __version__,
        }
    )
    logger.add(sys.stdout, level=log_level, format=_LOG_FORMAT, **_SINK_OPTIONS)
    logger.add(_forward_to_stdlib, level=log_level, **_SINK_OPTIONS)

    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))
    setup_logging._configured = True  # type: ignore[attr-defined]


def setup_test_logging(
    arg: Optional[PathLikeArg] = None,
    *,
    level: Optional[str] = None,
    file: Optional[PathLikeArg] = None,
    filename: str = "pytest.log",
) -> None:
    """
    Logging for pytest runs.

    ``arg`` or ``file`` may name a log file or a directory; a directory gets
    ``filename`` inside it. With neither, only stdout is configured.
    """
    effective_level = _resolve_level(level, "PYTEST_LOGLEVEL")
    setup_logging(force=True, level=effective_level)

    raw = file if file is not None else arg
    if raw is None:
        return

    target = Path(raw)
    if target.is_dir() or str(raw).endswith(("/", os.sep)):
        target.mkdir(parents=True, exist_ok=True)
        target = target / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.add(str(target), level=effective_level, format=_LOG_FORMAT, **_SINK_OPTIONS)


@contextmanager
def logging_context(**values: str) -> Iterator[None]:
    """Bind fields such as ``run_id`` to every record logged inside the block."""
    with logger.contextualize(**{key: value or "-" for key, value in values.items()}):
        yield


__all__ = ["setup_logging", "setup_test_logging", "logging_context"]
