from __future__ import annotations

import logging
from contextlib import contextmanager

import pytest
from loguru import logger

from strategy_lab import __version__
from strategy_lab.logging_utils import logging_context, setup_logging, setup_test_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    setup_logging(force=True, level="INFO")
    yield
    setup_logging(force=True, level="INFO")


@contextmanager
def capture_records(level=logging.INFO):
    records = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = ListHandler()
    handler.setLevel(level)
    root = logging.getLogger()
    prev_level = root.level
    root.setLevel(level)
    root.addHandler(handler)
    try:
        yield records
    finally:
        root.removeHandler(handler)
        root.setLevel(prev_level)


def test_setup_logging_attaches_metadata(monkeypatch):
    monkeypatch.setenv("ENV", "staging")

    setup_logging(force=True, level="INFO")

    with capture_records() as records:
        logger.info("hello world")

    record = records[-1]
    assert record.getMessage() == "hello world"
    assert record.environment == "staging"
    assert record.service_version == __version__
    assert record.run_id == "-"


def test_logging_context_sets_run_id():
    with capture_records() as records:
        with logging_context(run_id="BTC/USD:technical"):
            logger.info("inside")
        logger.info("outside")

    assert records[-2].run_id == "BTC/USD:technical"
    assert records[-1].run_id == "-"


def test_setup_test_logging_writes_file(tmp_path):
    setup_test_logging(tmp_path)
    logger.info("to file")
    logger.remove()

    log_file = tmp_path / "pytest.log"
    assert log_file.exists()
    assert "to file" in log_file.read_text()
