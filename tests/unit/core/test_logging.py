# tests/unit/core/test_logging.py
"""Tests for structured logging configuration."""

import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from fusebatch.core.logging import _NOISY_LOGGERS, configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_stdlib_logging() -> Iterator[None]:
    """configure_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    noisy_levels = {name: logging.getLogger(name).level for name in _NOISY_LOGGERS}
    yield
    root.handlers = handlers
    root.setLevel(level)
    for name, noisy_level in noisy_levels.items():
        logging.getLogger(name).setLevel(noisy_level)


class TestConfigureLogging:
    def test_sets_root_level(self) -> None:
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_http_client_loggers_clamped(self) -> None:
        configure_logging(level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_noisy_loggers_follow_stricter_root(self) -> None:
        configure_logging(level="ERROR")

        assert logging.getLogger("httpx").level == logging.ERROR

    def test_json_output_renders_key_values(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="INFO")

        get_logger("fusebatch.test").info("Batch delivered", batch_size=3)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Batch delivered"
        assert record["batch_size"] == 3
        assert record["level"] == "info"

    def test_get_logger_returns_bound_logger(self) -> None:
        configure_logging()

        logger = get_logger(__name__)

        assert isinstance(logger.bind(x=1), structlog.stdlib.BoundLogger)
