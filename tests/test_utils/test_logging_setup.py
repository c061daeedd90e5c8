"""Tests for logging setup."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from rich.logging import RichHandler

from findings_triage.utils.logging_setup import setup_logging


@pytest.fixture
def clean_root_logger() -> Generator[logging.Logger, None, None]:
    """Restore the root logger's handlers and level after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Test setup_logging."""

    def test_writes_log_file(self, clean_root_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging(tmp_path)

        logging.getLogger("findings_triage.test").info("hello triage")
        for handler in clean_root_logger.handlers:
            handler.flush()

        log_file = tmp_path / "logs" / "triage.log"
        assert log_file.exists()
        assert "| INFO | findings_triage.test | hello triage" in log_file.read_text()

    def test_is_idempotent(self, clean_root_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging(tmp_path)
        count = len(clean_root_logger.handlers)

        setup_logging(tmp_path)

        assert len(clean_root_logger.handlers) == count
        assert any(isinstance(h, RichHandler) for h in clean_root_logger.handlers)

    def test_verbose_and_quiet_github_logger(self, clean_root_logger: logging.Logger) -> None:
        setup_logging(verbose=True)

        assert clean_root_logger.level == logging.DEBUG
        assert logging.getLogger("github").level == logging.WARNING
