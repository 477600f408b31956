"""
Unit tests for logging config.
"""

import logging

import pytest

from analysis_worker.utils.logging_config import (
    ROOT_LOGGER_NAME,
    ColoredFormatter,
    LogLevel,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_worker_logger():
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level, handlers = logger.level, list(logger.handlers)
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestLogLevel:
    """Test LogLevel enum."""

    def test_log_level_values(self):
        """Test LogLevel enum values."""
        assert LogLevel.MINIMAL == "minimal"
        assert LogLevel.NORMAL == "normal"
        assert LogLevel.DETAILED == "detailed"

    def test_resolve_level(self):
        assert resolve_level(LogLevel.MINIMAL) == logging.WARNING
        assert resolve_level(LogLevel.NORMAL) == logging.INFO
        assert resolve_level(LogLevel.DETAILED) == logging.DEBUG
        assert resolve_level(LogLevel.MINIMAL, verbose=True) == logging.DEBUG


class TestSetupLogging:
    """Test setup_logging function."""

    def test_setup_logging_normal(self):
        """Test setting up logging in normal mode."""
        logger = setup_logging(level=LogLevel.NORMAL)

        assert logger.name == ROOT_LOGGER_NAME
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_setup_logging_is_idempotent(self):
        setup_logging(level=LogLevel.NORMAL)
        logger = setup_logging(level=LogLevel.NORMAL)
        assert len(logger.handlers) == 1

    def test_setup_logging_to_file(self, tmp_path):
        """Test setting up logging to file."""
        log_file = tmp_path / "logs" / "worker.log"

        logger = setup_logging(level=LogLevel.NORMAL, log_to_file=True, log_file=str(log_file))
        logging.getLogger(f"{ROOT_LOGGER_NAME}.test").info("hello file")

        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert "hello file" in log_file.read_text()

    def test_setup_logging_minimal(self):
        """Test setting up logging in minimal mode."""
        logger = setup_logging(level=LogLevel.MINIMAL)
        assert logger.level == logging.WARNING


def test_colored_formatter_leaves_record_untouched():
    formatter = ColoredFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)
    output = formatter.format(record)
    assert "careful" in output
    assert "WARNING" in output
    assert record.levelname == "WARNING"
