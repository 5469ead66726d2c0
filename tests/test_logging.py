"""
Tests for logging utilities.
"""

import logging
import sys
import tempfile
from pathlib import Path

import pytest

from modbundler.utils.logging import get_logger, setup_logging


class TestLogging:
    """Test logging utilities and configuration."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        logger = setup_logging()

        assert logger.name == "modbundler"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.Handler)

    def test_setup_logging_levels(self):
        """Test logging setup with each supported level."""
        for level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            logger = setup_logging(level)

            assert logger.level == getattr(logging, level)
            assert logger.handlers[0].level == getattr(logging, level)

    def test_setup_logging_clears_existing_handlers(self):
        """Test that setup_logging clears existing handlers."""
        logger = logging.getLogger("modbundler")
        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        setup_logging()

        assert len(logger.handlers) == 1

    def test_setup_logging_multiple_calls(self):
        """Test that multiple calls to setup_logging work correctly."""
        logger1 = setup_logging("DEBUG")
        logger2 = setup_logging("INFO")

        assert logger1 is logger2
        assert logger1.level == logging.INFO  # Last level set

    def test_logger_formatter(self):
        """Test that the handler carries a formatter."""
        logger = setup_logging("INFO")

        assert logger.handlers[0].formatter is not None

    def test_logger_logging_levels(self):
        """Test that logger respects different logging levels."""
        logger = setup_logging("WARNING")
        assert not logger.isEnabledFor(logging.DEBUG)
        assert not logger.isEnabledFor(logging.INFO)
        assert logger.isEnabledFor(logging.WARNING)
        assert logger.isEnabledFor(logging.ERROR)

    def test_get_logger_returns_configured_logger(self):
        """Test that get_logger returns the configured logger."""
        setup_logging("DEBUG")

        assert get_logger() is logging.getLogger("modbundler")

    def test_module_loggers_propagate(self):
        """Test that module loggers are children of the package logger."""
        setup_logging("DEBUG")
        logger = get_logger("core.merge")

        assert logger.name == "modbundler.core.merge"
        assert logger.parent is logging.getLogger("modbundler")
        assert logger.isEnabledFor(logging.DEBUG)

    def test_console_handler_writes_to_stderr(self):
        """Test that log lines stay off stdout."""
        logger = setup_logging("INFO")

        assert logger.handlers[0].stream is sys.stderr

    def test_unknown_level_rejected(self):
        """Test that a misspelled level name is an error."""
        with pytest.raises(ValueError, match="Unknown log level 'LOUD'"):
            setup_logging("LOUD")

    def test_log_file_records_debug(self):
        """Test that the log file receives DEBUG records whatever the console level."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_path = Path(temp_dir) / "nested" / "run.log"
            logger = setup_logging("WARNING", log_path)

            get_logger("core.chain").debug("Patched chain crusader/tags")
            for handler in logger.handlers:
                handler.flush()

            assert len(logger.handlers) == 2
            assert logger.level == logging.DEBUG
            assert logger.handlers[0].level == logging.WARNING
            assert "modbundler.core.chain - DEBUG - Patched chain crusader/tags" in log_path.read_text(encoding="utf-8")

            setup_logging("INFO")
            assert len(logger.handlers) == 1
