"""Unit tests for logging configuration."""

import logging

import pytest

from yieldvault.utils.config import Config
from yieldvault.utils.logging import (
    DEFAULT_FORMAT,
    get_logger,
    log_with_context,
    resolve_level,
    setup_logging,
    setup_logging_from_config,
)


class TestSetupLogging:
    """Test cases for setup_logging function."""

    def test_setup_logging_default(self) -> None:
        """Test default logging setup."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self) -> None:
        """Test setting DEBUG log level."""
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_lowercase_level(self) -> None:
        """Test level names are case-insensitive."""
        setup_logging(level="warning")
        assert logging.getLogger().level == logging.WARNING

    def test_setup_logging_invalid_level(self) -> None:
        """Test unknown level falls back to INFO."""
        setup_logging(level="LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_default_format(self) -> None:
        """Test the root handler uses the engine format."""
        setup_logging()
        handler = logging.getLogger().handlers[0]
        assert handler.formatter._fmt == DEFAULT_FORMAT

    def test_log_file_receives_records(self, tmp_path) -> None:
        """Test records are copied to the log file, creating its directory."""
        log_file = tmp_path / "logs" / "keeper.log"
        setup_logging(log_file=log_file)
        get_logger("yieldvault.keeper").info("Cycle finished")

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "Cycle finished" in log_file.read_text()
        assert "[yieldvault.keeper]" in log_file.read_text()

    def test_scheduler_logs_quieted_above_debug(self) -> None:
        """Test apscheduler is capped at WARNING unless running at DEBUG."""
        setup_logging(level="INFO")
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_file_from_config(self, tmp_path) -> None:
        """Test logging.file adds a file handler."""
        log_file = tmp_path / "engine.log"
        setup_logging_from_config(Config({"logging": {"file": str(log_file)}}))

        assert any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)
        assert log_file.exists()
        setup_logging(level="DEBUG")
        assert logging.getLogger("apscheduler").level == logging.NOTSET


class TestResolveLevel:
    """Test cases for resolve_level."""

    @pytest.mark.parametrize(
        "level, expected",
        [("debug", logging.DEBUG), ("ERROR", logging.ERROR), (logging.WARNING, logging.WARNING)],
    )
    def test_known_levels(self, level, expected) -> None:
        """Test names and numbers resolve."""
        assert resolve_level(level) == expected

    def test_unknown_falls_back_to_info(self) -> None:
        """Test unknown names and non-level attributes give INFO."""
        assert resolve_level("LOUD") == logging.INFO
        assert resolve_level("basicConfig") == logging.INFO


class TestSetupLoggingFromConfig:
    """Test cases for setup_logging_from_config."""

    def test_level_from_config(self) -> None:
        """Test the logging section sets the root level."""
        setup_logging_from_config(Config({"logging": {"level": "ERROR"}}))
        assert logging.getLogger().level == logging.ERROR

    def test_missing_section_defaults_to_info(self) -> None:
        """Test an empty config keeps the default level."""
        setup_logging_from_config(Config({}))
        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("apscheduler").level == logging.WARNING


class TestGetLogger:
    """Test cases for get_logger function."""

    def test_get_logger_returns_named_logger(self) -> None:
        """Test get_logger returns a logger with the given name."""
        logger = get_logger("yieldvault.test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "yieldvault.test"


class TestLogWithContext:
    """Test cases for log_with_context function."""

    def test_context_appended_in_order(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test key=value context is appended after a pipe."""
        logger = get_logger("yieldvault.context")
        with caplog.at_level(logging.INFO, logger="yieldvault.context"):
            log_with_context(logger, "info", "Batch executed", tier="low", entries=5)

        assert "Batch executed | tier=low entries=5" in caplog.text

    def test_no_context(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test message without context is logged as is."""
        logger = get_logger("yieldvault.plain")
        with caplog.at_level(logging.WARNING, logger="yieldvault.plain"):
            log_with_context(logger, "warning", "Partial harvest")

        assert caplog.records[-1].getMessage() == "Partial harvest"
        assert caplog.records[-1].levelno == logging.WARNING

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test nothing is logged below the logger's level."""
        logger = get_logger("yieldvault.quiet")
        with caplog.at_level(logging.INFO, logger="yieldvault.quiet"):
            log_with_context(logger, "debug", "Deposit queued", tier="low")

        assert caplog.records == []
