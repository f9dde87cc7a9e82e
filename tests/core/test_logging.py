"""
Tests for logging setup and structured records.
"""

import logging

from rester.core.logging import (
    StructuredFormatter,
    build_logging_config,
    get_logger,
    log_structured,
    verbosity_level,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def make_record(message, **data):
    record = logging.LogRecord("rester.test", logging.INFO, __file__, 1, message, (), None)
    if data:
        record.structured_data = data
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_appends_key_value_pairs(self):
        formatter = StructuredFormatter("%(message)s")

        text = formatter.format(make_record("login: passed", attempts=1, elapsed_ms=12.5))

        assert text == "login: passed | attempts=1 elapsed_ms=12.5"

    def test_plain_record_unchanged(self):
        formatter = StructuredFormatter("%(message)s")

        assert formatter.format(make_record("Run finished")) == "Run finished"

    def test_formatting_twice_does_not_duplicate_data(self):
        formatter = StructuredFormatter("%(message)s")
        record = make_record("done", passed=2)

        first = formatter.format(record)
        second = formatter.format(record)

        assert first == second == "done | passed=2"


class TestLogStructured:
    """Tests for log_structured."""

    def test_attaches_structured_data(self):
        logger = get_logger("rester.tests.structured")
        logger.setLevel(logging.DEBUG)
        handler = ListHandler()
        logger.addHandler(handler)
        try:
            log_structured(logger, logging.INFO, "Run finished", passed=3, failed=0)
        finally:
            logger.removeHandler(handler)

        record = handler.records[0]
        assert record.getMessage() == "Run finished"
        assert record.structured_data == {"passed": 3, "failed": 0}

    def test_disabled_level_is_skipped(self):
        logger = get_logger("rester.tests.disabled")
        logger.setLevel(logging.WARNING)
        handler = ListHandler()
        logger.addHandler(handler)
        try:
            log_structured(logger, logging.DEBUG, "noise", value=1)
        finally:
            logger.removeHandler(handler)

        assert handler.records == []


class TestLoggingConfig:
    """Tests for the dictConfig mapping."""

    def test_console_only(self):
        config = build_logging_config("INFO")

        assert config["loggers"]["rester"]["level"] == "INFO"
        assert config["loggers"]["rester"]["handlers"] == ["console"]
        assert config["loggers"]["aiohttp"]["level"] == "WARNING"
        assert "file" not in config["handlers"]

    def test_with_log_file(self, temp_dir):
        config = build_logging_config("DEBUG", temp_dir / "rester.log", backup_count=2)

        assert config["handlers"]["file"]["filename"] == str(temp_dir / "rester.log")
        assert config["handlers"]["file"]["backupCount"] == 2
        assert config["loggers"]["rester"]["handlers"] == ["console", "file"]
        assert config["root"]["handlers"] == ["console", "file"]

    def test_verbosity_mapping(self):
        assert verbosity_level(0) is None
        assert verbosity_level(1) == "INFO"
        assert verbosity_level(3) == "DEBUG"
