"""
Unit tests for structured logging configuration.
"""

import json
import logging
from pathlib import Path

from merk.exceptions import StoreWriteError
from merk.logging_config import (
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    get_logger,
    log_commit,
    log_store_failure,
    set_correlation_id,
    setup_logging,
)


def _first_entry(log_file: Path) -> dict:
    lines = [line for line in log_file.read_text().strip().split("\n") if line]
    return json.loads(lines[0])


class TestLoggingConfiguration:
    """Test structured logging configuration functionality."""

    def test_setup_logging_with_level(self):
        """Test setup_logging with custom log level."""
        setup_logging(level="DEBUG")

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_json_format(self, temp_dir: Path):
        """Test setup_logging with JSON format."""
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        logger = get_logger("test")
        logger.info("test_message", key="value")

        log_entry = _first_entry(log_file)
        assert log_entry["event"] == "test_message"
        assert log_entry["key"] == "value"
        assert log_entry["logger"] == "merk.test"
        assert "timestamp" in log_entry
        assert log_entry["level"] == "info"

    def test_setup_logging_human_format(self, temp_dir: Path):
        """Test setup_logging with human-readable format."""
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=False)

        logger = get_logger("test")
        logger.info("test_message", key="value")

        log_content = log_file.read_text()
        assert "test_message" in log_content
        assert "key" in log_content

    def test_log_file_parent_created(self, temp_dir: Path):
        log_file = temp_dir / "nested" / "dir" / "merk.log"
        setup_logging(log_file=log_file)
        assert log_file.parent.is_dir()

    def test_get_logger_namespacing(self, temp_dir: Path):
        """Test that loggers are placed under the merk namespace once."""
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file)

        get_logger("merk.core.session").info("namespaced")

        assert _first_entry(log_file)["logger"] == "merk.core.session"


class TestCorrelationId:
    """Test correlation ID context management."""

    def test_correlation_id_management(self):
        assert get_correlation_id() is None

        correlation_id = set_correlation_id("test-correlation-id")
        assert correlation_id == "test-correlation-id"
        assert get_correlation_id() == "test-correlation-id"

        clear_correlation_id()
        assert get_correlation_id() is None

    def test_correlation_id_auto_generation(self):
        correlation_id = set_correlation_id()
        assert correlation_id
        assert get_correlation_id() == correlation_id

        clear_correlation_id()

    def test_correlation_id_in_logs(self, temp_dir: Path):
        """Test correlation ID appears in log output."""
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        logger = get_logger("test")
        set_correlation_id("test-correlation-123")
        logger.info("test_message")
        clear_correlation_id()

        assert _first_entry(log_file)["correlation_id"] == "test-correlation-123"

    def test_correlation_scope_restores_previous(self):
        set_correlation_id("outer")
        with correlation_scope("inner") as inner:
            assert inner == "inner"
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"
        clear_correlation_id()

    def test_correlation_scope_generates_id(self):
        with correlation_scope() as generated:
            assert generated
            assert get_correlation_id() == generated
        assert get_correlation_id() is None


class TestLogHelpers:
    """Test the commit and store failure log helpers."""

    def test_log_commit(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        log_commit(
            get_logger("test"),
            session_id="session-1",
            puts=3,
            deletes=1,
            root_hash="ab" * 32,
            duration_ms=1.5,
            prefix="",
        )

        log_entry = _first_entry(log_file)
        assert log_entry["event"] == "merk_commit"
        assert log_entry["event_type"] == "merk_commit"
        assert log_entry["session_id"] == "session-1"
        assert log_entry["puts"] == 3
        assert log_entry["deletes"] == 1
        assert log_entry["root_hash"] == "ab" * 32
        assert log_entry["duration_ms"] == 1.5
        assert log_entry["prefix"] == ""
        assert log_entry["level"] == "info"

    def test_log_store_failure(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        error = StoreWriteError("disk full")
        log_store_failure(get_logger("test"), "session-1", "persist", error, ops=4)

        log_entry = _first_entry(log_file)
        assert log_entry["event"] == "merk_persist_failed"
        assert log_entry["event_type"] == "store_failure"
        assert log_entry["operation"] == "persist"
        assert log_entry["error_type"] == "StoreWriteError"
        assert log_entry["error"] == "disk full"
        assert log_entry["session_id"] == "session-1"
        assert log_entry["ops"] == 4
        assert log_entry["level"] == "error"

    def test_log_store_failure_without_session(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        log_store_failure(get_logger("test"), None, "load", IOError("gone"))

        log_entry = _first_entry(log_file)
        assert log_entry["event"] == "merk_load_failed"
        assert "session_id" not in log_entry
