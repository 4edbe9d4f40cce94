"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from ratelab.app.core.logging import (
    JSONFormatter,
    ContextFilter,
    get_logger,
    get_logging_config,
    get_log_context,
    setup_logging,
)


def _record(msg: str = "Test message", level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_decision_context(self):
        """Context fields are lifted to the top level."""
        record = _record("Decision made")
        record.request_id = "req_abc"
        record.client_id = "alice"
        record.algorithm = "token-bucket"
        record.backend = "redis"
        record.status = "rejected"
        record.reason = "no_tokens"

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req_abc"
        assert data["client_id"] == "alice"
        assert data["algorithm"] == "token-bucket"
        assert data["backend"] == "redis"
        assert data["status"] == "rejected"
        assert data["reason"] == "no_tokens"
        assert "extra" not in data

    def test_none_context_values_are_omitted(self):
        record = _record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "request_id" not in data
        assert "algorithm" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Custom event")
        record.ignored_fields = ["bogus"]
        record.queue_depth = 3

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["ignored_fields"] == ["bogus"]
        assert data["extra"]["queue_depth"] == 3

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()

        assert ContextFilter().filter(record) is True
        for field in ("request_id", "client_id", "algorithm", "backend", "status", "reason"):
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.algorithm = "fixed-window"

        ContextFilter().filter(record)

        assert record.algorithm == "fixed-window"
        assert record.backend is None


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("ratelab.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        with patch("ratelab.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "debug"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"
        assert "algorithm=%(algorithm)s" in config["formatters"]["structured"]["format"]

    def test_json_format(self):
        with patch("ratelab.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_context_filter_added(self):
        config = get_logging_config()

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]
        assert "ratelab" in config["loggers"]


class TestGetLogger:

    def test_get_logger_default_name(self):
        assert get_logger().name == "ratelab"

    def test_get_logger_custom_name(self):
        assert get_logger("ratelab.app.limiters").name == "ratelab.app.limiters"


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_basic_context(self):
        context = get_log_context(request_id="req_1", algorithm="leaky-bucket", backend="local")

        assert context == {"request_id": "req_1", "algorithm": "leaky-bucket", "backend": "local"}

    def test_context_filters_none(self):
        context = get_log_context(request_id="req_1", client_id=None, reason=None)

        assert "client_id" not in context
        assert "reason" not in context

    def test_context_with_extra(self):
        context = get_log_context(algorithm="fixed-window", queue_depth=4)

        assert context["queue_depth"] == 4


class TestIntegration:
    """Integration tests for logging system."""

    def test_json_logging_output(self, capsys):
        with patch("ratelab.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "INFO"

            setup_logging()
            logger = get_logger("ratelab.integration")
            logger.info(
                "Integration test",
                extra=get_log_context(request_id="req_9", algorithm="sliding-window"),
            )

        data = json.loads(capsys.readouterr().out.strip())

        assert data["level"] == "INFO"
        assert data["logger"] == "ratelab.integration"
        assert data["message"] == "Integration test"
        assert data["request_id"] == "req_9"
        assert data["algorithm"] == "sliding-window"
