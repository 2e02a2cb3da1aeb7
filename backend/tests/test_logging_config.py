"""
Tests for structured JSON logging configuration.

Tests follow AAA (Arrange, Act, Assert) pattern.
"""

import io
import json
import logging

from labsite.core.logging_config import JSONFormatter, get_logger, setup_logging


def make_logger(name: str) -> tuple[logging.Logger, io.StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers = []
    logger.propagate = False
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    return logger, stream


class TestJSONFormatter:
    def test_basic_fields(self):
        # Arrange
        logger, stream = make_logger("labsite.test.basic")

        # Act
        logger.info("Writeup unlocked")

        # Assert
        log_data = json.loads(stream.getvalue().strip())
        assert log_data["level"] == "INFO"
        assert log_data["message"] == "Writeup unlocked"
        assert log_data["logger"] == "labsite.test.basic"
        assert "timestamp" in log_data

    def test_extra_fields_are_included(self):
        logger, stream = make_logger("labsite.test.extra")

        logger.info(
            "Request completed",
            extra={"path": "/api/v1/machines", "status_code": 200, "request_id": None},
        )

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["path"] == "/api/v1/machines"
        assert log_data["status_code"] == 200
        assert "request_id" not in log_data

    def test_exception_is_formatted(self):
        logger, stream = make_logger("labsite.test.exc")

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("Failed", exc_info=True)

        log_data = json.loads(stream.getvalue().strip())
        assert "RuntimeError: boom" in log_data["exception"]


class TestSetupLogging:
    def test_single_stdout_handler(self):
        setup_logging(level="WARNING", json_format=True)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_noisy_loggers_are_capped(self):
        setup_logging(level="DEBUG", json_format=False)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("asyncprawcore").level == logging.WARNING
        assert not isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)


def test_get_logger_returns_named_logger():
    assert get_logger("labsite.services.email").name == "labsite.services.email"
