"""Unit tests for logging module."""

import logging

import structlog

from utils.logging import (
    bind_sweep_context,
    clear_sweep_context,
    configure_logging,
    get_logger,
)


def test_configure_logging_json_format() -> None:
    """Test logging configuration with JSON format."""
    logger = configure_logging(log_level="INFO", log_format="json")
    assert logger is not None
    logger.info("Test message")


def test_configure_logging_console_format() -> None:
    logger = configure_logging(log_level="DEBUG", log_format="console")
    assert logger is not None
    logger.debug("Test message")


def test_configure_logging_with_correlation_id() -> None:
    logger = configure_logging(log_level="INFO", correlation_id="test-123")
    assert logger is not None
    logger.info("Test message")


def test_configure_logging_quiets_drivers() -> None:
    configure_logging(log_level="INFO", log_format="json")
    assert logging.getLogger("aiomysql").level == logging.WARNING
    assert logging.getLogger("asyncpg").level == logging.WARNING


def test_get_logger_with_name() -> None:
    logger = get_logger("test_module")
    assert logger is not None


def test_sweep_context_binding() -> None:
    bind_sweep_context("sweep-1")
    assert structlog.contextvars.get_contextvars()["sweep_id"] == "sweep-1"

    clear_sweep_context()
    assert "sweep_id" not in structlog.contextvars.get_contextvars()
