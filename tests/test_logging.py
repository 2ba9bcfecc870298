"""Tests for logging configuration"""

import logging

import structlog

from flashbot.utils.logging import setup_logging


def test_setup_logging_default():
    """Test logging setup with default level"""
    setup_logging()

    assert logging.getLogger().level == logging.INFO


def test_setup_logging_custom_level():
    """Test logging setup with custom level"""
    setup_logging(log_level="DEBUG")

    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_unknown_level_falls_back():
    """Test an unknown level name falls back to INFO"""
    setup_logging(log_level="chatty")

    assert logging.getLogger().level == logging.INFO


def test_logger_emits_json(capsys):
    """Test that module loggers render events with context as JSON"""
    setup_logging(log_level="INFO")
    logger = structlog.get_logger("test")

    logger.info("test_message", key="value", number=42)

    output = capsys.readouterr().out
    assert '"event": "test_message"' in output
    assert '"key": "value"' in output
    assert '"number": 42' in output
