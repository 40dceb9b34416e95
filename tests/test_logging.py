"""Tests for logging utilities."""

from __future__ import annotations

import logging

from inbox_canon.core.config import LoggingSettings
from inbox_canon.core.logging import configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_configure_logging_quiets_http_client_loggers() -> None:
    settings = LoggingSettings(level="DEBUG", library_level="ERROR")
    configure_logging(settings)
    assert logging.getLogger("httpx").level == logging.ERROR
    assert logging.getLogger("httpcore").level == logging.ERROR
