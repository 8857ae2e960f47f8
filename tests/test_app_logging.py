"""Tests for logging configuration."""

import logging

from hunt_sync.api.app import create_app
from hunt_sync.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("hunt_sync")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1


def test_configure_logging_applies_level() -> None:
    logger = logging.getLogger("hunt_sync")
    logger.handlers.clear()

    configure_logging("debug")
    configure_logging("warning")

    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_create_app_uses_configured_level(container) -> None:
    container.settings.log_level = "ERROR"
    create_app(container)

    assert logging.getLogger("hunt_sync").level == logging.ERROR
