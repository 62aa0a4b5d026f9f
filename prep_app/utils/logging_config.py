"""Logging configuration helpers for the exam-preparation service."""

from __future__ import annotations

import logging
from logging import Logger
import os


def configure_logging(level: int | str | None = None) -> Logger:
    """Configure basic logging for the service and return the package logger.

    Without an explicit ``level`` the ``PREP_LOG_LEVEL`` environment variable
    is used, falling back to INFO.
    """
    if level is None:
        level = os.getenv("PREP_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("prep_app")
