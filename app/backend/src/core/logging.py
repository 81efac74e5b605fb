"""Structured logging configuration."""

from __future__ import annotations

import logging

from .config import get_settings


def configure_logging() -> None:
    """Configure basic JSON-style logging for the service."""

    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='{"level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
    )
