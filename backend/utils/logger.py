"""Structured logging utilities for the routine arbitration service."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from backend.utils.config import Settings, get_settings


_LOGGER_INITIALIZED = False

# Services and repository log every commit, rejection and mirror failure.
ARBITRATION_LOGGER_NAMES = ("backend.services", "backend.repository")


def apply_arbitration_log_level(settings: Settings) -> None:
    """Tune the arbitration layer separately from the HTTP and uvicorn noise."""
    if not settings.arbitration_log_level:
        return
    level = settings.arbitration_log_level.upper()
    for name in ARBITRATION_LOGGER_NAMES:
        logging.getLogger(name).setLevel(level)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Every layer logs through the same stdout handler, so arbitration decisions,
    dropped notifications and mirror failures share one line format.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    apply_arbitration_log_level(settings)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
