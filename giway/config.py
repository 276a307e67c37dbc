"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_RESERVATION_MINUTES = 10
MIN_RESERVATION_MINUTES = 1
MAX_RESERVATION_MINUTES = 60

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    reservation_time_minutes: int
    log_level: str


def load_settings() -> Settings:
    """Read settings from the environment (and ``.env`` when present)."""

    load_dotenv()
    minutes = _get_int("RESERVATION_TIME_MINUTES", DEFAULT_RESERVATION_MINUTES)
    if not MIN_RESERVATION_MINUTES <= minutes <= MAX_RESERVATION_MINUTES:
        minutes = DEFAULT_RESERVATION_MINUTES
    return Settings(
        reservation_time_minutes=minutes,
        log_level=os.getenv("GIWAY_LOG_LEVEL", "INFO").upper(),
    )


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a console handler to the ``giway`` logger and return it."""

    logger = logging.getLogger("giway")
    resolved = level or load_settings().log_level
    logger.setLevel(resolved)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger
