"""Logging setup shared by the inbox engine."""

from __future__ import annotations

import logging
from typing import Optional

from inbox.config import get_settings

LOGGER_PREFIX = "inbox"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the inbox root logger."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class LoggingConfig:
    """Configure the inbox root logger from settings (LOG_LEVEL)."""

    def __init__(self, level: Optional[str] = None) -> None:
        self.level = (level or get_settings().log_level or "INFO").upper()
        self._configure()

    def _configure(self) -> None:
        root = logging.getLogger(LOGGER_PREFIX)
        root.setLevel(self.level)
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
