"""
Logging configuration for the admin console.

Every module logs through `logging.getLogger(__name__)`; this module only
installs handlers on the packages' parent loggers.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional


PACKAGE_LOGGERS = ("common", "auth", "pages", "console")


def setup_logging(level: int = logging.WARNING, log_file: Optional[str] = None) -> None:
    """
    Configure the loggers of the console packages.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to also write logs to.
    """
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    # Logs go to stderr so command output on stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for name in PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # Avoid duplicate output when configured twice
        if logger.hasHandlers():
            logger.handlers.clear()
        for handler in handlers:
            handler.setLevel(level)
            logger.addHandler(handler)
        logger.propagate = False

    logging.getLogger("common").debug("Logging initialized.")


__all__ = ["setup_logging", "PACKAGE_LOGGERS"]
