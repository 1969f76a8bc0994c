"""
Logging setup.

All modules log through named loggers under a single stream handler format.
"""

import logging
import sys

from lifeplanner.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER_NAME = "lifeplanner"


def _attach_handler(log: logging.Logger) -> None:
    # Prevent adding handlers multiple times
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)


def setup_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Get a configured logger.

    Loggers under the package namespace share the package logger's handler;
    any other name gets its own.

    Args:
        name: Logger name (usually __name__)
        level: Optional level name; defaults to LOG_LEVEL from settings

    Returns:
        Logger that writes to stdout exactly once per record
    """
    log = logging.getLogger(name)
    log.setLevel((level or get_settings().LOG_LEVEL).upper())

    if name == ROOT_LOGGER_NAME or not name.startswith(f"{ROOT_LOGGER_NAME}."):
        _attach_handler(log)
    else:
        _attach_handler(logging.getLogger(ROOT_LOGGER_NAME))

    return log


logger = setup_logger(ROOT_LOGGER_NAME)
