"""Logging helpers shared by every report_sync module."""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "report_sync"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Logger with a single stdout handler attached
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, (level or "INFO").upper())
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger


def set_log_level(level: str) -> None:
    """Apply a log level to every logger already created under the package.

    Module loggers are created at import time with the default level, so the
    configured level is pushed down once settings have been loaded.
    """
    log_level = getattr(logging, level.upper())
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
            logger.setLevel(log_level)
            for handler in logger.handlers:
                handler.setLevel(log_level)
