"""Centralized logging configuration for the photo pipeline."""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "photo-pipeline"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "photo-pipeline")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Handlers are attached per logger; propagating would print twice.
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Loggers that were already configured keep their level, so a level
    raised by ``set_log_level`` is not reset by later lookups.
    """
    existing = logging.getLogger(name)
    if existing.handlers:
        return existing
    return setup_logger(name)


def set_log_level(level: str) -> None:
    """Apply ``level`` to every photo-pipeline logger created so far."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    for name in list(logging.root.manager.loggerDict):
        if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
            logging.getLogger(name).setLevel(log_level)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(log_level)


logger = setup_logger()
