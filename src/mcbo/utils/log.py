"""
log.py
------

Logging setup for mcbo.

Library modules only create module-level loggers
(``logger = logging.getLogger(__name__)``); applications call
``setup_logger`` once to get consistent console output.
"""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "mcbo",
    level: int = logging.INFO,
    log_file: str | None = None,
    format_string: str | None = None,
) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Parameters
    ----------
    name : str, default="mcbo"
        Logger name. The package logger covers every mcbo module.
    level : int, default=logging.INFO
        Logging level.
    log_file : str | None
        Optional file path to write logs to.
    format_string : str | None
        Optional custom format string.

    Returns
    -------
    logging.Logger
        Configured logger. Calling again returns it unchanged.
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
