"""
Logging configuration for rsrf.

Library modules only create loggers; applications that want the operation
reports on screen call :func:`setup_logging` once.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "rsrf"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``rsrf`` logger.

    Parameters
    ----------
    level : int, optional
        Logging level (default: ``logging.INFO``).
    log_file : str, optional
        If given, reports are also written to this file.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate handlers when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialised.")
    return logger
