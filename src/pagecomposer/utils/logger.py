"""
PageComposer - Logger Module

This module sets up logging for the application.
"""

import logging

from pagecomposer.config import LOG_FORMAT, LOG_LEVEL, LOGGER_NAME


def setup_logger(
    log_level: int | None = None,
    log_format: str | None = None,
    logger_name: str | None = None,
) -> logging.Logger:
    """Set up and configure the application logger

    Args:
        log_level: Logging level to use (default: LOG_LEVEL from config)
        log_format: Logging format string (default: LOG_FORMAT from config)
        logger_name: Name for the logger (default: LOGGER_NAME from config)

    Returns:
        A configured Logger instance
    """
    if log_level is None:
        log_level = LOG_LEVEL
    if log_format is None:
        log_format = LOG_FORMAT
    if logger_name is None:
        logger_name = LOGGER_NAME

    # Configure basic logging settings
    logging.basicConfig(level=log_level, format=log_format)

    return logging.getLogger(logger_name)


# Create a singleton logger instance
logger = setup_logger()
