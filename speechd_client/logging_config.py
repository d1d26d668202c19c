"""
Simple logging configuration: defaults to ERROR, respects CLI/env.
"""

import logging
import os
import sys

from loguru import logger

LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


def setup_logging(level=None):
    """Setup logging with proper level defaults.

    Priority: CLI arg > env var > ERROR

    Args:
        level: Log level from CLI argument (optional)

    Returns:
        The level that was applied.
    """
    log_level = (level or os.getenv("SPEECHD_CLIENT_LOG_LEVEL") or "ERROR").upper()
    if log_level not in LEVELS:
        raise ValueError(f"Unknown log level: {log_level}")

    logger.configure(
        handlers=[
            {
                "sink": sys.stderr,
                "format": "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
                "level": log_level,
                "colorize": True,
            }
        ]
    )

    # Standard logging for anything that doesn't go through loguru.
    # TRACE/SUCCESS have no stdlib equivalent.
    std_level = {"TRACE": "DEBUG", "SUCCESS": "INFO"}.get(log_level, log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.getLevelName(std_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.getLevelName(std_level))
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s - %(message)s", datefmt="%H:%M:%S")
    )
    root_logger.addHandler(console_handler)

    return log_level
