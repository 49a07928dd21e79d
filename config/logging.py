"""
Logging configuration for the Coach Tracker dedup engine.
"""

import logging
import sys
from pathlib import Path

from config.settings import settings

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER_NAME = "coach_tracker"


def setup_logging(name: str = ROOT_LOGGER_NAME, log_to_file: bool = True) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        name: Logger name
        log_to_file: Also write DEBUG-level records to logs/<name>.log

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Merge history is worth keeping after the terminal scrolls away
    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / f"{name}.log")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(module: str) -> logging.Logger:
    """Child logger of the project logger, e.g. coach_tracker.dedup.merge."""
    return logging.getLogger(ROOT_LOGGER_NAME).getChild(module)


# Default logger
logger = setup_logging(log_to_file=settings.LOG_TO_FILE)
