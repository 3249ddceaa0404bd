"""
Centralized logging configuration for the companion service
"""

import functools
import logging
import sys
import time
from typing import Optional

from companion.config.base import settings

CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours the level name"""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        # Colour a copy so the file handler still sees the plain level name
        if record.levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"

        return super().format(record)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance

    Args:
        name: Logger name (usually __name__)
        level: Log level, defaults to LOG_LEVEL from settings

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Don't add handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper()))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE)
            file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)
        except OSError as e:
            # If file logging fails, just use console
            logger.warning(f"Could not create file handler for {settings.LOG_FILE}: {e}")

    return logger


def log_store_call(func):
    """Decorator for async object store calls: logs duration and failures"""
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        logger.debug(f"Calling {func.__name__}")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            logger.error(f"Error in {func.__name__} after {elapsed:.3f}s: {e}")
            raise

        elapsed = time.perf_counter() - start_time
        logger.debug(f"Completed {func.__name__} in {elapsed:.3f}s")
        return result

    return wrapper
