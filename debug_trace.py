"""
debug_trace.py

Logging setup and category-tagged trace helpers.

All records go through the ``pinboard`` logger namespace so a single
``setup_logging()`` call routes module loggers and traces alike.
"""

import logging
import sys
from functools import wraps
from typing import Optional

LOGGER_NAME = "pinboard"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_trace_log = logging.getLogger(f"{LOGGER_NAME}.trace")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``pinboard`` logger with a console and optional file handler.

    Args:
        level: Level name (``"DEBUG"``, ``"INFO"``, ...). Unknown names fall back to INFO.
        log_file: Optional path of a log file, truncated on startup.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logger.setLevel(numeric)

    # Avoid duplicate handlers when called twice (tests, restarts)
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(_FORMAT, datefmt="%H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def trace(msg: str, category: str = "INFO"):
    """Log a debug trace message tagged with a category."""
    _trace_log.debug("[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the exception currently being handled."""
    _trace_log.exception(msg)


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<<< {func_name}", category)
            return result
        return wrapper
    return decorator


def close_log():
    """Flush and close every handler of the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)
