"""
Logging utilities.

Formatter that stamps each record with the time elapsed since application
start, so keep-alive and debounce timing can be read directly off the log.
"""

import logging
import time
from typing import Iterable, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(app_time)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi", "urllib3")


def format_elapsed(elapsed_seconds: float) -> str:
    """Elapsed time as mm:ss.xxx (negative values clamp to zero)."""
    elapsed_seconds = max(0.0, elapsed_seconds)
    minutes = int(elapsed_seconds // 60)
    seconds = elapsed_seconds % 60
    return f"{minutes:02d}:{seconds:06.3f}"


class AppTimeFormatter(logging.Formatter):
    """Formatter adding ``app_time``: time since application start."""

    def __init__(
        self, fmt: Optional[str] = None, datefmt: Optional[str] = None, app_start_time: Optional[float] = None
    ):
        """
        Initialize the formatter.

        Args:
            fmt: Log format string
            datefmt: Date format string
            app_start_time: Application start time (time.time()). If None, uses current time.
        """
        super().__init__(fmt, datefmt)
        self.app_start_time = time.time() if app_start_time is None else app_start_time

    def format(self, record):
        record.app_time = format_elapsed(record.created - self.app_start_time)
        return super().format(record)


# Global app start time - set when logging is first configured
_app_start_time: Optional[float] = None


def get_app_start_time() -> float:
    """Get the application start time."""
    global _app_start_time
    if _app_start_time is None:
        _app_start_time = time.time()
    return _app_start_time


def set_app_start_time(start_time: float) -> None:
    """Set the application start time."""
    global _app_start_time
    _app_start_time = start_time


def create_app_time_formatter(fmt: Optional[str] = None, datefmt: Optional[str] = None) -> AppTimeFormatter:
    """
    Create a formatter with app start time tracking.

    Args:
        fmt: Log format string. If None, uses DEFAULT_LOG_FORMAT.
        datefmt: Date format string

    Returns:
        AppTimeFormatter instance
    """
    return AppTimeFormatter(fmt=fmt or DEFAULT_LOG_FORMAT, datefmt=datefmt, app_start_time=get_app_start_time())


def quiet_loggers(names: Iterable[str] = NOISY_LOGGERS, level: int = logging.WARNING) -> None:
    """Raise the level of chatty third-party loggers."""
    for name in names:
        logging.getLogger(name).setLevel(level)
