"""
Shared utilities for the SignPreview package.
"""

from .logging_utils import AppTimeFormatter, create_app_time_formatter, format_elapsed, quiet_loggers

__all__ = ["AppTimeFormatter", "create_app_time_formatter", "format_elapsed", "quiet_loggers"]
