"""Core RowSandbox utilities.

This module exports core utilities for use throughout the package.
"""

from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.logging import (
    LoggingContext,
    configure_logging,
    get_logger,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "LoggingContext",
]
