"""Logging configuration utilities for template-fleet-sync.

This module provides utilities for configuring loguru logging in a library-friendly way.
By default, the library only logs WARNING and above to avoid flooding consumer applications.

The initial configuration is done in __init__.py when the package is imported.
"""

import sys
from typing import Literal

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]

CLI_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{message}</level>"
"""Compact format used by the command line entry points."""


def configure_logger(
    level: LogLevel = "WARNING",
    *,
    format_string: str | None = None,
    colorize: bool = True,
) -> None:
    """Configure the template-fleet-sync logger.

    Args:
        level: The minimum log level to display. One of:
              "TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"
        format_string: Custom format string for log messages. If None, uses default format.
        colorize: Whether to use colored output (default: True)

    Examples:
        ```python
        from template_fleet_sync.logging_config import configure_logger

        # Follow every stage of every entry
        configure_logger("DEBUG")

        # Only see failures
        configure_logger("ERROR")
        ```

    Note:
        You can also use the environment variable TEMPLATE_FLEET_SYNC_LOG_LEVEL
        to set the log level without code changes.
    """
    logger.remove()

    if format_string is None:
        format_string = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        level=level,
        format=format_string,
        colorize=colorize,
    )


def configure_cli_logger(*, verbose: bool = False, to_stderr: bool = False) -> None:
    """Configure logging for command line use: INFO to stdout, DEBUG when verbose.

    `to_stderr` keeps stdout free for machine-readable output.
    """
    logger.remove()
    logger.add(
        sys.stderr if to_stderr else sys.stdout,
        format=CLI_FORMAT,
        level="DEBUG" if verbose else "INFO",
    )


def disable_logging() -> None:
    """Completely disable all logging from template-fleet-sync."""
    logger.remove()


def enable_debug_logging() -> None:
    """Enable DEBUG level logging with detailed format.

    Equivalent to configure_logger("DEBUG").
    """
    configure_logger("DEBUG")


__all__ = [
    "CLI_FORMAT",
    "LogLevel",
    "configure_cli_logger",
    "configure_logger",
    "disable_logging",
    "enable_debug_logging",
]
