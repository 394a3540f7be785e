"""Logging utilities for lazysearch.

This module provides configuration helpers to enable rich-formatted logging
for the library and the search widget built on it.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def setup_logging(
    level: int = logging.INFO,
    format_string: str = "%(message)s",
    date_format: str = "[%X]",
) -> None:
    """Configures the lazysearch logger with a RichHandler.

    Sets up the logger for the 'lazysearch' namespace so that exchanges,
    rendered search results and search failures are printed to the console
    using the Rich library. Call it from the application embedding the
    widget, not from library code.

    Args:
        level: The logging level to set (e.g., logging.DEBUG, logging.INFO).
            Defaults to logging.INFO.
        format_string: The log format string. Defaults to "%(message)s" as
            RichHandler handles the timestamp and level style automatically.
        date_format: The date format string. Defaults to "[%X]".
    """
    logger = logging.getLogger("lazysearch")
    logger.setLevel(level)

    # Calling twice must not duplicate output
    if logger.handlers:
        logger.handlers.clear()

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_level=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter(fmt=format_string, datefmt=date_format))

    logger.addHandler(handler)
    logger.propagate = False
