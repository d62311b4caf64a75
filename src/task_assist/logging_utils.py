"""Logging utilities with custom trace level."""

import logging
from typing import Any

# Define custom TRACE level (lower than DEBUG)
TRACE_LEVEL = 5

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def add_trace_level() -> None:
    """Add a custom TRACE logging level."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with severity 'TRACE'."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    logging.Logger.trace = trace  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a logger with trace support."""
    if not hasattr(logging.Logger, "trace"):
        add_trace_level()

    return logging.getLogger(name)


def configure_logging(verbose: bool = False, trace: bool = False) -> None:
    """
    Configure root logging for the command-line entry points.

    Args:
        verbose: Log DEBUG and above with logger names
        trace: Log everything down to TRACE
    """
    add_trace_level()

    if trace:
        logging.basicConfig(level=TRACE_LEVEL, format=VERBOSE_FORMAT)
        logging.getLogger("aiosqlite").setLevel(logging.INFO)
    elif verbose:
        logging.basicConfig(level="DEBUG", format=VERBOSE_FORMAT)
        logging.getLogger("aiosqlite").setLevel(logging.INFO)
    else:
        logging.basicConfig(level="INFO", format=DEFAULT_FORMAT)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
