"""Logging setup for lyritop.

Records go to stderr. In interactive mode stdout carries the status line that
TerminalSink redraws in place, so on a terminal each record first returns the
cursor and erases that line instead of being glued to the end of the lyric.
"""
from __future__ import annotations

import logging
import sys
from typing import TextIO

ROOT = 'lyritop'

_CLEAR_LINE = "\r\033[K"

_VERBOSE_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'
_BRIEF_FORMAT = 'lyritop: %(message)s'


class LineClearingFormatter(logging.Formatter):
    """Prefix every record with a carriage return and an erase-line sequence."""

    def format(self, record: logging.LogRecord) -> str:
        return _CLEAR_LINE + super().format(record)


def setup_logging(
    verbose: bool = False,
    interactive: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach a single stderr handler to the ``lyritop`` logger.

    Args:
        verbose: DEBUG with timestamps and logger names; otherwise INFO with
            only the message.
        interactive: The terminal sink owns the current line of the terminal.
        stream: Where records go, stderr by default.

    Returns:
        The configured ``lyritop`` logger.
    """
    stream = stream or sys.stderr
    logger = logging.getLogger(ROOT)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    fmt = _VERBOSE_FORMAT if verbose else _BRIEF_FORMAT
    if interactive and stream.isatty():
        formatter: logging.Formatter = LineClearingFormatter(fmt, datefmt='%H:%M:%S')
    else:
        formatter = logging.Formatter(fmt, datefmt='%H:%M:%S')

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # A root handler would print every record a second time
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``lyritop`` logger, or its child ``lyritop.<name>``."""
    return logging.getLogger(ROOT if name is None else f'{ROOT}.{name}')
