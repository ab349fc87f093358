from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

from files2xml.config import PROGRAM

if TYPE_CHECKING:
    from pathlib import Path

_VERBOSITY_LEVELS = (logging.ERROR, logging.INFO, logging.DEBUG)

_CONFIGURED_WITH: tuple[int, str] | None = None


def verbosity_to_level(verbosity: int) -> int:
    """Map a `-v`/`-q` verbosity count to a logging level.

    Args:
        verbosity: 0 for quiet, 1 for normal, 2 or more for debug output.

    Returns:
        The matching standard library logging level.
    """
    return _VERBOSITY_LEVELS[max(0, min(verbosity, len(_VERBOSITY_LEVELS) - 1))]


def setup_logging(verbosity: int = 1, filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up structured logging for the files2xml package.

    Diagnostics never go to stdout, which carries the XML document. Calling this
    again with different arguments reconfigures logging.

    Args:
        verbosity: 0 logs errors only, 1 adds warnings and progress, 2+ adds skip decisions.
        filename: Optional path to a log file. If None, logs are written to stderr.

    Returns:
        A structlog logger instance configured for the files2xml package.
    """
    global _CONFIGURED_WITH  # noqa: PLW0603
    wanted = (verbosity, str(filename or ""))
    if _CONFIGURED_WITH != wanted:
        level = verbosity_to_level(verbosity)
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format=f"{PROGRAM}: %(message)s",
            force=True,
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _CONFIGURED_WITH = wanted

    return structlog.get_logger(PROGRAM)


logger = setup_logging()
