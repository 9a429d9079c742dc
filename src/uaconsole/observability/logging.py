"""Structured logging setup.

Log records go to stderr so that stdout only carries the browse tree.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

def configure_logging(log_level: str = "WARNING", log_format: str = "console") -> None:
    level = getattr(logging, log_level.upper(), logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "json":
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ])
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    # asyncua logs through the standard library
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr, level=level, force=True)
    logging.getLogger("asyncua").setLevel(max(level, logging.WARNING))
