"""Structured logging configuration shared across the agent."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

import structlog

# Transport libraries log every RPC round-trip at INFO.
NOISY_LOGGERS = ("web3", "httpx", "httpcore", "urllib3", "uvicorn.access")


def setup_logging(level: str = "INFO", *, stream: Optional[TextIO] = None) -> None:
    """Initialise structlog and route stdlib logging to ``stream``.

    Logs go to stderr by default so CLI output on stdout stays machine-readable.
    """

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    shared_processors: list[structlog.types.Processor] = [
        timestamper,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the supplied module name."""

    return structlog.get_logger(name)


__all__ = ["setup_logging", "get_logger"]
