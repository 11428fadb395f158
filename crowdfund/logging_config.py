"""
Structured logging configuration using structlog.

``settings.log_format`` picks the renderer: ``json`` for deployed API
servers, ``console`` for a terminal, or ``auto`` (console at DEBUG, JSON
otherwise). JSON events carry the pinned trail version and target chain so
lines from different deployments of the mini-app can be told apart.

The API server logs to stdout. The CLI passes ``stream=sys.stderr`` so its
own command output stays clean.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog

from .config import settings

LOG_FORMATS = ("auto", "json", "console")

# Polled on every refresh tick and receipt poll
QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def _add_trail(_logger, _method, event_dict):
    event_dict.setdefault("trail_version", settings.trail_version_id)
    event_dict.setdefault("chain_id", settings.target_chain_id)
    return event_dict


def resolve_format(level: int, log_format: Optional[str] = None) -> str:
    fmt = (log_format or settings.log_format).lower()
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {fmt!r}, expected one of {', '.join(LOG_FORMATS)}")
    if fmt == "auto":
        return "console" if level == logging.DEBUG else "json"
    return fmt


def setup_logging(
    log_level: Optional[str] = None,
    *,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: from settings.log_level)
        log_format: Override renderer (default: from settings.log_format)
        stream: Where log lines go (default: stdout)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = resolve_format(level, log_format)
    out = stream or sys.stdout

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())
    else:
        shared_processors.append(_add_trail)
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
