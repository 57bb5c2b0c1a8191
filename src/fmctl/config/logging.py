"""Logging setup: stdlib loggers rendered through structlog.

Modules log with ``logging.getLogger(__name__)``; telemetry emits native
structlog events. Both pass through one ``ProcessorFormatter`` on stderr so
stdout carries only rendered documents and results. ``--log-json`` switches
the renderer to one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog
from structlog.types import Processor

LOGGER_NAME = "fmctl"


def _pre_chain(*, log_json: bool) -> list[Processor]:
    timestamper = (
        structlog.processors.TimeStamper(fmt="iso", utc=True)
        if log_json
        else structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(*, log_json: bool, stream: TextIO) -> list[Processor]:
    if log_json:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=stream.isatty())]


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route all logging to *stream* (default: stderr).

    The ``fmctl`` logger runs at DEBUG with *verbose* and WARNING otherwise;
    third-party loggers stay at WARNING either way. Calling this again
    replaces the previous handler.
    """
    stream = stream or sys.stderr
    pre_chain = _pre_chain(log_json=log_json)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(log_json=log_json, stream=stream),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)


def bind_command(name: str | None) -> None:
    """Tag log lines from this invocation with the subcommand *name*."""
    structlog.contextvars.clear_contextvars()
    if name:
        structlog.contextvars.bind_contextvars(command=name)
