# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Logging setup for the crawl-mcp process.

stdlib ``logging`` calls from every module are rendered by structlog:
ConsoleRenderer by default, one JSON object per line with --json-logs.
The handler always writes to stderr because stdout is the MCP stdio channel.
Import-safe: no crawlmcp imports.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers that are chatty below WARNING (httpx logs each request,
# websockets logs every frame at DEBUG).
_QUIET_LOGGERS = ("httpx", "httpcore", "websockets")


def _pre_chain() -> list:
    """Processors applied to structlog and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route all logging through structlog onto stderr.

    Safe to call more than once; the root handler is replaced, not stacked.
    Unknown *level* names fall back to INFO.
    """
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
