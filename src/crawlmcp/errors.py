# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Crawl MCP exception hierarchy.

All crawl-mcp errors inherit from CrawlMcpError, allowing the tool layer
to catch the base class and turn any failure into a protocol-level error
response instead of a crashed server.
"""

from __future__ import annotations


class CrawlMcpError(Exception):
    """Base exception for all crawl-mcp errors."""


class DevToolsConnectionError(CrawlMcpError, ConnectionError):
    """The Chrome DevTools endpoint (or a target's websocket) is unreachable."""

    def __init__(self, host: str, port: int, reason: str = "") -> None:
        message = (
            f"Failed to connect to Chrome DevTools at {host}:{port}. "
            f"Ensure Chrome is running with --remote-debugging-port={port}"
        )
        super().__init__(message)
        self.host = host
        self.port = port
        self.reason = reason


class NoPagesError(CrawlMcpError):
    """The DevTools endpoint reported zero page targets."""

    def __init__(self, message: str = "No open pages found in Chrome") -> None:
        super().__init__(message)


class InvalidIndexError(CrawlMcpError):
    """Requested page index is outside the current target list."""

    def __init__(self, index: int, count: int) -> None:
        super().__init__(f"Invalid page index {index}. Available pages: 0-{count - 1}")
        self.index = index
        self.count = count


class EvaluationError(CrawlMcpError):
    """The in-page expression raised, or the page returned no markup."""


class CdpProtocolError(EvaluationError):
    """A CDP command was answered with an ``error`` object."""

    def __init__(self, method: str, code: int, message: str) -> None:
        super().__init__(f"{method} failed: {message} (code {code})")
        self.method = method
        self.code = code


class ElementNotFoundError(CrawlMcpError):
    """A selector was given but matched no element."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"Element not found for selector: {selector}")
        self.selector = selector
