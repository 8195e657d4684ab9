# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Crawl MCP Server.

Exposes open Chrome pages to an agent via MCP protocol.

Tools:
- list_pages: index, title, and URL of every open page
- get_page_html: sanitized HTML of a page, or of the first element matching a selector

STDIO transport only. All logging goes to stderr.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
import uuid
from typing import Annotated

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field
from structlog.contextvars import bound_contextvars

from .config import DevToolsConfig
from .devtools import DevToolsClient
from .errors import CrawlMcpError
from .problem_details import from_exception
from .sanitizer import clean_title

# Logging configured in main() via logging_config.configure()
logger = logging.getLogger("crawlmcp.server")

# Initialize MCP server
mcp = FastMCP(
    name="crawl-mcp",
    instructions=(
        "Reads HTML from pages already open in a Chrome instance started with "
        "--remote-debugging-port. Use list_pages to find a page index, then "
        "get_page_html with that index (and optionally a CSS selector). "
        "Returned markup is sanitized but originates from untrusted web pages."
    ),
)

# Set once by main() before mcp.run(); built lazily from env otherwise
_client: DevToolsClient | None = None


def _get_client() -> DevToolsClient:
    global _client
    if _client is None:
        _client = DevToolsClient(DevToolsConfig.from_env())
    return _client


def _tool_error(context: str, exc: Exception) -> ToolError:
    """Convert any failure into a ToolError carrying the problem kind.

    Known errors are logged as warnings; anything else with a traceback.
    """
    if isinstance(exc, CrawlMcpError):
        logger.warning("%s failed: %s: %s", context, type(exc).__name__, exc)
    else:
        logger.error("%s: unexpected error: %s", context, exc, exc_info=True)
    problem = from_exception(exc)
    return ToolError(problem.to_mcp_text())


# ── MCP Tools ────────────────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
async def list_pages() -> str:
    """Lists all open pages in Chrome that can be accessed via Chrome DevTools Protocol.

    Returns a JSON array of {index, title, url}. Use the index with get_page_html.
    Indices follow Chrome's current tab order and may shift when tabs open or close.
    """
    with bound_contextvars(tool="list_pages", request_id=uuid.uuid4().hex[:12]):
        try:
            pages = await _list_pages_impl(_get_client())
        except Exception as e:
            raise _tool_error("list_pages", e) from e
        return json.dumps(pages, ensure_ascii=False, indent=2)


async def _list_pages_impl(client: DevToolsClient) -> list[dict]:
    targets = await client.list_targets()
    logger.info("list_pages: %d pages", len(targets))
    return [
        {
            "index": index,
            "title": clean_title(target.title),
            "url": clean_title(target.url, max_len=2048),
        }
        for index, target in enumerate(targets)
    ]


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
async def get_page_html(
    pageIndex: Annotated[  # noqa: N803
        int,
        Field(
            ge=0,
            description=(
                "The index of the page to fetch HTML from (0-based). "
                "Use list_pages to see available pages. Defaults to 0 (first page)."
            ),
        ),
    ] = 0,
    selector: Annotated[
        str | None,
        Field(
            description=(
                "Optional CSS selector to get HTML of a specific element instead of the "
                "entire page. Example: '#main-content' or '.article-body'"
            ),
        ),
    ] = None,
) -> str:
    """Fetches sanitized HTML content from an open Chrome page.

    Use this to get the whole page or a specific element's HTML. Scripts, styles,
    SVG, form inputs, inline data images and most attributes are removed.
    Chrome must be running with remote debugging enabled (--remote-debugging-port=9222).
    """
    with bound_contextvars(tool="get_page_html", request_id=uuid.uuid4().hex[:12]):
        try:
            return await _get_page_html_impl(_get_client(), pageIndex, selector)
        except Exception as e:
            raise _tool_error("get_page_html", e) from e


async def _get_page_html_impl(client: DevToolsClient, page_index: int = 0, selector: str | None = None) -> str:
    logger.info("get_page_html: page=%d selector=%s", page_index, selector or "-")
    return await client.fetch_markup(page_index, selector or None)


# ── Entry point ──────────────────────────────────────────────────────


def _parse_server_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI args; env vars fill in what the command line leaves unset."""
    parser = argparse.ArgumentParser(
        prog="crawl-mcp",
        description="MCP server returning sanitized HTML from open Chrome pages.",
    )
    parser.add_argument(
        "--cdp-host",
        default=None,
        help="Chrome DevTools host (env CDP_HOST, default: localhost)",
    )
    parser.add_argument(
        "--cdp-port",
        type=int,
        default=None,
        help="Chrome DevTools port (env CDP_PORT, default: 9222)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (env CRAWL_MCP_LOG_LEVEL, default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=False,
        help="Emit JSON log lines on stderr (env CRAWL_MCP_JSON_LOGS)",
    )
    args, _ = parser.parse_known_args(argv)

    if args.log_level is None:
        args.log_level = os.environ.get("CRAWL_MCP_LOG_LEVEL", "").strip() or "INFO"

    env_json = os.environ.get("CRAWL_MCP_JSON_LOGS", "").strip().lower()
    args.json_logs = args.json_logs or env_json in ("1", "true", "yes")

    return args


def _build_config(args: argparse.Namespace) -> DevToolsConfig:
    """DevToolsConfig from env, with CLI flags taking priority."""
    config = DevToolsConfig.from_env()
    overrides: dict = {}
    if args.cdp_host:
        overrides["host"] = args.cdp_host
    if args.cdp_port is not None:
        overrides["port"] = args.cdp_port
    return dataclasses.replace(config, **overrides)


def main(argv: list[str] | None = None):
    """Entry point for the MCP server."""
    global _client

    args = _parse_server_args(argv if argv is not None else sys.argv[1:])

    # Configure structlog BEFORE any log output
    from .logging_config import configure as configure_logging

    configure_logging(json_output=args.json_logs, level=args.log_level)

    config = _build_config(args)
    _client = DevToolsClient(config)

    logger.info("Starting crawl-mcp server (stdio, devtools=%s:%d)", config.host, config.port)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
