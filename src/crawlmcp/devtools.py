# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Chrome DevTools Protocol access for crawl-mcp.

Two operations against a Chrome started with --remote-debugging-port:
- list_targets(): GET /json/list, page targets only, endpoint order kept
- fetch_markup(): one short-lived websocket session per call, one read-only
  evaluation, session closed on every exit path, result sanitized

No retries and no pooling. Timeouts come from the HTTP/websocket transports.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from . import PageTarget
from .config import DevToolsConfig
from .errors import (
    CdpProtocolError,
    DevToolsConnectionError,
    ElementNotFoundError,
    EvaluationError,
    InvalidIndexError,
    NoPagesError,
)
from .sanitizer import sanitize_html

logger = logging.getLogger(__name__)

_OBJECT_GROUP = "crawl-mcp"

_DOCUMENT_EXPRESSION = "document.documentElement.outerHTML"

# Called with the document as `this`; the selector arrives as an argument
# value and is never spliced into script source.
_SELECTOR_FUNCTION = """function (selector) {
  const el = this.querySelector(selector);
  return el ? el.outerHTML : null;
}"""


class CdpSession:
    """Request/response view of one CDP websocket connection.

    Replies are matched by message id; CDP events arriving in between
    are skipped.
    """

    def __init__(self, websocket: Any) -> None:
        self._ws = websocket
        self._last_id = 0

    async def send(self, method: str, params: dict | None = None) -> dict:
        self._last_id += 1
        message_id = self._last_id
        await self._ws.send(json.dumps({"id": message_id, "method": method, "params": params or {}}))

        while True:
            raw = await self._ws.recv()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.debug("Skipping non-JSON CDP frame (%d bytes)", len(raw))
                continue
            if not isinstance(message, dict) or message.get("id") != message_id:
                continue
            error = message.get("error")
            if error is not None:
                raise CdpProtocolError(method, int(error.get("code", 0)), str(error.get("message", "")))
            return message.get("result") or {}

    async def evaluate(self, expression: str, *, return_by_value: bool = True) -> dict:
        """Runtime.evaluate in the page's main world."""
        return await self.send(
            "Runtime.evaluate",
            {
                "expression": expression,
                "returnByValue": return_by_value,
                "silent": True,
                "objectGroup": _OBJECT_GROUP,
            },
        )

    async def call_function_on(
        self,
        object_id: str,
        function_declaration: str,
        arguments: list[dict],
        *,
        return_by_value: bool = True,
    ) -> dict:
        """Runtime.callFunctionOn with *object_id* as ``this``."""
        return await self.send(
            "Runtime.callFunctionOn",
            {
                "objectId": object_id,
                "functionDeclaration": function_declaration,
                "arguments": arguments,
                "returnByValue": return_by_value,
                "silent": True,
            },
        )


class DevToolsClient:
    """Enumerates page targets and reads their markup.

    ``transport`` and ``connect`` exist so tests can substitute an
    ``httpx.MockTransport`` and an in-memory websocket.
    """

    def __init__(
        self,
        config: DevToolsConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config or DevToolsConfig()
        self._transport = transport
        self._connect = connect or websockets.connect

    async def list_targets(self) -> list[PageTarget]:
        """Page targets in endpoint order. Raises DevToolsConnectionError."""
        cfg = self.config
        try:
            async with httpx.AsyncClient(
                timeout=cfg.timeout,
                transport=self._transport,
                trust_env=False,
            ) as client:
                resp = await client.get(cfg.list_url)
                resp.raise_for_status()
                entries = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("DevTools listing failed at %s:%d: %s", cfg.host, cfg.port, e)
            raise DevToolsConnectionError(cfg.host, cfg.port, str(e)) from e

        if not isinstance(entries, list):
            logger.warning("Unexpected /json/list payload type: %s", type(entries).__name__)
            raise DevToolsConnectionError(cfg.host, cfg.port, "unexpected /json/list payload")

        targets = [PageTarget.from_cdp(entry) for entry in entries if isinstance(entry, dict)]
        pages = [t for t in targets if t.is_page]
        logger.debug("DevTools targets: %d total, %d pages", len(targets), len(pages))
        return pages

    @asynccontextmanager
    async def open_session(self, target: PageTarget) -> AsyncIterator[CdpSession]:
        """Open a CDP session on *target*; always closed on exit."""
        cfg = self.config
        ws_url = target.websocket_url or cfg.page_websocket_url(target.id)
        try:
            ws = await self._connect(
                ws_url,
                max_size=None,
                open_timeout=cfg.timeout,
                ping_interval=None,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            logger.warning("CDP session open failed for target %s: %s", target.id, e)
            raise DevToolsConnectionError(cfg.host, cfg.port, str(e)) from e

        logger.debug("CDP session opened: target=%s", target.id)
        try:
            yield CdpSession(ws)
        except ConnectionClosed as e:
            logger.warning("CDP session closed by browser: target=%s", target.id)
            raise DevToolsConnectionError(cfg.host, cfg.port, str(e)) from e
        finally:
            await ws.close()
            logger.debug("CDP session closed: target=%s", target.id)

    async def fetch_markup(self, page_index: int = 0, selector: str | None = None) -> str:
        """Sanitized outerHTML of page *page_index*, or of its first *selector* match.

        Raises NoPagesError, InvalidIndexError, EvaluationError,
        ElementNotFoundError or DevToolsConnectionError.
        """
        targets = await self.list_targets()
        if not targets:
            raise NoPagesError()
        if page_index < 0 or page_index >= len(targets):
            raise InvalidIndexError(page_index, len(targets))

        target = targets[page_index]
        async with self.open_session(target) as session:
            raw = await _read_outer_html(session, selector)

        html = sanitize_html(raw)
        logger.info(
            "Fetched page %d (selector=%s): %d chars raw, %d sanitized",
            page_index,
            selector or "-",
            len(raw),
            len(html),
        )
        return html


async def _read_outer_html(session: CdpSession, selector: str | None) -> str:
    if not selector:
        reply = await session.evaluate(_DOCUMENT_EXPRESSION)
    else:
        doc = await session.evaluate("document", return_by_value=False)
        _raise_for_exception(doc)
        object_id = (doc.get("result") or {}).get("objectId")
        if not object_id:
            raise EvaluationError("Failed to evaluate expression in page context: no document")
        reply = await session.call_function_on(object_id, _SELECTOR_FUNCTION, [{"value": selector}])

    _raise_for_exception(reply)
    value = (reply.get("result") or {}).get("value")
    if value is None:
        if selector:
            raise ElementNotFoundError(selector)
        raise EvaluationError("Failed to get HTML content")
    if not isinstance(value, str):
        raise EvaluationError(f"Expected markup string, got {type(value).__name__}")
    return value


def _raise_for_exception(reply: dict) -> None:
    details = reply.get("exceptionDetails")
    if not details:
        return
    exception = details.get("exception") or {}
    description = exception.get("description") or details.get("text") or "unknown error"
    raise EvaluationError(f"Failed to evaluate expression in page context: {description}")
