# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Crawl MCP: sanitized HTML from open Chrome pages for AI agents.

Lists the pages of a Chrome instance running with remote debugging enabled
and returns their markup after a strict HTML content filter:
- list_pages: index, title, and URL of every open page
- get_page_html: sanitized outerHTML of a page or of one element
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TargetKind(StrEnum):
    """Coarse CDP target type. Only PAGE targets are exposed to callers."""

    PAGE = "page"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class PageTarget:
    """One inspectable target reported by the DevTools endpoint."""

    id: str  # CDP target id, opaque
    title: str
    url: str
    kind: TargetKind
    type_name: str = ""  # raw CDP type: page, iframe, service_worker, ...
    websocket_url: str = ""  # webSocketDebuggerUrl, empty while another client is attached

    @classmethod
    def from_cdp(cls, entry: dict) -> PageTarget:
        type_name = str(entry.get("type") or "")
        return cls(
            id=str(entry.get("id") or ""),
            title=str(entry.get("title") or ""),
            url=str(entry.get("url") or ""),
            kind=TargetKind.PAGE if type_name == "page" else TargetKind.OTHER,
            type_name=type_name,
            websocket_url=str(entry.get("webSocketDebuggerUrl") or ""),
        )

    @property
    def is_page(self) -> bool:
        return self.kind is TargetKind.PAGE
