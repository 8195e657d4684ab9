# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RFC 9457-style Problem Details for tool errors.

Maps crawl-mcp exceptions to structured problem objects so every failure
reaches the agent as a distinguishable error kind with a recovery hint.
Near-leaf dependency (stdlib + errors.py) so it can be imported from any layer.

Key public API:

- ``ProblemType``: error taxonomy, one member per error kind.
- ``ProblemDetail``: frozen dataclass (JSON dict or MCP error text).
- ``sanitize_detail()``: scrub secrets & paths from error messages.
- ``from_exception()``: build a ``ProblemDetail`` from any exception.

Type URI namespace: ``https://github.com/crawl-mcp/crawl-mcp/errors/{slug}``
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# ── Constants ────────────────────────────────────────────────────────

_ERROR_BASE = "https://github.com/crawl-mcp/crawl-mcp/errors"

MAX_DETAIL_LENGTH = 300

# ── ProblemType taxonomy ─────────────────────────────────────────────


class ProblemType(StrEnum):
    """Error kinds surfaced by the two tools."""

    CONNECTION_ERROR = "connection-error"
    NO_PAGES = "no-pages"
    INVALID_INDEX = "invalid-index"
    EVALUATION_ERROR = "evaluation-error"
    ELEMENT_NOT_FOUND = "element-not-found"
    INTERNAL_ERROR = "internal-error"

    @property
    def uri(self) -> str:
        """Full type URI for RFC 9457 ``type`` field."""
        return f"{_ERROR_BASE}/{self.value}"


# ── Per-type metadata: (status, title, recovery_hint) ────────────────

_TYPE_METADATA: dict[ProblemType, tuple[int, str, str]] = {
    ProblemType.CONNECTION_ERROR: (
        503,
        "DevTools Unreachable",
        "Start Chrome with remote debugging enabled, then retry.",
    ),
    ProblemType.NO_PAGES: (404, "No Open Pages", "Open a tab in Chrome, then retry."),
    ProblemType.INVALID_INDEX: (422, "Invalid Page Index", "Call list_pages to get current page indices."),
    ProblemType.EVALUATION_ERROR: (
        500,
        "Evaluation Failed",
        "Check the selector syntax, or reload the page and retry.",
    ),
    ProblemType.ELEMENT_NOT_FOUND: (404, "Element Not Found", "Try a broader selector, or omit it for the whole page."),
    ProblemType.INTERNAL_ERROR: (500, "Internal Error", "Retry the call."),
}

# ── Secret sanitization patterns ─────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (re.compile(r"Basic\s+[A-Za-z0-9+/=]{8,}"), "Basic <redacted>"),
    (
        re.compile(
            r"(?:API_KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL)\s*[=:]\s*\S+",
            re.IGNORECASE,
        ),
        "<redacted>",
    ),
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|proc|sys|usr|Library"
    r"|Applications|private|snap|mnt|media|nix)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)


def sanitize_detail(text: str) -> str:
    """Scrub secrets and filesystem paths from *text*.

    Applies ``_SECRET_PATTERNS`` and ``_PATH_PATTERN``, then truncates
    to ``MAX_DETAIL_LENGTH`` characters.
    """
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


# ── ProblemDetail dataclass ──────────────────────────────────────────

# Standard RFC 9457 fields that extensions must never shadow.
_STANDARD_FIELDS = frozenset({"type", "title", "status", "detail", "instance"})


@dataclass(frozen=True, slots=True)
class ProblemDetail:
    """RFC 9457 Problem Detail object.

    Immutable representation of a structured error. Serialises to a
    JSON dict and to the text carried by an MCP error result.
    """

    type: str = "about:blank"
    title: str = ""
    status: int = 500
    detail: str = ""
    instance: str = ""
    extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def slug(self) -> str:
        """Trailing path segment of ``type`` (the error kind)."""
        return self.type.rsplit("/", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        """RFC 9457 JSON dict. Empty optional fields omitted, extensions merged at top level."""
        d: dict[str, Any] = {"type": self.type, "status": self.status}
        if self.title:
            d["title"] = self.title
        if self.detail:
            d["detail"] = self.detail
        if self.instance:
            d["instance"] = self.instance
        for k, v in self.extensions.items():
            if k not in _STANDARD_FIELDS:
                d[k] = v
        return d

    def to_json(self) -> str:
        """JSON string (``ensure_ascii=False``)."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_mcp_text(self) -> str:
        """Text for an MCP error result.

        Format: ``"[<slug>] <detail>. <hint>"``
        """
        hint = ""
        for problem_type, (_, _, type_hint) in _TYPE_METADATA.items():
            if problem_type.uri == self.type:
                hint = type_hint
                break
        detail = self.detail.rstrip(".")
        if hint:
            return f"[{self.slug}] {detail}. {hint}"
        return f"[{self.slug}] {detail}"


# ── Exception → ProblemType mapping ──────────────────────────────────


def _exception_type_map() -> dict[type, ProblemType]:
    """Lazy-build mapping from exception classes to ProblemType."""
    from .errors import (
        DevToolsConnectionError,
        ElementNotFoundError,
        EvaluationError,
        InvalidIndexError,
        NoPagesError,
    )

    return {
        DevToolsConnectionError: ProblemType.CONNECTION_ERROR,
        NoPagesError: ProblemType.NO_PAGES,
        InvalidIndexError: ProblemType.INVALID_INDEX,
        EvaluationError: ProblemType.EVALUATION_ERROR,
        ElementNotFoundError: ProblemType.ELEMENT_NOT_FOUND,
    }


def from_exception(
    exc: Exception,
    *,
    instance: str = "",
    extensions: dict[str, Any] | None = None,
) -> ProblemDetail:
    """Build a ProblemDetail from an exception.

    Known crawl-mcp exception types (and their subclasses) map to specific
    ProblemType values. Anything else becomes ``internal-error`` with the
    exception class name only, so internal state does not leak.
    """
    from .errors import ElementNotFoundError, InvalidIndexError

    ext = dict(extensions) if extensions else {}

    problem_type = None
    for exc_class, mapped in _exception_type_map().items():
        if isinstance(exc, exc_class):
            problem_type = mapped
            break

    if problem_type is None:
        status, title, _ = _TYPE_METADATA[ProblemType.INTERNAL_ERROR]
        return ProblemDetail(
            type=ProblemType.INTERNAL_ERROR.uri,
            title=title,
            status=status,
            detail=f"Unexpected {type(exc).__name__}",
            instance=instance,
            extensions=ext,
        )

    if isinstance(exc, InvalidIndexError):
        ext.setdefault("page_count", exc.count)
    if isinstance(exc, ElementNotFoundError):
        ext.setdefault("selector", sanitize_detail(exc.selector))

    status, title, _ = _TYPE_METADATA[problem_type]
    return ProblemDetail(
        type=problem_type.uri,
        title=title,
        status=status,
        detail=sanitize_detail(str(exc)),
        instance=instance,
        extensions=ext,
    )
