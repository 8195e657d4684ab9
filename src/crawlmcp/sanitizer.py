# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""HTML content filter for markup returned to an agent.

Page markup is attacker-influenced and enters the caller's LLM context
verbatim. sanitize_html() reduces it to structural, mostly-textual HTML:

1. Drop non-content subtrees (head, script, style, svg, form inputs, frames,
   raw-text elements, <i>)
2. Drop <img> elements carrying data: URIs, scrub base64 payloads elsewhere
3. Drop metadata elements (meta, link, base)
4. Unwrap elements outside the tag allow-list, keeping their text and children
5. Keep only allow-listed attributes (id; a[href]; img[src, alt]) and URL
   schemes; attributes holding a data: URI are dropped
6. Remove whitespace-only text between tags, then prune empty elements

The tree pass runs bottom-up, so an element emptied by its children's removal
is pruned in the same pass. The parse/filter/serialize cycle is repeated until
the output is stable, which makes sanitize_html idempotent.

clean_title() handles short untrusted fields such as page titles.
"""

from __future__ import annotations

import logging
import re

import lxml.html
from lxml import etree

logger = logging.getLogger(__name__)

# Subtrees removed with all their content
_DROP_SUBTREE_TAGS = frozenset(
    {
        "head",
        "title",
        "script",
        "style",
        "svg",
        "math",
        "i",
        "input",
        "textarea",
        "select",
        "iframe",
        "frame",
        "frameset",
        "object",
        "embed",
        "noscript",
        "noembed",
        "noframes",
        "template",
        # raw text: serialized escaped, reparsed literally
        "xmp",
        "plaintext",
        "listing",
    }
)

# Metadata elements (void, no content to lose)
_METADATA_TAGS = frozenset({"meta", "link", "base"})

# Everything else is unwrapped: the tag goes, its text and children stay.
_ALLOWED_TAGS = frozenset(
    {
        "a", "p", "div", "span", "ul", "ol", "li",
        "strong", "em", "b", "u", "small", "sub", "sup",
        "br", "hr", "code", "pre", "blockquote",
        "table", "thead", "tbody", "tr", "th", "td",
        "img", "button",
        "h1", "h2", "h3", "h4", "h5", "h6",
    }
)

# Void elements carry no content and are never pruned as "empty"
_VOID_TAGS = frozenset({"br", "hr", "img"})

_GLOBAL_ATTRS = frozenset({"id"})

_ALLOWED_ATTRS: dict[str, frozenset[str]] = {
    "a": _GLOBAL_ATTRS | {"href"},
    "img": _GLOBAL_ATTRS | {"src", "alt"},
}

_URL_SCHEMES: dict[tuple[str, str], frozenset[str]] = {
    ("a", "href"): frozenset({"http", "https", "mailto"}),
    ("img", "src"): frozenset({"http", "https"}),
}

# Control characters, zero-width chars, bidi overrides, interlinear annotations,
# lone surrogates and noncharacters. Tab, LF and CR are kept.
_CONTROL_CHAR_RE = re.compile(
    r"[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F"
    r"\u200B-\u200F\u202A-\u202E\u2060-\u2069\uFEFF\uFFF9-\uFFFB"
    r"\uD800-\uDFFF\uFFFE\uFFFF]"
)

# ANSI escape sequences
_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")

# data:<mime>[;param]*;base64,<payload>
_DATA_URI_RE = re.compile(
    r"\bdata:[^,;\s\"'<>]*(?:;[^,;\s\"'<>]*)*;base64,[A-Za-z0-9+/=_-]*",
    re.IGNORECASE,
)

# Browsers ignore these inside URLs, so "java\tscript:" is still javascript:
_URL_IGNORED_RE = re.compile(r"[\s\u0000-\u001F\u007F-\u009F]")

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")

_FULL_DOCUMENT_RE = re.compile(r"^\s*<(?:html|!doctype)", re.IGNORECASE)

MAX_PASSES = 8


def sanitize_html(raw: str) -> str:
    """Filter page markup down to allow-listed structure. Never raises.

    Repeats the filter until the output no longer changes, so
    ``sanitize_html(sanitize_html(x)) == sanitize_html(x)``.
    Markup the parser cannot make sense of at all yields ``""``.
    """
    if not raw:
        return ""

    current = raw
    for n in range(1, MAX_PASSES + 1):
        cleaned = _sanitize_pass(current)
        if cleaned == current:
            logger.debug("sanitize_html: fixed point after %d passes (%d -> %d chars)", n, len(raw), len(cleaned))
            return cleaned
        current = cleaned

    logger.warning("sanitize_html: no fixed point after %d passes, returning last pass", MAX_PASSES)
    return current


def _sanitize_pass(markup: str) -> str:
    """One parse -> filter -> serialize cycle."""
    text = _CONTROL_CHAR_RE.sub("", markup)
    if not _FULL_DOCUMENT_RE.match(text):
        text = f"<html><body>{text}</body></html>"

    parser = lxml.html.HTMLParser(
        recover=True,
        encoding="utf-8",
        remove_comments=True,
        remove_pis=True,
    )
    try:
        doc = lxml.html.document_fromstring(text.encode("utf-8"), parser=parser)
    except (etree.ParserError, ValueError) as e:
        logger.warning("sanitize_html: unparseable markup (%d chars): %s", len(markup), e)
        return ""

    body = doc.find("body")
    if body is None:
        # e.g. a document that is nothing but <head>
        return ""

    # Reverse document order visits every descendant before its ancestors.
    for el in reversed(list(body.iterdescendants())):
        _filter_element(el)
    body.attrib.clear()
    _clean_children_text(body)

    serialized = lxml.html.tostring(body, encoding="unicode", method="html", with_tail=False)
    return serialized[len("<body>") : -len("</body>")]


def _filter_element(el: lxml.html.HtmlElement) -> None:
    tag = el.tag
    if not isinstance(tag, str):
        # comment/PI/entity nodes the parser kept anyway
        _drop(el)
        return

    if tag in _DROP_SUBTREE_TAGS or tag in _METADATA_TAGS:
        _drop(el)
        return

    if tag == "img" and _is_data_uri(el.get("src", "")):
        _drop(el)
        return

    if tag not in _ALLOWED_TAGS:
        el.drop_tag()
        return

    _filter_attributes(el, tag)
    _clean_children_text(el)

    if tag not in _VOID_TAGS and not el.attrib and not el.text and len(el) == 0:
        _drop(el)


def _filter_attributes(el: lxml.html.HtmlElement, tag: str) -> None:
    """Drop every attribute not allow-listed for *tag*; keep survivors in place."""
    allowed = _ALLOWED_ATTRS.get(tag, _GLOBAL_ATTRS)
    for name, value in list(el.attrib.items()):
        if name not in allowed:
            del el.attrib[name]
            continue

        cleaned = _CONTROL_CHAR_RE.sub("", value)
        if _is_data_uri(cleaned):
            del el.attrib[name]
            continue

        schemes = _URL_SCHEMES.get((tag, name))
        if schemes is not None and not _scheme_allowed(cleaned, schemes):
            del el.attrib[name]
            continue

        cleaned = _DATA_URI_RE.sub("", cleaned)
        if cleaned != value:
            el.set(name, cleaned)


def _clean_children_text(el: lxml.html.HtmlElement) -> None:
    """Normalize el.text and the tails of its children (whitespace-only -> None)."""
    el.text = _clean_text(el.text)
    for child in el:
        child.tail = _clean_text(child.tail)


def _clean_text(text: str | None) -> str | None:
    if not text:
        return None
    text = _CONTROL_CHAR_RE.sub("", text)
    text = _DATA_URI_RE.sub("", text)
    if not text.strip():
        return None
    return text


def _drop(el: lxml.html.HtmlElement) -> None:
    """Remove *el* and its subtree; its tail text stays in the document."""
    parent = el.getparent()
    if parent is None:
        return
    tail = el.tail
    previous = el.getprevious()
    parent.remove(el)
    if tail:
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail


def _is_data_uri(value: str) -> bool:
    return _URL_IGNORED_RE.sub("", value).lower().startswith("data:")


def _scheme_allowed(value: str, schemes: frozenset[str]) -> bool:
    """True if *value* is a relative URL or uses one of *schemes*.

    Protocol-relative URLs (``//host/x``, ``\\\\host\\x``) are rejected.
    """
    compact = _URL_IGNORED_RE.sub("", value)
    if compact[:2] in ("//", "\\\\", "/\\", "\\/"):
        return False
    m = _SCHEME_RE.match(compact)
    if m is None:
        return True
    return m.group(1).lower() in schemes


def clean_title(text: str, max_len: int = 256) -> str:
    """Sanitize a short text field (page titles, URLs shown to the agent).

    - Removes ANSI escape sequences
    - Strips Unicode control characters (zero-width, bidi overrides)
    - Collapses newlines and runs of whitespace into single spaces
    - Truncates to max_len
    """
    if not text:
        return text

    text = _ANSI_ESCAPE_RE.sub("", text)
    text = _CONTROL_CHAR_RE.sub("", text)
    text = re.sub(r"\s+", " ", text).strip()

    if len(text) > max_len:
        text = text[:max_len]

    return text
