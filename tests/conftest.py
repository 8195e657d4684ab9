# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import crawlmcp  # noqa: F401
except ImportError:
    raise ImportError("crawlmcp is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from tests._cdp_helpers import FakeDevTools


@pytest.fixture
def fake_devtools():
    """One open page ("A") serving a small shop document."""
    return FakeDevTools()


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch):
    """Start every test without a server-level DevTools client.

    Tests that call the tools install one with
    ``monkeypatch.setattr(srv, "_client", fake.client())``.
    """
    import crawlmcp.server as srv

    monkeypatch.setattr(srv, "_client", None)
