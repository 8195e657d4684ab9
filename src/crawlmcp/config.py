# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""DevTools endpoint configuration.

Resolved once at startup (env vars, then CLI overrides) and threaded into
DevToolsClient. Read-only afterwards.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9222
DEFAULT_TIMEOUT = 10.0  # seconds, HTTP listing + websocket handshake


@dataclass(frozen=True, slots=True)
class DevToolsConfig:
    """Where the Chrome remote-debugging endpoint listens."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def list_url(self) -> str:
        return f"{self.base_url}/json/list"

    def page_websocket_url(self, target_id: str) -> str:
        """Fallback websocket URL when /json/list omits webSocketDebuggerUrl."""
        return f"ws://{self.host}:{self.port}/devtools/page/{target_id}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DevToolsConfig:
        """Build from CDP_HOST / CDP_PORT / CDP_TIMEOUT. Bad numbers fall back to defaults."""
        env = os.environ if environ is None else environ

        host = env.get("CDP_HOST", "").strip() or DEFAULT_HOST

        port = DEFAULT_PORT
        env_port = env.get("CDP_PORT", "").strip()
        if env_port:
            try:
                port = int(env_port, 10)
            except ValueError:
                logger.warning("Ignoring invalid CDP_PORT=%r, using %d", env_port, DEFAULT_PORT)
            else:
                if not 0 < port < 65536:
                    logger.warning("CDP_PORT=%d out of range, using %d", port, DEFAULT_PORT)
                    port = DEFAULT_PORT

        timeout = DEFAULT_TIMEOUT
        env_timeout = env.get("CDP_TIMEOUT", "").strip()
        if env_timeout:
            try:
                timeout = float(env_timeout)
            except ValueError:
                logger.warning("Ignoring invalid CDP_TIMEOUT=%r", env_timeout)
            else:
                if timeout <= 0:
                    logger.warning("CDP_TIMEOUT must be positive, using %.1f", DEFAULT_TIMEOUT)
                    timeout = DEFAULT_TIMEOUT

        return cls(host=host, port=port, timeout=timeout)
