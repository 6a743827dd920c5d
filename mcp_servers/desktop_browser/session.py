"""Session context: the single browser/page plus the accumulators the server exposes.

One ``SessionContext`` is created at startup and handed to the tool registry and
the resource handlers; nothing here is module-global.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from .browser_session import BrowserSession
from .config import BrowserConfig
from .launcher import BrowserLauncher
from .session_cdp import CdpConnection

logger = logging.getLogger("mcp.desktop_browser.session")

# CDP reports console.warn as "warning"; expose the console method name instead.
_CONSOLE_TYPE_ALIASES = {"warning": "warn"}


def _remote_object_text(arg: dict[str, Any]) -> str:
    if "value" in arg:
        value = arg["value"]
        return value if isinstance(value, str) else json.dumps(value)
    if arg.get("unserializableValue"):
        return str(arg["unserializableValue"])
    if arg.get("type") == "undefined":
        return "undefined"
    return str(arg.get("description") or arg.get("type") or "")


def format_console_message(params: dict[str, Any]) -> str:
    """Render a ``Runtime.consoleAPICalled`` event as ``[type] text``."""
    kind = str(params.get("type") or "log")
    kind = _CONSOLE_TYPE_ALIASES.get(kind, kind)
    text = " ".join(_remote_object_text(arg) for arg in params.get("args") or [] if isinstance(arg, dict))
    return f"[{kind}] {text}"


class SessionContext:
    """Owns the lazily launched browser page, console log and screenshot store."""

    def __init__(
        self,
        config: BrowserConfig,
        env: Mapping[str, str] | None = None,
        *,
        launcher: BrowserLauncher | None = None,
        connect: Callable[..., Any] = CdpConnection,
    ) -> None:
        self.config = config
        self.env = dict(env) if env is not None else None
        self.launcher = launcher or BrowserLauncher(config, self.env)
        self._connect = connect
        self.page: BrowserSession | None = None
        self.console_logs: list[str] = []
        self.screenshots: dict[str, str] = {}
        self._page_lock = threading.Lock()

    def ensure_page(self) -> BrowserSession:
        """Launch the browser on first use and return its first page.

        A browser that launched but could not be attached to is reused on the
        next call instead of being launched again.
        """
        with self._page_lock:
            if self.page is None:
                self.page = self._attach()
            return self.page

    def _attach(self) -> BrowserSession:
        if self.launcher.is_running():
            logger.info("Reusing running browser on CDP port %s", self.launcher.port)
        else:
            result = self.launcher.launch()
            logger.info("%s on CDP port %s (log: %s)", result.message, result.port, result.log_path)
        target = self.launcher.first_page_target()
        conn = self._connect(target["webSocketDebuggerUrl"], timeout=self.config.cdp_timeout)
        conn.set_event_sink(self._on_cdp_event)
        page = BrowserSession(
            conn,
            str(target.get("id") or ""),
            navigation_timeout=self.config.cdp_timeout,
            selector_timeout=self.config.selector_timeout,
        )
        page.enable()
        return page

    def _on_cdp_event(self, event: dict[str, Any]) -> None:
        if event.get("method") != "Runtime.consoleAPICalled":
            return
        params = event.get("params")
        self.console_logs.append(format_console_message(params if isinstance(params, dict) else {}))

    def sync_console(self) -> None:
        """Pull console events that arrived since the last CDP round-trip."""
        if self.page is not None:
            self.page.drain_events()

    def store_screenshot(self, name: str, data_b64: str) -> None:
        self.screenshots[name] = data_b64


__all__ = ["SessionContext", "format_console_message"]
