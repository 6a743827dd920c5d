"""High-level page operations on top of a CDP connection."""

from __future__ import annotations

import time
from typing import Any, Protocol

from .errors import CdpError, ElementNotFoundError, ScriptError
from .js_helpers import (
    element_center_js,
    element_exists_js,
    element_page_rect_js,
    evaluate_with_console_js,
    focus_js,
    select_js,
)


# JavaScript `undefined`; `null` maps to None.
UNDEFINED = object()


class Connection(Protocol):
    timeout: float

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def pop_event(self, event_name: str) -> dict[str, Any] | None: ...

    def wait_for_event(self, event_name: str, timeout: float = 30.0) -> dict[str, Any] | None: ...

    def drain_events(self, *, max_messages: int = 200) -> int: ...


class BrowserSession:
    """
    High-level browser session for a single page target.

    Wraps CdpConnection with the operations exposed as tools.
    """

    def __init__(
        self,
        connection: Connection,
        tab_id: str,
        *,
        navigation_timeout: float = 30.0,
        selector_timeout: float = 30.0,
    ) -> None:
        self.conn = connection
        self.tab_id = tab_id
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout
        self._enabled = False

    def enable(self) -> None:
        """Enable Page (load events) and Runtime (console events, evaluation)."""
        if self._enabled:
            return
        self.conn.send("Page.enable")
        self.conn.send("Runtime.enable")
        self._enabled = True

    def drain_events(self) -> int:
        return self.conn.drain_events()

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, url: str) -> str:
        """Navigate to URL and wait for the load event."""
        while self.conn.pop_event("Page.loadEventFired") is not None:
            pass
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            raise CdpError(f"{error_text} at {url}")
        # Same-document navigations (fragment changes) carry no loaderId and fire no load event.
        if result.get("loaderId"):
            loaded = self.conn.wait_for_event("Page.loadEventFired", timeout=self.navigation_timeout)
            if loaded is None:
                raise CdpError(f"Navigation timeout of {int(self.navigation_timeout * 1000)} ms exceeded")
        return url

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def eval_js(self, expression: str) -> Any:
        """Evaluate JavaScript and return its value (undefined/null map to None)."""
        result = self.conn.send(
            "Runtime.evaluate",
            {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
            },
        )
        details = result.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            message = exception.get("description") or details.get("text") or "Uncaught exception"
            raise ScriptError(str(message).splitlines()[0])

        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def evaluate_with_console(self, script: str) -> tuple[Any, list[str]]:
        """Run a user script, returning its result and the console lines it produced."""
        payload = self.eval_js(evaluate_with_console_js(script)) or {}
        logs = [str(line) for line in payload.get("logs") or []]
        if payload.get("isUndefined"):
            return UNDEFINED, logs
        return payload.get("result"), logs

    # ─────────────────────────────────────────────────────────────────────────
    # Elements
    # ─────────────────────────────────────────────────────────────────────────

    def wait_for_selector(self, selector: str, timeout: float | None = None) -> None:
        """Poll until an element matching ``selector`` is attached to the DOM."""
        limit = self.selector_timeout if timeout is None else timeout
        deadline = time.time() + limit
        while True:
            if self.eval_js(element_exists_js(selector)):
                return
            if time.time() >= deadline:
                raise ElementNotFoundError(
                    f"Waiting for selector `{selector}` failed: timeout {int(limit * 1000)}ms exceeded"
                )
            time.sleep(0.1)

    def _element_center(self, selector: str) -> tuple[float, float]:
        info = self.eval_js(element_center_js(selector))
        if not info:
            raise ElementNotFoundError(f"No element found for selector: {selector}")
        if info.get("hidden"):
            raise ElementNotFoundError(f"Node is either not visible or not an HTMLElement: {selector}")
        return float(info["x"]), float(info["y"])

    def _mouse_event(self, event_type: str, x: float, y: float, button: str = "none", click_count: int = 0) -> None:
        self.conn.send(
            "Input.dispatchMouseEvent",
            {
                "type": event_type,
                "x": x,
                "y": y,
                "button": button,
                "clickCount": click_count,
            },
        )

    def click(self, selector: str) -> None:
        """Scroll the element into view and click its center."""
        x, y = self._element_center(selector)
        self._mouse_event("mouseMoved", x, y)
        self._mouse_event("mousePressed", x, y, "left", 1)
        self._mouse_event("mouseReleased", x, y, "left", 1)

    def hover(self, selector: str) -> None:
        x, y = self._element_center(selector)
        self._mouse_event("mouseMoved", x, y)

    def type_text(self, selector: str, text: str) -> None:
        """Focus the element and type ``text`` into it."""
        if not self.eval_js(focus_js(selector)):
            raise ElementNotFoundError(f"No element found for selector: {selector}")
        if not text:
            return
        try:
            self.conn.send("Input.insertText", {"text": text})
        except CdpError:
            for char in text:
                self.conn.send("Input.dispatchKeyEvent", {"type": "char", "text": char})

    def select(self, selector: str, value: str) -> None:
        """Select the option with ``value`` in a ``<select>`` element."""
        info = self.eval_js(select_js(selector, value)) or {}
        error = info.get("error")
        if error == "notFound":
            raise ElementNotFoundError(f"No element found for selector: {selector}")
        if error == "notSelect":
            raise CdpError("Element is not a <select> element.")

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    def set_viewport(self, width: int, height: int) -> None:
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": int(width), "height": int(height), "deviceScaleFactor": 1, "mobile": False},
        )

    def screenshot(self, selector: str | None = None) -> str | None:
        """Capture a PNG as base64; ``None`` when ``selector`` matches nothing."""
        params: dict[str, Any] = {"format": "png", "fromSurface": True}
        if selector:
            rect = self.eval_js(element_page_rect_js(selector))
            if not rect:
                return None
            params["clip"] = {
                "x": float(rect["x"]),
                "y": float(rect["y"]),
                "width": float(rect["width"]),
                "height": float(rect["height"]),
                "scale": 1,
            }
            params["captureBeyondViewport"] = True
        result = self.conn.send("Page.captureScreenshot", params)
        return result.get("data") or ""


__all__ = ["UNDEFINED", "BrowserSession", "Connection"]
