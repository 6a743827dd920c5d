"""
Tool handlers: one browser primitive per tool.

All handlers follow the signature: (session, arguments) -> ToolResult.
Primitive faults are turned into error results here; a failing browser launch
is not a primitive fault and propagates from the registry.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..browser_session import UNDEFINED
from ..errors import CdpError
from .types import HandlerFunc, ToolResult

if TYPE_CHECKING:
    from ..session import SessionContext

logger = logging.getLogger("mcp.desktop_browser.handlers")

DEFAULT_SCREENSHOT_WIDTH = 800
DEFAULT_SCREENSHOT_HEIGHT = 600


def _fault(message: str, exc: Exception) -> ToolResult:
    logger.info("tool_error %s: %s", message, exc)
    return ToolResult.error(f"{message}: {exc}")


def handle_navigate(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    url = args["url"]
    page = session.ensure_page()
    try:
        page.navigate(url)
    except (CdpError, OSError) as e:
        return _fault(f"Failed to navigate to {url}", e)
    return ToolResult.text(f"Navigated to {url}")


def _dimension(raw: Any, default: int) -> int:
    if raw is None:
        return default
    return int(raw)


def handle_screenshot(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    name = args["name"]
    selector = args.get("selector")
    page = session.ensure_page()
    try:
        width = _dimension(args.get("width"), DEFAULT_SCREENSHOT_WIDTH)
        height = _dimension(args.get("height"), DEFAULT_SCREENSHOT_HEIGHT)
        page.set_viewport(width, height)
        data = page.screenshot(selector)
    except (CdpError, OSError, ValueError, TypeError) as e:
        return _fault(f"Failed to take screenshot {name}", e)

    if not data:
        return ToolResult.error(f"Element not found: {selector}" if selector else "Screenshot failed")

    session.store_screenshot(name, data)
    return ToolResult.with_image(f"Screenshot '{name}' taken at {width}x{height}", data)


def handle_click(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    selector = args["selector"]
    page = session.ensure_page()
    try:
        page.click(selector)
    except (CdpError, OSError) as e:
        return _fault(f"Failed to click {selector}", e)
    return ToolResult.text(f"Clicked: {selector}")


def handle_fill(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    selector = args["selector"]
    value = args["value"]
    page = session.ensure_page()
    try:
        page.wait_for_selector(selector)
        page.type_text(selector, value)
    except (CdpError, OSError) as e:
        return _fault(f"Failed to fill {selector}", e)
    return ToolResult.text(f"Filled {selector} with: {value}")


def handle_select(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    selector = args["selector"]
    value = args["value"]
    page = session.ensure_page()
    try:
        page.wait_for_selector(selector)
        page.select(selector, value)
    except (CdpError, OSError) as e:
        return _fault(f"Failed to select {selector}", e)
    return ToolResult.text(f"Selected {selector} with: {value}")


def handle_hover(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    selector = args["selector"]
    page = session.ensure_page()
    try:
        page.wait_for_selector(selector)
        page.hover(selector)
    except (CdpError, OSError) as e:
        return _fault(f"Failed to hover {selector}", e)
    return ToolResult.text(f"Hovered {selector}")


def handle_evaluate(session: SessionContext, args: dict[str, Any]) -> ToolResult:
    page = session.ensure_page()
    try:
        result, logs = page.evaluate_with_console(args["script"])
    except (CdpError, OSError) as e:
        return _fault("Script execution failed", e)
    rendered = "undefined" if result is UNDEFINED else json.dumps(result, indent=2, ensure_ascii=False)
    return ToolResult.text(f"Execution result:\n{rendered}\n\nConsole output:\n" + "\n".join(logs))


TOOL_HANDLERS: dict[str, HandlerFunc] = {
    "puppeteer_navigate": handle_navigate,
    "puppeteer_screenshot": handle_screenshot,
    "puppeteer_click": handle_click,
    "puppeteer_fill": handle_fill,
    "puppeteer_select": handle_select,
    "puppeteer_hover": handle_hover,
    "puppeteer_evaluate": handle_evaluate,
}
