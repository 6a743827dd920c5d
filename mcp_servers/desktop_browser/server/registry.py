"""
Tool registry with dispatch table for the MCP server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .handlers import TOOL_HANDLERS
from .redaction import redact_tool_arguments
from .types import HandlerFunc, ToolResult

if TYPE_CHECKING:
    from ..session import SessionContext

logger = logging.getLogger("mcp.desktop_browser.registry")


class ToolRegistry:
    """Registry for tool handlers with lazy browser startup."""

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerFunc] = {}

    def register_many(self, handlers: dict[str, HandlerFunc]) -> None:
        """Register multiple handlers at once."""
        self._handlers.update(handlers)

    def dispatch(self, name: str, session: SessionContext, arguments: dict[str, Any]) -> ToolResult:
        """
        Dispatch a tool call to its handler.

        Unknown names are reported as error results before anything touches the
        browser. The browser is started on the first call; a launch failure
        propagates to the caller.
        """
        logger.info("tool=%s args=%s", name, redact_tool_arguments(name, arguments))

        handler = self._handlers.get(name)
        if handler is None:
            return ToolResult.error(f"Unknown tool: {name}")

        session.ensure_page()

        try:
            return handler(session, arguments)
        except Exception as exc:
            logger.exception("tool_call_failed tool=%s", name)
            return ToolResult.error(str(exc))

    @property
    def tool_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._handlers.keys())


def create_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_many(TOOL_HANDLERS)
    return registry
