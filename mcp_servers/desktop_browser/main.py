"""
MCP server exposing a visible Chrome to tool-calling clients.

This module wires the tool registry and resources onto the MCP SDK; the
protocol framing and stdio transport are the SDK's.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.models import InitializationOptions
from pydantic import AnyUrl

from .config import BrowserConfig
from .display_env import resolve_display_environment
from .server.definitions import TOOL_DEFINITIONS
from .server.registry import ToolRegistry, create_default_registry
from .server.resources import CONSOLE_LOGS_URI, list_resources, read_resource
from .server.types import ToolResult
from .session import SessionContext

logger = logging.getLogger("mcp.desktop_browser")

SERVER_NAME = "desktop-browser"
SERVER_VERSION = "0.1.0"

__all__ = ["DesktopBrowserServer", "ResourceChanges", "configure_logging", "main", "to_call_tool_result"]


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout carries the MCP stdio transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


@dataclass(slots=True, frozen=True)
class ResourceChanges:
    """Resource notifications owed to the client after a tool call."""

    console_updated: bool = False
    list_changed: bool = False


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    content: list[types.TextContent | types.ImageContent] = []
    for item in result.content:
        if item.type == "image":
            content.append(types.ImageContent(type="image", data=item.data or "", mimeType=item.mime_type or "image/png"))
        else:
            content.append(types.TextContent(type="text", text=item.text or ""))
    return types.CallToolResult(content=content, isError=result.is_error)


class DesktopBrowserServer:
    """MCP server with registry-based tool dispatch over one session context."""

    def __init__(self, session: SessionContext, registry: ToolRegistry | None = None) -> None:
        self.session = session
        self.registry = registry or create_default_registry()
        self.server = Server(SERVER_NAME)
        self._setup_handlers()

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> tuple[ToolResult, ResourceChanges]:
        """Run one tool call off the event loop and report which resources changed."""
        console_before = len(self.session.console_logs)
        result = await asyncio.to_thread(self.registry.dispatch, name, self.session, arguments)
        changes = ResourceChanges(
            console_updated=len(self.session.console_logs) > console_before,
            list_changed=name == "puppeteer_screenshot" and not result.is_error,
        )
        return result, changes

    async def _notify(self, changes: ResourceChanges) -> None:
        client = self.server.request_context.session
        try:
            if changes.list_changed:
                await client.send_resource_list_changed()
            if changes.console_updated:
                await client.send_resource_updated(AnyUrl(CONSOLE_LOGS_URI))
        except Exception as exc:
            logger.warning("resource_notification_failed: %s", exc)

    def _setup_handlers(self) -> None:
        @self.server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return [
                types.Tool(name=spec["name"], description=spec["description"], inputSchema=spec["inputSchema"])
                for spec in TOOL_DEFINITIONS
            ]

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
            result, changes = await self.execute_tool(name, arguments or {})
            await self._notify(changes)
            return to_call_tool_result(result)

        @self.server.list_resources()
        async def handle_list_resources() -> list[types.Resource]:
            return [
                types.Resource(uri=AnyUrl(info.uri), name=info.name, mimeType=info.mime_type)
                for info in list_resources(self.session)
            ]

        @self.server.read_resource()
        async def handle_read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
            data = await asyncio.to_thread(read_resource, self.session, str(uri))
            return [ReadResourceContents(content=data.content, mime_type=data.mime_type)]

    async def run(self) -> None:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=SERVER_VERSION,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(resources_changed=True),
                        experimental_capabilities={},
                    ),
                ),
            )


def main() -> None:
    """Main entry point for MCP server."""
    config = BrowserConfig.from_env()
    configure_logging(config.log_level)
    env = resolve_display_environment()
    logger.info("X11 environment: DISPLAY=%s XAUTHORITY=%s", env.get("DISPLAY"), env.get("XAUTHORITY"))
    server = DesktopBrowserServer(SessionContext(config, env))
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
