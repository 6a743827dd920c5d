"""Readable resources: the console log and stored screenshots."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

from ..errors import ResourceNotFoundError

if TYPE_CHECKING:
    from ..session import SessionContext

CONSOLE_LOGS_URI = "console://logs"
SCREENSHOT_SCHEME = "screenshot://"


@dataclass(slots=True, frozen=True)
class ResourceInfo:
    uri: str
    name: str
    mime_type: str


@dataclass(slots=True, frozen=True)
class ResourceData:
    uri: str
    mime_type: str
    content: str | bytes


def screenshot_uri(name: str) -> str:
    return f"{SCREENSHOT_SCHEME}{quote(name, safe='')}"


def list_resources(session: SessionContext) -> list[ResourceInfo]:
    """Console log first, then one entry per stored screenshot."""
    resources = [ResourceInfo(uri=CONSOLE_LOGS_URI, name="Browser console logs", mime_type="text/plain")]
    resources.extend(
        ResourceInfo(uri=screenshot_uri(name), name=f"Screenshot: {name}", mime_type="image/png")
        for name in session.screenshots
    )
    return resources


def read_resource(session: SessionContext, uri: str) -> ResourceData:
    if uri.rstrip("/") == CONSOLE_LOGS_URI:
        session.sync_console()
        return ResourceData(uri=uri, mime_type="text/plain", content="\n".join(session.console_logs))

    if uri.startswith(SCREENSHOT_SCHEME):
        name = unquote(uri[len(SCREENSHOT_SCHEME) :])
        data = session.screenshots.get(name)
        if data is None:
            # URI normalization may append a trailing slash to the name.
            data = session.screenshots.get(name.rstrip("/"))
        if data is not None:
            return ResourceData(uri=uri, mime_type="image/png", content=base64.b64decode(data))

    raise ResourceNotFoundError(f"Resource not found: {uri}")
