from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Prefer Chromium for better compatibility.
    # IMPORTANT: Avoid snap versions - they ignore --user-data-dir!
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome-beta",
    "/opt/google/chrome/chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    # Snap versions last resort (SingletonLock issues, profile conflicts)
    "/snap/bin/chromium",
]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass
class BrowserConfig:
    binary_path: str
    profile_path: str
    cdp_port: int = 0
    extra_flags: list[str] = field(default_factory=list)
    headless: bool = False
    window_size: str = "1280,900"
    launch_timeout: float = 15.0
    cdp_timeout: float = 30.0
    selector_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("MCP_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "google-chrome"

    @classmethod
    def from_env(cls) -> BrowserConfig:
        profile = expand_path(os.environ.get("MCP_BROWSER_PROFILE", "~/.cache/mcp-desktop-browser/profile"))
        port = int(os.environ.get("MCP_BROWSER_PORT", "0"))
        flags_raw = os.environ.get("MCP_BROWSER_FLAGS", "")
        extra_flags = [flag.strip() for flag in flags_raw.split(",") if flag.strip()]
        return cls(
            binary_path=cls.detect_binary(),
            profile_path=profile,
            cdp_port=port,
            extra_flags=extra_flags,
            headless=os.environ.get("MCP_HEADLESS", "0") == "1",
            window_size=os.environ.get("MCP_WINDOW_SIZE", "1280,900"),
            launch_timeout=_env_float("MCP_LAUNCH_TIMEOUT", 15.0),
            cdp_timeout=_env_float("MCP_CDP_TIMEOUT", 30.0),
            selector_timeout=_env_float("MCP_SELECTOR_TIMEOUT", 30.0),
            log_level=(os.environ.get("MCP_LOG_LEVEL") or "INFO").strip().upper(),
        )
