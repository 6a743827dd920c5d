from __future__ import annotations

import contextlib
import json
import logging
import socket
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.error import URLError
from urllib.request import Request, urlopen

from .config import BrowserConfig, expand_path
from .errors import BrowserLaunchError

logger = logging.getLogger("mcp.desktop_browser.launcher")


@dataclass
class LaunchResult:
    port: int
    message: str
    log_path: str | None = None


def _tail_text(path: str | None, max_chars: int = 4000) -> str | None:
    if not path:
        return None
    try:
        raw = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    return raw[-max_chars:]


class BrowserLauncher:
    """Starts a visible Chrome with remote debugging, inside a given environment."""

    def __init__(self, config: BrowserConfig, env: Mapping[str, str] | None = None) -> None:
        self.config = config
        self.env = dict(env) if env is not None else None
        self.process: subprocess.Popen | None = None
        self.port: int = config.cdp_port

    def build_launch_command(self, port: int) -> list[str]:
        flags = [
            f"--remote-debugging-port={port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        else:
            flags.append(f"--window-size={self.config.window_size}")
        flags.extend(self.config.extra_flags)
        return [self.config.binary_path, *flags]

    @staticmethod
    def find_free_port() -> int:
        with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
            s.bind(("127.0.0.1", 0))
            return s.getsockname()[1]

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        endpoint = f"http://127.0.0.1:{self.port}/json/version"
        try:
            with urlopen(endpoint, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, URLError):
            return False

    def is_running(self) -> bool:
        """True when the launched process is still alive and serving CDP."""
        return self.process is not None and self.process.poll() is None and self.cdp_ready()

    def _make_log_path(self) -> str:
        log_dir = Path(expand_path(self.config.profile_path)).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        return str(log_dir / f"chrome_launch_{int(time.time() * 1000)}.log")

    def launch(self) -> LaunchResult:
        """Start Chrome and wait for its CDP endpoint."""
        self.port = self.config.cdp_port or self.find_free_port()
        Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)
        cmd = self.build_launch_command(self.port)

        log_path: str | None = None
        try:
            log_path = self._make_log_path()
        except OSError as exc:
            logger.warning("Cannot create Chrome log file: %s", exc)

        logger.info("Launching browser: %s", " ".join(cmd))
        try:
            if log_path:
                with open(log_path, "ab", buffering=0) as log_fh:
                    self.process = subprocess.Popen(
                        cmd,
                        env=self.env,
                        stdin=subprocess.DEVNULL,
                        stdout=log_fh,
                        stderr=log_fh,
                        start_new_session=True,
                    )
            else:
                self.process = subprocess.Popen(
                    cmd,
                    env=self.env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )
        except OSError as exc:
            raise BrowserLaunchError(f"Failed to start {cmd[0]}: {exc}") from exc

        deadline = time.time() + self.config.launch_timeout
        while time.time() < deadline:
            if self.cdp_ready():
                return LaunchResult(self.port, "Chrome launched", log_path=log_path)
            if self.process.poll() is not None:
                raise BrowserLaunchError(
                    f"Chrome exited with code {self.process.returncode} before CDP became available",
                    log_tail=_tail_text(log_path),
                )
            time.sleep(0.1)
        raise BrowserLaunchError("Chrome launch timed out", log_tail=_tail_text(log_path))

    def list_targets(self) -> list[dict]:
        endpoint = f"http://127.0.0.1:{self.port}/json/list"
        try:
            req = Request(endpoint, headers={"User-Agent": "mcp-desktop-browser"})
            with urlopen(req, timeout=2.0) as resp:
                return json.loads(resp.read().decode())
        except (OSError, URLError, ValueError) as exc:
            raise BrowserLaunchError(f"CDP not reachable on port {self.port}: {exc}") from exc

    def first_page_target(self) -> dict:
        """Return the first ``page`` target, the equivalent of ``browser.pages()[0]``."""
        for target in self.list_targets():
            if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
                return target
        raise BrowserLaunchError("No page target available in the launched browser")
