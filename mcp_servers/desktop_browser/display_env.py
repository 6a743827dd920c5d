"""Discovery of a usable graphical display environment on Linux.

When the server is started from a background service manager (systemd user
units, cron, an IDE helper) it usually has no ``DISPLAY`` / ``XAUTHORITY`` and a
non-headless Chrome cannot open a window. This module recovers them from a
running desktop-session process:

1. a window manager (``kwin_x11``) owned by the current user;
2. any X session process owned by the current user;
3. the display server itself (``Xorg`` / ``Xwayland``), any owner.

The first match's environment is merged over ours. ``DISPLAY`` falls back to
``:0`` and ``XAUTHORITY`` is probed from well-known cookie locations. The
resolver never raises; the worst case is our own environment plus ``:0``.
"""

from __future__ import annotations

import getpass
import glob
import logging
import os
import re
import subprocess
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

import psutil

logger = logging.getLogger("mcp.desktop_browser.display_env")

DEFAULT_DISPLAY = ":0"


@dataclass(frozen=True, slots=True)
class SessionIndicator:
    """A process-table pattern that hints at a live desktop session."""

    label: str
    pattern: re.Pattern[str]
    current_user_only: bool


SESSION_INDICATORS: tuple[SessionIndicator, ...] = (
    SessionIndicator("window-manager", re.compile(r"kwin_x11", re.IGNORECASE), True),
    SessionIndicator("x-session", re.compile(r"x.*session", re.IGNORECASE), True),
    SessionIndicator("display-server", re.compile(r"/usr/lib/Xorg|Xwayland"), False),
)


@dataclass(frozen=True, slots=True)
class ProcessEntry:
    pid: int
    username: str
    command: str


def current_username() -> str:
    try:
        import pwd

        return pwd.getpwuid(os.geteuid()).pw_name
    except (ImportError, KeyError):
        return getpass.getuser()


def _psutil_processes() -> Iterator[ProcessEntry]:
    for proc in psutil.process_iter(["pid", "name", "username", "cmdline"]):
        info = proc.info
        cmdline = info.get("cmdline") or []
        command = " ".join(cmdline) if cmdline else (info.get("name") or "")
        yield ProcessEntry(pid=int(info["pid"]), username=info.get("username") or "", command=command)


def _ps_processes() -> Iterator[ProcessEntry]:
    out = subprocess.run(["ps", "aux"], capture_output=True, text=True, check=True, timeout=5.0).stdout
    for line in out.splitlines()[1:]:
        # USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND
        parts = line.split(None, 10)
        if len(parts) < 11 or not parts[1].isdigit():
            continue
        yield ProcessEntry(pid=int(parts[1]), username=parts[0], command=parts[10])


def list_processes() -> list[ProcessEntry]:
    """Snapshot the process table (psutil first, ``ps aux`` when psutil cannot)."""
    try:
        return list(_psutil_processes())
    except (psutil.Error, OSError) as exc:
        logger.warning("psutil process scan failed (%s); falling back to ps aux", exc)
    try:
        return list(_ps_processes())
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("ps aux failed: %s", exc)
        return []


def find_session_process(processes: list[ProcessEntry], username: str) -> tuple[ProcessEntry, str] | None:
    """Return the first process matching the indicators in priority order."""
    own_pid = os.getpid()
    for indicator in SESSION_INDICATORS:
        for entry in processes:
            if entry.pid == own_pid:
                continue
            if indicator.current_user_only and entry.username != username:
                continue
            if indicator.pattern.search(entry.command):
                return entry, indicator.label
    return None


def parse_environ_block(raw: bytes) -> dict[str, str]:
    """Parse a NUL-separated ``KEY=VALUE`` block as found in ``/proc/<pid>/environ``."""
    env: dict[str, str] = {}
    for chunk in raw.split(b"\0"):
        if not chunk:
            continue
        key, sep, value = chunk.decode(errors="replace").partition("=")
        if key and sep:
            env[key] = value
    return env


def read_process_environment(pid: int) -> dict[str, str] | None:
    try:
        return dict(psutil.Process(pid).environ())
    except (psutil.Error, OSError) as exc:
        logger.debug("psutil could not read environment of pid %s: %s", pid, exc)
    try:
        return parse_environ_block(Path(f"/proc/{pid}/environ").read_bytes())
    except OSError as exc:
        logger.warning("Cannot read environment of pid %s: %s", pid, exc)
        return None


def xauthority_candidates(env: Mapping[str, str]) -> list[str]:
    candidates = [f"/run/user/{os.getuid()}/gdm/Xauthority"]
    home = env.get("HOME")
    if home:
        candidates.append(os.path.join(home, ".Xauthority"))
    candidates.append("/tmp/.docker.xauth")
    candidates.extend(sorted(glob.glob("/tmp/xauth*")))
    return candidates


def find_xauthority(env: Mapping[str, str]) -> str | None:
    for candidate in xauthority_candidates(env):
        try:
            if Path(candidate).is_file():
                return candidate
        except OSError as exc:
            logger.warning("Skipping XAUTHORITY candidate %s: %s", candidate, exc)
    return None


def resolve_display_environment(
    base_env: Mapping[str, str] | None = None,
    *,
    platform: str | None = None,
) -> dict[str, str]:
    """Build an environment suitable for launching a visible browser window."""
    env = dict(os.environ if base_env is None else base_env)
    if not (platform or sys.platform).startswith("linux"):
        return env

    try:
        username = current_username()
    except OSError as exc:
        logger.warning("Cannot determine current user: %s", exc)
        username = ""

    match = find_session_process(list_processes(), username)
    if match is None:
        logger.info("No desktop session process found; using DISPLAY=%s", DEFAULT_DISPLAY)
        env["DISPLAY"] = DEFAULT_DISPLAY
        return env

    entry, label = match
    logger.info("Found %s process pid=%s (%s)", label, entry.pid, entry.command[:120])
    session_env = read_process_environment(entry.pid)
    if session_env is None:
        env["DISPLAY"] = DEFAULT_DISPLAY
        return env
    env.update(session_env)

    if not env.get("DISPLAY"):
        env["DISPLAY"] = DEFAULT_DISPLAY

    if not env.get("XAUTHORITY"):
        xauthority = find_xauthority(env)
        if xauthority:
            env["XAUTHORITY"] = xauthority
        else:
            logger.warning("No XAUTHORITY file found; the browser may fail to open a window")

    return env


__all__ = [
    "DEFAULT_DISPLAY",
    "SESSION_INDICATORS",
    "ProcessEntry",
    "find_session_process",
    "find_xauthority",
    "list_processes",
    "parse_environ_block",
    "read_process_environment",
    "resolve_display_environment",
]
