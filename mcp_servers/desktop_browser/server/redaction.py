"""Redaction of tool arguments for logging.

Prefers safety over fidelity: obvious secrets are replaced and long payloads
(scripts, typed text) are truncated before they reach the log.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_SENSITIVE_SUBSTRINGS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "session",
    "jwt",
    "bearer",
    "api-key",
    "api_key",
    "apikey",
    "otp",
    "cvv",
)

# Avoid false-positives like "author"/"authorship" while still protecting obvious keys.
_SENSITIVE_EXACT = {"auth", "pass", "pin"}

_MAX_LOGGED_CHARS = 200


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    if not k:
        return False
    if k in _SENSITIVE_EXACT:
        return True
    return any(s in k for s in _SENSITIVE_SUBSTRINGS)


def _redacted_summary(value: Any) -> str:
    if isinstance(value, str):
        return f"<redacted str len={len(value)}>"
    return "<redacted>"


def _truncate(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _MAX_LOGGED_CHARS:
        return f"{value[:_MAX_LOGGED_CHARS]}... <{len(value)} chars>"
    return value


def _redact_pairs(raw: str) -> str:
    if not raw:
        return raw
    pairs = parse_qsl(raw, keep_blank_values=True)
    if not any(is_sensitive_key(k) for k, _ in pairs):
        return raw
    return urlencode([(k, "<redacted>" if is_sensitive_key(k) else v) for k, v in pairs])


def redact_url(url: str) -> str:
    """Drop userinfo and redact sensitive query or fragment parameters; other URLs pass unchanged."""
    if not isinstance(url, str) or not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc.split("@", 1)[1] if "@" in parts.netloc else parts.netloc
    query = _redact_pairs(parts.query)
    # OAuth implicit flows put tokens in the fragment.
    fragment = _redact_pairs(parts.fragment)

    if netloc == parts.netloc and query == parts.query and fragment == parts.fragment:
        return url
    return urlunsplit((parts.scheme, netloc, parts.path, query, fragment))


def redact_tool_arguments(tool: str, args: dict[str, Any]) -> dict[str, Any]:
    """Redact tool arguments for safe logging."""
    out: dict[str, Any] = {}
    selector = str(args.get("selector") or "")
    for key, value in (args or {}).items():
        if is_sensitive_key(key):
            out[key] = _redacted_summary(value)
        elif key == "value" and tool == "puppeteer_fill" and is_sensitive_key(selector):
            # e.g. selector="#password" or "input[name=api_token]"
            out[key] = _redacted_summary(value)
        elif key == "url" and isinstance(value, str):
            out[key] = redact_url(value)
        else:
            out[key] = _truncate(value)
    return out
