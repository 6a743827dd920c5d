from __future__ import annotations


class CdpError(Exception):
    """CDP transport, protocol or timeout failure."""


class ElementNotFoundError(CdpError):
    pass


class ScriptError(CdpError):
    """The page raised while evaluating a script."""


class BrowserLaunchError(RuntimeError):
    def __init__(self, message: str, *, log_tail: str | None = None) -> None:
        super().__init__(message)
        self.log_tail = log_tail


class ResourceNotFoundError(LookupError):
    pass
