from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from mcp_servers.desktop_browser.browser_session import UNDEFINED
from mcp_servers.desktop_browser.config import BrowserConfig
from mcp_servers.desktop_browser.errors import BrowserLaunchError, CdpError, ElementNotFoundError
from mcp_servers.desktop_browser.launcher import LaunchResult
from mcp_servers.desktop_browser.server.definitions import TOOL_DEFINITIONS
from mcp_servers.desktop_browser.server.registry import create_default_registry
from mcp_servers.desktop_browser.session import SessionContext, format_console_message

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


class FakePage:
    """Records primitive calls; ``fail`` maps primitive name -> exception to raise."""

    def __init__(self, fail: dict[str, Exception] | None = None) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail = fail or {}
        self.screenshot_data: str | None = PNG_B64
        self.eval_result: Any = {"ok": True}
        self.eval_logs: list[str] = ["[log] hello"]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def navigate(self, url: str) -> str:
        self._record("navigate", url)
        return url

    def wait_for_selector(self, selector: str, timeout: float | None = None) -> None:
        self._record("wait_for_selector", selector)

    def click(self, selector: str) -> None:
        self._record("click", selector)

    def hover(self, selector: str) -> None:
        self._record("hover", selector)

    def type_text(self, selector: str, text: str) -> None:
        self._record("type_text", selector, text)

    def select(self, selector: str, value: str) -> None:
        self._record("select", selector, value)

    def set_viewport(self, width: int, height: int) -> None:
        self._record("set_viewport", width, height)

    def screenshot(self, selector: str | None = None) -> str | None:
        self._record("screenshot", selector)
        return self.screenshot_data

    def evaluate_with_console(self, script: str) -> tuple[Any, list[str]]:
        self._record("evaluate", script)
        return self.eval_result, self.eval_logs

    def drain_events(self) -> int:
        return 0

    def primitive_names(self) -> list[str]:
        return [name for name, _ in self.calls if name not in {"wait_for_selector", "set_viewport"}]


class FakeLauncher:
    def __init__(self, error: Exception | None = None) -> None:
        self.launches = 0
        self.error = error
        self.port = 9333
        self.alive = False

    def is_running(self) -> bool:
        return self.alive

    def launch(self) -> LaunchResult:
        self.launches += 1
        if self.error is not None:
            raise self.error
        self.alive = True
        return LaunchResult(9333, "Chrome launched")

    def first_page_target(self) -> dict:
        return {"id": "T1", "type": "page", "webSocketDebuggerUrl": "ws://127.0.0.1:9333/devtools/page/T1"}


class FakeConn:
    def __init__(self, ws_url: str, timeout: float = 30.0) -> None:
        self.ws_url = ws_url
        self.timeout = timeout
        self.sink = None
        self.sent: list[str] = []

    def set_event_sink(self, sink) -> None:  # noqa: ANN001
        self.sink = sink

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:  # noqa: ARG002
        self.sent.append(method)
        return {}

    def drain_events(self, *, max_messages: int = 200) -> int:  # noqa: ARG002
        return 0


@pytest.fixture
def config(tmp_path: Path) -> BrowserConfig:
    return BrowserConfig(binary_path="/usr/bin/chrome", profile_path=str(tmp_path / "profile"))


def _session(config: BrowserConfig, page: FakePage | None = None, launcher: FakeLauncher | None = None) -> SessionContext:
    ctx = SessionContext(config, {"DISPLAY": ":0"}, launcher=launcher or FakeLauncher())
    ctx.page = page  # type: ignore[assignment]
    return ctx


CASES = [
    ("puppeteer_navigate", {"url": "https://example.com"}, "navigate", "Navigated to https://example.com"),
    ("puppeteer_click", {"selector": "#go"}, "click", "Clicked: #go"),
    ("puppeteer_fill", {"selector": "#q", "value": "cats"}, "type_text", "Filled #q with: cats"),
    ("puppeteer_select", {"selector": "#color", "value": "red"}, "select", "Selected #color with: red"),
    ("puppeteer_hover", {"selector": "#menu"}, "hover", "Hovered #menu"),
    ("puppeteer_evaluate", {"script": "1 + 1"}, "evaluate", "Execution result:"),
    ("puppeteer_screenshot", {"name": "home"}, "screenshot", "Screenshot 'home' taken at 800x600"),
]


def test_registry_covers_every_declared_tool() -> None:
    registry = create_default_registry()
    assert sorted(registry.tool_names) == sorted(t["name"] for t in TOOL_DEFINITIONS)
    assert len(registry.tool_names) == 7


@pytest.mark.parametrize(("tool", "args", "primitive", "text"), CASES)
def test_each_tool_invokes_exactly_one_primitive(
    config: BrowserConfig, tool: str, args: dict[str, Any], primitive: str, text: str
) -> None:
    page = FakePage()
    result = create_default_registry().dispatch(tool, _session(config, page), args)

    assert not result.is_error
    assert page.primitive_names() == [primitive]
    assert (result.content[0].text or "").startswith(text)


@pytest.mark.parametrize(("tool", "args", "primitive", "text"), CASES)
def test_primitive_faults_become_error_results(
    config: BrowserConfig, tool: str, args: dict[str, Any], primitive: str, text: str
) -> None:
    page = FakePage(fail={primitive: CdpError("boom: target crashed")})
    result = create_default_registry().dispatch(tool, _session(config, page), args)

    assert result.is_error
    assert "boom: target crashed" in (result.content[0].text or "")


def test_unexpected_exceptions_are_still_reported(config: BrowserConfig) -> None:
    page = FakePage(fail={"click": RuntimeError("weird")})
    result = create_default_registry().dispatch("puppeteer_click", _session(config, page), {"selector": "#x"})
    assert result.is_error
    assert "weird" in (result.content[0].text or "")


def test_unknown_tool_is_an_error_without_launching(config: BrowserConfig) -> None:
    launcher = FakeLauncher(error=AssertionError("must not launch"))
    ctx = _session(config, None, launcher)

    result = create_default_registry().dispatch("puppeteer_teleport", ctx, {})

    assert result.is_error
    assert result.content[0].text == "Unknown tool: puppeteer_teleport"
    assert launcher.launches == 0
    assert ctx.page is None


def test_launch_failure_propagates(config: BrowserConfig) -> None:
    ctx = _session(config, None, FakeLauncher(error=BrowserLaunchError("Chrome launch timed out")))
    with pytest.raises(BrowserLaunchError):
        create_default_registry().dispatch("puppeteer_navigate", ctx, {"url": "https://example.com"})


def test_fill_waits_for_selector_before_typing(config: BrowserConfig) -> None:
    page = FakePage()
    create_default_registry().dispatch("puppeteer_fill", _session(config, page), {"selector": "#q", "value": "x"})
    assert [name for name, _ in page.calls] == ["wait_for_selector", "type_text"]


def test_fill_selector_timeout_is_reported(config: BrowserConfig) -> None:
    page = FakePage(fail={"wait_for_selector": ElementNotFoundError("Waiting for selector `#q` failed")})
    result = create_default_registry().dispatch(
        "puppeteer_fill", _session(config, page), {"selector": "#q", "value": "x"}
    )
    assert result.is_error
    assert result.content[0].text == "Failed to fill #q: Waiting for selector `#q` failed"
    assert page.primitive_names() == []


def test_screenshot_stores_payload_and_returns_image(config: BrowserConfig) -> None:
    page = FakePage()
    ctx = _session(config, page)

    result = create_default_registry().dispatch(
        "puppeteer_screenshot", ctx, {"name": "wide", "width": 1024, "height": 768}
    )

    assert not result.is_error
    assert result.content[0].text == "Screenshot 'wide' taken at 1024x768"
    assert result.content[1].type == "image"
    assert result.content[1].data == PNG_B64
    assert result.content[1].mime_type == "image/png"
    assert ("set_viewport", (1024, 768)) in page.calls
    assert ctx.screenshots == {"wide": PNG_B64}


def test_screenshot_of_missing_element(config: BrowserConfig) -> None:
    page = FakePage()
    page.screenshot_data = None
    ctx = _session(config, page)

    result = create_default_registry().dispatch("puppeteer_screenshot", ctx, {"name": "logo", "selector": "#logo"})

    assert result.is_error
    assert result.content[0].text == "Element not found: #logo"
    assert ctx.screenshots == {}


def test_empty_screenshot_is_a_failure(config: BrowserConfig) -> None:
    page = FakePage()
    page.screenshot_data = ""
    result = create_default_registry().dispatch("puppeteer_screenshot", _session(config, page), {"name": "x"})
    assert result.is_error
    assert result.content[0].text == "Screenshot failed"


def test_evaluate_renders_result_and_console(config: BrowserConfig) -> None:
    page = FakePage()
    page.eval_result = {"title": "Example"}
    page.eval_logs = ["[log] a", "[warn] b"]

    result = create_default_registry().dispatch("puppeteer_evaluate", _session(config, page), {"script": "x"})

    assert result.content[0].text == (
        'Execution result:\n{\n  "title": "Example"\n}\n\nConsole output:\n[log] a\n[warn] b'
    )


def test_ensure_page_launches_once_and_collects_console(config: BrowserConfig) -> None:
    launcher = FakeLauncher()
    conns: list[FakeConn] = []

    def _connect(ws_url: str, timeout: float = 30.0) -> FakeConn:
        conn = FakeConn(ws_url, timeout)
        conns.append(conn)
        return conn

    ctx = SessionContext(config, {"DISPLAY": ":0"}, launcher=launcher, connect=_connect)  # type: ignore[arg-type]
    first = ctx.ensure_page()
    second = ctx.ensure_page()

    assert first is second
    assert launcher.launches == 1
    assert len(conns) == 1
    assert conns[0].ws_url.endswith("/T1")
    assert conns[0].sent == ["Page.enable", "Runtime.enable"]

    sink = conns[0].sink
    assert sink is not None
    sink({"method": "Runtime.consoleAPICalled", "params": {"type": "warning", "args": [{"type": "string", "value": "careful"}]}})
    sink({"method": "Page.loadEventFired", "params": {}})
    sink({"method": "Runtime.consoleAPICalled", "params": {"type": "log", "args": [{"type": "number", "value": 42}]}})
    assert ctx.console_logs == ["[warn] careful", "[log] 42"]


def test_format_console_message_joins_arguments() -> None:
    params = {
        "type": "error",
        "args": [
            {"type": "string", "value": "failed"},
            {"type": "object", "subtype": "error", "description": "Error: x"},
            {"type": "undefined"},
            {"type": "number", "unserializableValue": "NaN"},
        ],
    }
    assert format_console_message(params) == "[error] failed Error: x undefined NaN"


def test_evaluate_renders_undefined_result(config: BrowserConfig) -> None:
    page = FakePage()
    page.eval_result = UNDEFINED
    page.eval_logs = []

    result = create_default_registry().dispatch("puppeteer_evaluate", _session(config, page), {"script": "void 0"})

    assert result.content[0].text == "Execution result:\nundefined\n\nConsole output:\n"


def test_failed_attach_reuses_running_browser(config: BrowserConfig) -> None:
    launcher = FakeLauncher()
    attempts: list[str] = []

    def _refuse(ws_url: str, timeout: float = 30.0) -> FakeConn:
        attempts.append(ws_url)
        raise CdpError("Cannot connect to page")

    ctx = SessionContext(config, {"DISPLAY": ":0"}, launcher=launcher, connect=_refuse)  # type: ignore[arg-type]
    for _ in range(3):
        with pytest.raises(CdpError):
            ctx.ensure_page()

    assert launcher.launches == 1
    assert len(attempts) == 3
    assert ctx.page is None


def test_dead_browser_is_launched_again(config: BrowserConfig) -> None:
    launcher = FakeLauncher()
    calls = 0

    def _flaky(ws_url: str, timeout: float = 30.0) -> FakeConn:
        nonlocal calls
        calls += 1
        if calls == 1:
            launcher.alive = False
            raise CdpError("Chrome exited")
        return FakeConn(ws_url, timeout)

    ctx = SessionContext(config, {"DISPLAY": ":0"}, launcher=launcher, connect=_flaky)  # type: ignore[arg-type]
    with pytest.raises(CdpError):
        ctx.ensure_page()
    ctx.ensure_page()

    assert launcher.launches == 2
    assert ctx.page is not None
