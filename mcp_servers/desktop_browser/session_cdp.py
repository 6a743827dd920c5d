"""Raw CDP WebSocket connection (websocket-client, synchronous)."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from typing import Any

import websocket

from .errors import CdpError


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 30.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=min(timeout, 10.0))
        except (OSError, websocket.WebSocketException) as exc:
            raise CdpError(f"Cannot connect to {ws_url}: {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        # Events arrive interleaved with command responses; keep them for later consumers.
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 2000
        self._event_sink: Callable[[dict[str, Any]], None] | None = None
        # One reader at a time: tool calls and console reads run on different threads.
        self._lock = threading.RLock()

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        """Attach an event sink called for every received CDP event."""
        self._event_sink = sink

    def _push_event(self, event: dict[str, Any]) -> None:
        """Store an event for later consumption (bounded)."""
        if not isinstance(event.get("method"), str):
            return

        sink = self._event_sink
        if sink is not None:
            sink(event)

        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        with self._lock:
            for i, ev in enumerate(self._event_queue):
                if ev.get("method") == event_name:
                    self._event_queue.pop(i)
                    params = ev.get("params")
                    return params if isinstance(params, dict) else {}
            return None

    def drain_events(self, *, max_messages: int = 200) -> int:
        """Collect already-buffered CDP events without blocking.

        Console messages are only seen while reading the socket, so this is called
        before the console log is served. Blocks while a command is in flight.
        """
        drained = 0
        with self._lock:
            for _ in range(max(0, int(max_messages))):
                try:
                    self.ws.settimeout(0.0)
                    raw = self.ws.recv()
                except (OSError, websocket.WebSocketException):
                    break

                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    continue

                if isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data:
                    self._push_event(data)
                    drained += 1
                    continue

                # Unexpected non-event; stop to avoid consuming responses.
                break

        return drained

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        with self._lock:
            msg_id = self._next_id
            self._next_id += 1

            msg: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                msg["params"] = params

            try:
                self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
                self.ws.send(json.dumps(msg))
            except (OSError, websocket.WebSocketException) as exc:
                raise CdpError(str(exc)) from exc

            return self._recv_until(msg_id)

    def _recv(self, remaining: float) -> dict[str, Any] | None:
        try:
            # Small socket timeout so our own deadline is enforced reliably.
            self.ws.settimeout(min(0.5, remaining))
            raw = self.ws.recv()
        except (TimeoutError, websocket.WebSocketTimeoutException):
            return None
        except (OSError, websocket.WebSocketException) as exc:
            raise CdpError(str(exc)) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    def _recv_until(self, expected_id: int) -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise CdpError("CDP response timed out")

            data = self._recv(remaining)
            if data is None:
                continue

            if isinstance(data.get("method"), str) and "id" not in data:
                self._push_event(data)
                continue

            if data.get("id") == expected_id:
                if "error" in data:
                    error = data["error"]
                    message = error.get("message") if isinstance(error, dict) else None
                    raise CdpError(str(message or error))
                return data.get("result", {})

    def wait_for_event(self, event_name: str, timeout: float = 30.0) -> dict[str, Any] | None:
        """Wait for specific CDP event."""
        with self._lock:
            queued = self.pop_event(event_name)
            if queued is not None:
                return queued

            deadline = time.time() + timeout
            while True:
                remaining = deadline - time.time()
                if remaining <= 0:
                    return None

                data = self._recv(remaining)
                if data is None or not isinstance(data.get("method"), str) or "id" in data:
                    continue
                if data["method"] == event_name:
                    sink = self._event_sink
                    if sink is not None:
                        sink(data)
                    params = data.get("params")
                    return params if isinstance(params, dict) else {}
                self._push_event(data)


__all__ = ["CdpConnection"]
