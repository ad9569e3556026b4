"""Scripted backend and virtual clock shared by the test modules."""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from designscout.gateway.client import LOCATION_SCRIPT
from designscout.gateway.errors import BackendError
from designscout.suggestions.engine import PROBE_SCRIPT

BASE_URL = "https://mobbin.com"
RESULTS_URL = "https://mobbin.com/search/apps/ios?content_type=apps&q=banking"
DETAIL_URLS = [
    f"https://mobbin.com/screens/{i:08x}-aaaa-bbbb-cccc-{i:012x}" for i in range(1, 11)
]
AUTHENTICATED_TEXT = "Discover Apps Flows Screens Profile Settings Log out"
ANONYMOUS_TEXT = "Discover real-world design inspiration. Log in Join for free"

_CELL_INDEX = re.compile(r"const index = (\d+);")


class FakeClock:
    """Virtual time: ``sleep`` records the delay and advances ``monotonic``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedBackend:
    """
    In-memory stand-in for the remote automation service.

    Keeps a tiny page model (current URL, visible text, an open detail view)
    and answers the gateway's page scripts from it. Failures can be queued per
    tool, made permanent per tool, or tied to specific selectors.
    """

    def __init__(self) -> None:
        self.connected = False
        self.connect_count = 0
        self.closed = False
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.listeners: list[Callable[[str, dict[str, Any]], None]] = []

        self.queued_failures: dict[str, list[str]] = {}
        self.broken_tools: dict[str, str] = {}
        self.missing_selectors: set[str] = set()

        self.current_url = ""
        self.visible_text = AUTHENTICATED_TEXT
        self.results_url = RESULTS_URL
        self.detail_urls = list(DETAIL_URLS)
        self.title_html = "<h1>Chase Mobile Banking</h1>"
        self.suggestions: list[dict[str, Any]] = []
        self.discovery_raw: str | None = None
        self.probe_result: dict[str, Any] | None = None

        self.open_cell_errors: dict[int, str] = {}
        self.open_cell_missing: set[int] = set()
        self.open_cell_no_navigation: set[int] = set()
        self.escape_presses_to_close = 1
        self.location_reads_before_detail = 0

        self._return_url: str | None = None
        self._escapes_left = 0
        self._pending_detail: str | None = None
        self._reads_left = 0

    # RemoteBackend protocol

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connected = True
        self.connect_count += 1

    async def aclose(self) -> None:
        self.connected = False
        self.closed = True

    async def invoke(self, tool_name: str, args: dict[str, Any]) -> Any:
        self.calls.append((tool_name, dict(args)))

        queued = self.queued_failures.get(tool_name)
        if queued:
            raise BackendError(queued.pop(0), tool_name)
        if tool_name in self.broken_tools:
            raise BackendError(self.broken_tools[tool_name], tool_name)
        selector = args.get("selector")
        if selector in self.missing_selectors:
            raise BackendError(f"Element not found: {selector}", tool_name)

        for listener in self.listeners:
            listener(tool_name, args)

        handler = getattr(self, f"_handle_{tool_name.removeprefix('playwright_')}", None)
        if handler is None:
            return _text(f"{tool_name} ok")
        return handler(args)

    # Scripting helpers

    def fail(self, tool_name: str, *messages: str) -> None:
        """Queue one failure per message for the next calls of ``tool_name``."""
        self.queued_failures.setdefault(tool_name, []).extend(messages)

    def calls_to(self, tool_name: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == tool_name]

    def tool_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def key_presses(self, key: str) -> int:
        return sum(1 for args in self.calls_to("playwright_press_key") if args.get("key") == key)

    # Tool handlers

    def _handle_navigate(self, args: dict[str, Any]) -> Any:
        self.current_url = args["url"]
        self._return_url = None
        return _text(f"Navigated to {args['url']}")

    def _handle_get_visible_text(self, args: dict[str, Any]) -> Any:
        return _text(self.visible_text)

    def _handle_press_key(self, args: dict[str, Any]) -> Any:
        key = args["key"]
        if key == "Escape" and self._return_url is not None:
            self._escapes_left -= 1
            if self._escapes_left <= 0:
                self.current_url = self._return_url
                self._return_url = None
        elif key == "Enter" and self._return_url is None and self.results_url:
            self.current_url = self.results_url
        return _text(f"Pressed key: {key}")

    def _handle_evaluate(self, args: dict[str, Any]) -> Any:
        script = args["script"]

        if script == LOCATION_SCRIPT:
            if self._pending_detail is not None:
                self._reads_left -= 1
                if self._reads_left <= 0:
                    self.current_url = self._pending_detail
                    self._pending_detail = None
            return _script_result(script, json.dumps(self.current_url))

        if "const strategies" in script:
            if self.discovery_raw is not None:
                return _script_result(script, self.discovery_raw)
            return _script_result(script, json.dumps(json.dumps(self.suggestions)))

        if script == PROBE_SCRIPT:
            if self.probe_result is None:
                return _script_result(script, "null")
            return _script_result(script, json.dumps(json.dumps(self.probe_result)))

        match = _CELL_INDEX.search(script)
        if match:
            return self._open_cell(script, int(match.group(1)))

        if "outerHTML" in script:
            return _script_result(script, json.dumps(json.dumps(self.title_html)))

        return _script_result(script, "undefined")

    def _open_cell(self, script: str, index: int) -> Any:
        if index in self.open_cell_missing or index >= len(self.detail_urls):
            outcome = {"success": False, "reason": f"no result cell at index {index}"}
            return _script_result(script, json.dumps(json.dumps(outcome)))

        if index not in self.open_cell_no_navigation:
            self._return_url = self.current_url
            self._escapes_left = self.escape_presses_to_close
            if self.location_reads_before_detail:
                self._pending_detail = self.detail_urls[index]
                self._reads_left = self.location_reads_before_detail
            else:
                self.current_url = self.detail_urls[index]

        if index in self.open_cell_errors:
            raise BackendError(self.open_cell_errors[index], "playwright_evaluate")
        return _script_result(script, json.dumps(json.dumps({"success": True})))


def _text(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": text}]


def _script_result(script: str, payload: str) -> list[dict[str, Any]]:
    return _text(f"Executed JavaScript:\n{script[:40]}\n\nResult:\n{payload}")


