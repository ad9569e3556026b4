"""
Resilient client for the remote browser-automation backend.

Every backend call is classified on failure, retried with exponential backoff
when the error type is retryable, and adjusted by a per-error-type recovery
transform before the next attempt. Exhaustion raises ``GatewayError``; there is
no fallback to fabricated results.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from designscout.config import BrowserConfig, CaptureConfig, RetryPolicy
from designscout.gateway.backend import RemoteBackend
from designscout.gateway.decoder import decode_json, decode_text, decode_url
from designscout.gateway.errors import GatewayError, UrlWaitTimeoutError, classify_error
from designscout.gateway.recovery import plan_recovery
from designscout.models import ErrorType, SessionContext, WorkflowAction, WorkflowStep

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

TOOL_NAVIGATE = "playwright_navigate"
TOOL_CLICK = "playwright_click"
TOOL_FILL = "playwright_fill"
TOOL_PRESS_KEY = "playwright_press_key"
TOOL_HOVER = "playwright_hover"
TOOL_SCREENSHOT = "playwright_screenshot"
TOOL_EVALUATE = "playwright_evaluate"
TOOL_VISIBLE_TEXT = "playwright_get_visible_text"
TOOL_CLOSE = "playwright_close"

LOCATION_SCRIPT = "window.location.href"
DEFAULT_WAIT_MS = 1000
DEFAULT_SCROLL_PX = 600


@dataclass
class StepFailure:
    """A workflow step that failed for good."""

    index: int
    step: WorkflowStep
    error: GatewayError


@dataclass
class WorkflowReport:
    """Outcome of running a list of workflow steps."""

    success: bool
    completed_steps: int = 0
    failures: list[StepFailure] = field(default_factory=list)
    adaptations: list[str] = field(default_factory=list)
    results: list[Any] = field(default_factory=list)


class RemoteActionGateway:
    """
    Gateway through which every remote automation command is sent.

    Owns the ``SessionContext`` of one remote session. Calls are meant to be
    awaited one at a time; the remote page is a single shared resource.
    """

    def __init__(
        self,
        backend: RemoteBackend,
        retry: RetryPolicy | None = None,
        browser: BrowserConfig | None = None,
        capture: CaptureConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._backend = backend
        self._retry = retry or RetryPolicy()
        self._browser = browser or BrowserConfig()
        self._capture = capture or CaptureConfig()
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._context = SessionContext()
        self._adaptations: list[str] = []
        self._screenshot_count = 0
        self._log = logger.bind(component="gateway")

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    @property
    def adaptations(self) -> list[str]:
        """Recovery transforms applied so far, oldest first."""
        return list(self._adaptations)

    async def open(self) -> None:
        """Connect the backend if it is not connected yet."""
        if not self._backend.is_connected:
            await self._backend.connect()

    async def close(self) -> None:
        """Close the remote browser page. Failures are logged, never raised."""
        if self._context.connected:
            try:
                await self.call_tool(TOOL_CLOSE, {}, max_retries=0)
            except GatewayError as e:
                self._log.warning("Closing remote session failed", error=str(e))
        self._context.connected = False
        self._context.current_url = ""

    async def __aenter__(self) -> RemoteActionGateway:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def pause(self, ms: int) -> None:
        """Fixed settle delay."""
        if ms > 0:
            await self._sleep(ms / 1000)

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay with optional jitter."""
        policy = self._retry
        delay = policy.initial_delay_ms * (policy.exponential_base**attempt)
        delay = min(delay, policy.max_delay_ms)

        if policy.jitter:
            delay = delay * (0.5 + self._rng.random())

        return delay

    async def call_tool(
        self,
        tool_name: str,
        args: dict[str, Any],
        max_retries: int | None = None,
    ) -> Any:
        """
        Invoke a backend tool with classification, retry and recovery.

        Args:
            tool_name: Backend tool to invoke
            args: Tool arguments (not mutated)
            max_retries: Override of the policy's retry budget for this call

        Returns:
            The raw backend response

        Raises:
            GatewayError: When the error is not retryable or retries ran out
        """
        policy = self._retry
        budget = policy.max_retries if max_retries is None else max_retries
        call_args = dict(args)

        for attempt in range(budget + 1):
            try:
                await self.open()
                return await self._backend.invoke(tool_name, call_args)
            except Exception as e:
                message = str(e) or type(e).__name__
                error_type = classify_error(message)
                attempts = attempt + 1

                if not policy.is_retryable(error_type) or attempt >= budget:
                    self._log.error(
                        "Remote call failed",
                        tool=tool_name,
                        error_type=error_type,
                        attempts=attempts,
                        error=message,
                    )
                    raise GatewayError(tool_name, error_type, attempts, message) from e

                delay_ms = self._calculate_backoff(attempt)
                plan = plan_recovery(error_type, tool_name, call_args, policy, self._rng)
                self._log.warning(
                    "Remote call failed, retrying",
                    tool=tool_name,
                    error_type=error_type,
                    attempt=attempts,
                    max_retries=budget,
                    delay_ms=delay_ms,
                    extra_delay_ms=plan.extra_delay_ms,
                    error=message,
                )
                self._adaptations.extend(plan.adaptations)
                if plan.extra_delay_ms:
                    await self._sleep(plan.extra_delay_ms / 1000)
                await self._sleep(delay_ms / 1000)
                call_args = plan.args

        # Should not reach here, but just in case
        raise GatewayError(tool_name, ErrorType.UNKNOWN, budget + 1, "request failed after retries")

    async def execute(self, step: WorkflowStep) -> Any:
        """Run one workflow step."""
        self._log.debug("Executing step", action=step.action, description=step.description)
        retries = step.retry_count

        match step.action:
            case WorkflowAction.NAVIGATE:
                if not step.value:
                    raise ValueError("navigate step requires a URL value")
                return await self.navigate(step.value, timeout_ms=step.timeout_ms, retry_count=retries)
            case WorkflowAction.CLICK:
                return await self.click(_require_target(step), retry_count=retries)
            case WorkflowAction.FILL:
                if step.value is None:
                    raise ValueError("fill step requires a value")
                return await self.fill(_require_target(step), step.value, retry_count=retries)
            case WorkflowAction.PRESS:
                if not step.value:
                    raise ValueError("press step requires a key value")
                return await self.press_key(step.value, selector=step.target, retry_count=retries)
            case WorkflowAction.HOVER:
                return await self.hover(_require_target(step), retry_count=retries)
            case WorkflowAction.SCROLL:
                return await self.scroll(target=step.target, pixels=_scroll_pixels(step), retry_count=retries)
            case WorkflowAction.WAIT:
                await self.pause(step.timeout_ms if step.timeout_ms is not None else DEFAULT_WAIT_MS)
                return None
            case _:
                raise ValueError(f"Unsupported action: {step.action}")

    async def execute_workflow(
        self,
        steps: Sequence[WorkflowStep],
        stop_on_error: bool = False,
    ) -> WorkflowReport:
        """Run steps in order, collecting failures and applied adaptations."""
        report = WorkflowReport(success=True)
        adaptations_before = len(self._adaptations)

        for index, step in enumerate(steps):
            try:
                report.results.append(await self.execute(step))
                report.completed_steps += 1
            except GatewayError as e:
                report.success = False
                report.failures.append(StepFailure(index=index, step=step, error=e))
                self._log.warning(
                    "Workflow step failed",
                    index=index,
                    action=step.action,
                    description=step.description,
                    error=str(e),
                )
                if stop_on_error:
                    break

        report.adaptations = self._adaptations[adaptations_before:]
        return report

    async def navigate(
        self,
        url: str,
        timeout_ms: int | None = None,
        retry_count: int | None = None,
    ) -> Any:
        args = {
            "url": url,
            "browserType": self._browser.browser_type,
            "width": self._browser.width,
            "height": self._browser.height,
            "headless": self._browser.headless,
            "timeout": timeout_ms or self._browser.navigation_timeout_ms,
        }
        response = await self.call_tool(TOOL_NAVIGATE, args, max_retries=retry_count)
        self._context.connected = True
        self._context.current_url = url
        self._log.info("Navigated", url=url)

        if self._browser.debug_screenshots:
            self._screenshot_count += 1
            try:
                await self.screenshot(f"navigate-{self._screenshot_count}")
            except GatewayError as e:
                self._log.debug("Debug screenshot failed", error=str(e))
        return response

    async def click(self, selector: str, retry_count: int | None = None) -> Any:
        return await self.call_tool(TOOL_CLICK, {"selector": selector}, max_retries=retry_count)

    async def fill(self, selector: str, value: str, retry_count: int | None = None) -> Any:
        return await self.call_tool(
            TOOL_FILL, {"selector": selector, "value": value}, max_retries=retry_count
        )

    async def press_key(
        self,
        key: str,
        selector: str | None = None,
        retry_count: int | None = None,
    ) -> Any:
        args: dict[str, Any] = {"key": key}
        if selector:
            args["selector"] = selector
        return await self.call_tool(TOOL_PRESS_KEY, args, max_retries=retry_count)

    async def hover(self, selector: str, retry_count: int | None = None) -> Any:
        return await self.call_tool(TOOL_HOVER, {"selector": selector}, max_retries=retry_count)

    async def scroll(
        self,
        target: str | None = None,
        pixels: int = DEFAULT_SCROLL_PX,
        retry_count: int | None = None,
    ) -> Any:
        if target:
            script = (
                f"document.querySelector({json.dumps(target)})"
                "?.scrollIntoView({block: 'center'})"
            )
        else:
            script = f"window.scrollBy(0, {int(pixels)})"
        return await self.evaluate(script, retry_count=retry_count)

    async def screenshot(self, name: str, full_page: bool = False) -> Any:
        return await self.call_tool(TOOL_SCREENSHOT, {"name": name, "fullPage": full_page})

    async def evaluate(self, script: str, retry_count: int | None = None) -> Any:
        return await self.call_tool(TOOL_EVALUATE, {"script": script}, max_retries=retry_count)

    async def evaluate_json(self, script: str, retry_count: int | None = None) -> Any:
        """Evaluate a script and decode its structured result (None if undecodable)."""
        return decode_json(await self.evaluate(script, retry_count=retry_count))

    async def get_visible_text(self) -> str:
        return decode_text(await self.call_tool(TOOL_VISIBLE_TEXT, {})) or ""

    async def _read_location(self, retry_count: int | None = None) -> str | None:
        return decode_url(await self.evaluate(LOCATION_SCRIPT, retry_count=retry_count))

    async def get_current_url(self, retry_count: int | None = None) -> str:
        """Live page URL, falling back to the last navigated URL."""
        try:
            url = await self._read_location(retry_count=retry_count)
        except GatewayError as e:
            self._log.debug("Reading current URL failed", error=str(e))
            url = None
        return url or self._context.current_url

    async def wait_for_url_matching(self, pattern: str, timeout_ms: int | None = None) -> str:
        """
        Poll the page URL until it matches ``pattern``.

        Raises:
            UrlWaitTimeoutError: If no match was seen within the timeout
        """
        timeout = self._capture.detail_timeout_ms if timeout_ms is None else timeout_ms
        regex = re.compile(pattern)
        start = self._clock()
        polls = 0
        last_url = ""

        while True:
            polls += 1
            try:
                url = await self._read_location(retry_count=0)
            except GatewayError as e:
                self._log.debug("URL poll failed", error=str(e))
                delay_ms = self._capture.url_poll_error_backoff_ms
            else:
                if url:
                    last_url = url
                    if regex.search(url):
                        self._log.debug("URL matched", url=url, polls=polls)
                        return url
                delay_ms = self._capture.url_poll_interval_ms

            if (self._clock() - start) * 1000 >= timeout:
                raise UrlWaitTimeoutError(pattern, timeout, last_url, polls)
            await self._sleep(delay_ms / 1000)


def _require_target(step: WorkflowStep) -> str:
    if not step.target:
        raise ValueError(f"{step.action} step requires a target")
    return step.target


def _scroll_pixels(step: WorkflowStep) -> int:
    if step.value is None:
        return DEFAULT_SCROLL_PX
    try:
        return int(step.value)
    except ValueError as e:
        raise ValueError(f"scroll value must be an integer, got {step.value!r}") from e


__all__ = [
    "RemoteActionGateway",
    "StepFailure",
    "WorkflowReport",
]
