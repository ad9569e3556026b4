"""
Core data model for DesignScout.

Workflow steps consumed by the gateway, suggestion candidates produced by the
disambiguation engine, captured results, authentication state and the
execution phases reported by the orchestrator.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ErrorType(StrEnum):
    """Failure taxonomy for remote backend calls."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    ELEMENT_NOT_FOUND = "element_not_found"
    NAVIGATION = "navigation"
    PERMISSION = "permission"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


class WorkflowAction(StrEnum):
    """Automation actions understood by the remote action gateway."""

    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    WAIT = "wait"
    PRESS = "press"
    SCROLL = "scroll"
    HOVER = "hover"


@dataclass(frozen=True)
class WorkflowStep:
    """One declarative automation instruction."""

    action: WorkflowAction
    description: str = ""
    target: str | None = None
    value: str | None = None
    timeout_ms: int | None = None
    retry_count: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.action, WorkflowAction):
            object.__setattr__(self, "action", WorkflowAction(self.action))
        if self.timeout_ms is not None and self.timeout_ms < 0:
            raise ValueError("timeout_ms must be non-negative")
        if self.retry_count is not None and self.retry_count < 0:
            raise ValueError("retry_count must be non-negative")

    @classmethod
    def navigate(cls, url: str, description: str = "", **kwargs: Any) -> WorkflowStep:
        return cls(WorkflowAction.NAVIGATE, description or f"Navigate to {url}", value=url, **kwargs)

    @classmethod
    def click(cls, target: str, description: str = "", **kwargs: Any) -> WorkflowStep:
        return cls(WorkflowAction.CLICK, description or f"Click {target}", target=target, **kwargs)

    @classmethod
    def fill(cls, target: str, value: str, description: str = "", **kwargs: Any) -> WorkflowStep:
        return cls(WorkflowAction.FILL, description or f"Fill {target}", target=target, value=value, **kwargs)

    @classmethod
    def press(
        cls, key: str, target: str | None = None, description: str = "", **kwargs: Any
    ) -> WorkflowStep:
        return cls(WorkflowAction.PRESS, description or f"Press {key}", target=target, value=key, **kwargs)

    @classmethod
    def wait(cls, timeout_ms: int, description: str = "") -> WorkflowStep:
        return cls(WorkflowAction.WAIT, description or f"Wait {timeout_ms}ms", timeout_ms=timeout_ms)


class SuggestionKind(StrEnum):
    """Semantic type of a discovered suggestion element."""

    APP = "app"
    FLOW = "flow"
    SCREEN = "screen"
    UI_ELEMENT = "ui_element"
    TEXT_SEARCH = "text_search"
    GENERAL = "general"


class RouteKind(StrEnum):
    """Category of result the caller is searching for."""

    APPS = "apps"
    FLOWS = "flows"
    SCREENS = "screens"

    @property
    def suggestion_kind(self) -> SuggestionKind:
        """Suggestion kind that satisfies this route's intent."""
        return {
            RouteKind.APPS: SuggestionKind.APP,
            RouteKind.FLOWS: SuggestionKind.FLOW,
            RouteKind.SCREENS: SuggestionKind.SCREEN,
        }[self]


class Platform(StrEnum):
    """Platform whose designs are being searched."""

    IOS = "ios"
    WEB = "web"
    ANDROID = "android"


@dataclass(frozen=True)
class CandidateSuggestion:
    """A UI element discovered as a possible match for a search term."""

    display_text: str
    kind: SuggestionKind
    locator: str
    confidence: float
    origin_selector: str

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class CapturedResult:
    """One extracted detail-view record."""

    url: str
    title: str
    route_kind: RouteKind
    keyword: str
    platform: Platform
    position: int
    source_strategy: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "route_kind": self.route_kind.value,
            "keyword": self.keyword,
            "platform": self.platform.value,
            "position": self.position,
            "source_strategy": self.source_strategy,
            "captured_at": self.captured_at.isoformat(),
        }


class AuthenticationState(StrEnum):
    """Authentication state of one remote session."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    LOGIN_REQUIRED = "login_required"
    LOGIN_FAILED = "login_failed"


# Forward-only transitions
AUTH_TRANSITIONS: dict[AuthenticationState, frozenset[AuthenticationState]] = {
    AuthenticationState.UNKNOWN: frozenset({AuthenticationState.CHECKING}),
    AuthenticationState.CHECKING: frozenset(
        {AuthenticationState.AUTHENTICATED, AuthenticationState.LOGIN_REQUIRED}
    ),
    AuthenticationState.LOGIN_REQUIRED: frozenset(
        {AuthenticationState.AUTHENTICATED, AuthenticationState.LOGIN_FAILED}
    ),
    AuthenticationState.AUTHENTICATED: frozenset(),
    AuthenticationState.LOGIN_FAILED: frozenset(),
}


class PhaseStatus(StrEnum):
    """Status of an execution phase."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecutionPhase:
    """One named unit of orchestrated work."""

    id: str
    message: str
    status: PhaseStatus = PhaseStatus.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0
    results: list[CapturedResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status != PhaseStatus.RUNNING

    def snapshot(self) -> ExecutionPhase:
        """Copy handed to observers so they cannot mutate orchestrator state."""
        return replace(self, results=list(self.results), errors=list(self.errors))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "result_count": len(self.results),
            "errors": list(self.errors),
        }


@dataclass
class SessionContext:
    """Connection state of the remote session, owned by the gateway."""

    connected: bool = False
    current_url: str = ""


def dedupe_by_url(results: Iterable[CapturedResult]) -> list[CapturedResult]:
    """Keep the first result seen for each url, preserving order."""
    seen: set[str] = set()
    unique: list[CapturedResult] = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
    return unique


def group_by_route(results: Iterable[CapturedResult]) -> dict[RouteKind, list[CapturedResult]]:
    """Deduplicate results and bucket them by route kind."""
    grouped: dict[RouteKind, list[CapturedResult]] = {kind: [] for kind in RouteKind}
    for result in dedupe_by_url(results):
        grouped[result.route_kind].append(result)
    return grouped
