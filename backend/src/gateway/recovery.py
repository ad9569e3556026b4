"""
Recovery transforms applied between retry attempts.

Each error type maps to a deterministic adjustment of the next attempt's
arguments (and/or an extra pause). Locator expansion uses fixed families of
fallback selectors, keyed by what the failing locator looks like it targets.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from designscout.config import RetryPolicy
from designscout.models import ErrorType

NAVIGATE_TOOL = "playwright_navigate"


@dataclass(frozen=True)
class LocatorFamily:
    """Fallback locators for one category of element."""

    name: str
    markers: tuple[str, ...]
    fallbacks: tuple[str, ...]

    def matches(self, locator: str) -> bool:
        lowered = locator.lower()
        return any(marker in lowered for marker in self.markers)


LOCATOR_FAMILIES: tuple[LocatorFamily, ...] = (
    LocatorFamily(
        name="search_input",
        markers=("search",),
        fallbacks=(
            'input[type="search"]',
            'input[placeholder*="search" i]',
            'input[name*="search" i]',
            ".search-input",
            "#search",
        ),
    ),
    LocatorFamily(
        name="submit_button",
        markers=("button", "btn"),
        fallbacks=(
            'button[type="submit"]',
            'input[type="submit"]',
            ".btn-primary",
            ".search-btn",
            '[role="button"]',
        ),
    ),
    LocatorFamily(
        name="navigation_link",
        markers=("nav", "menu"),
        fallbacks=(
            "nav a",
            ".nav-link",
            ".menu-item",
            '[role="navigation"] a',
        ),
    ),
)


def fallback_locators(locator: str) -> list[str]:
    """Fallback locators for ``locator`` that it does not already contain."""
    found: list[str] = []
    for family in LOCATOR_FAMILIES:
        if not family.matches(locator):
            continue
        for fallback in family.fallbacks:
            if fallback not in locator and fallback not in found:
                found.append(fallback)
    return found


def expand_locator(locator: str) -> str | None:
    """Comma-join ``locator`` with its fallbacks, or None when none apply."""
    fallbacks = fallback_locators(locator)
    if not fallbacks:
        return None
    return ", ".join([locator, *fallbacks])


@dataclass
class RecoveryPlan:
    """Arguments and extra pause for the next attempt."""

    args: dict[str, Any]
    extra_delay_ms: int = 0
    adaptations: list[str] = field(default_factory=list)


def plan_recovery(
    error_type: ErrorType,
    tool_name: str,
    args: dict[str, Any],
    policy: RetryPolicy,
    rng: random.Random | None = None,
) -> RecoveryPlan:
    """
    Build the next attempt's arguments for a failure of ``error_type``.

    The caller's ``args`` are never mutated.
    """
    plan = RecoveryPlan(args=dict(args))

    match error_type:
        case ErrorType.TIMEOUT:
            timeout = plan.args.get("timeout")
            if isinstance(timeout, int | float):
                raised = min(int(timeout * policy.timeout_multiplier), policy.timeout_cap_ms)
                if raised != timeout:
                    plan.args["timeout"] = raised
                    plan.adaptations.append(f"timeout raised to {raised}ms")

        case ErrorType.ELEMENT_NOT_FOUND:
            selector = plan.args.get("selector")
            if isinstance(selector, str):
                expanded = expand_locator(selector)
                if expanded is not None:
                    plan.args["selector"] = expanded
                    plan.adaptations.append("selector expanded with fallbacks")

        case ErrorType.RATE_LIMIT:
            low, high = policy.rate_limit_extra_delay_ms
            plan.extra_delay_ms = int((rng or random).uniform(low, high))
            plan.adaptations.append(f"rate limited, extra pause {plan.extra_delay_ms}ms")

        case ErrorType.NAVIGATION:
            if tool_name == NAVIGATE_TOOL:
                plan.args["headless"] = True
                plan.args["timeout"] = policy.navigation_timeout_ms
                plan.adaptations.append("navigation forced headless")

        case ErrorType.UNKNOWN:
            plan.extra_delay_ms = policy.unknown_error_delay_ms

    return plan


__all__ = [
    "LOCATOR_FAMILIES",
    "LocatorFamily",
    "RecoveryPlan",
    "expand_locator",
    "fallback_locators",
    "plan_recovery",
]
