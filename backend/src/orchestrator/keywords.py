"""Rule-based keyword extraction and route decision for free-text queries."""

from __future__ import annotations

import re
from collections.abc import Sequence

from designscout.models import RouteKind

KEY_TERMS = (
    "login", "banking", "biometric", "authentication", "mobile", "ios", "android", "web",
    "fintech", "payment", "checkout", "ecommerce", "onboarding", "signup", "dashboard",
    "profile", "settings", "wallet", "transfer", "card", "security", "verification",
)

STOP_WORDS = frozenset({"with", "that", "have", "need", "want", "like", "show", "find"})

# Checked in order; the first route whose markers appear wins.
ROUTE_MARKERS: tuple[tuple[RouteKind, tuple[str, ...]], ...] = (
    (RouteKind.APPS, ("app", "banking", "fintech")),
    (RouteKind.FLOWS, ("flow", "onboarding", "checkout")),
    (RouteKind.SCREENS, ("screen", "login", "dashboard")),
)

MAX_KEYWORDS = 5
MAX_FALLBACK_WORDS = 3


def extract_keywords(query: str, max_keywords: int = MAX_KEYWORDS) -> list[str]:
    """
    Pick search keywords out of a free-text query.

    Known domain terms are preferred; without any, the first few meaningful
    words of the query are used.
    """
    lowered = query.lower()
    keywords = [term for term in KEY_TERMS if term in lowered]

    if not keywords:
        words = re.sub(r"[^\w\s]", " ", lowered).split()
        keywords = [w for w in words if len(w) > 3 and w not in STOP_WORDS][:MAX_FALLBACK_WORDS]

    return keywords[:max_keywords]


def decide_route(keywords: Sequence[str] | str) -> RouteKind:
    """Route kind suggested by the keywords, defaulting to apps."""
    text = keywords if isinstance(keywords, str) else " ".join(keywords)
    text = text.lower()
    for route, markers in ROUTE_MARKERS:
        if any(marker in text for marker in markers):
            return route
    return RouteKind.APPS


__all__ = ["KEY_TERMS", "decide_route", "extract_keywords"]
