"""Title extraction from detail-view HTML."""

from __future__ import annotations

import html
import json
import re
from collections.abc import Sequence

from designscout.models import RouteKind

# Tried in order; the first pattern yielding a usable title wins.
TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL),
    re.compile(r'data-testid="[^"]*-title"[^>]*>(.*?)<', re.IGNORECASE | re.DOTALL),
    re.compile(r'class="[^"]*(?:-title|modal-title)\b[^"]*"[^>]*>(.*?)<', re.IGNORECASE | re.DOTALL),
    re.compile(r'class="[^"]*-name\b[^"]*"[^>]*>(.*?)<', re.IGNORECASE | re.DOTALL),
    re.compile(r"<h2[^>]*>(.*?)</h2>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL),
)

_TAG = re.compile(r"<[^>]+>")
_SPACE = re.compile(r"\s+")
MAX_TITLE_LENGTH = 200

_KIND_LABELS = {
    RouteKind.APPS: "App",
    RouteKind.FLOWS: "Flow",
    RouteKind.SCREENS: "Screen",
}


def default_title(route: RouteKind) -> str:
    return f"Unknown {_KIND_LABELS[route]}"


def _clean(fragment: str) -> str:
    text = html.unescape(_TAG.sub(" ", fragment))
    return _SPACE.sub(" ", text).strip()


def extract_title(
    page_html: str,
    route: RouteKind,
    generic_titles: Sequence[str] = (),
) -> str:
    """First usable title in ``page_html``, else ``Unknown <Kind>``."""
    generic = {title.lower() for title in generic_titles}
    for pattern in TITLE_PATTERNS:
        for match in pattern.finditer(page_html):
            title = _clean(match.group(1))
            if not title or len(title) > MAX_TITLE_LENGTH or title.lower() in generic:
                continue
            return title
    return default_title(route)


def build_title_script(container_selector: str) -> str:
    """Page script returning the document title plus detail-container HTML."""
    return (
        "(() => { "
        f"const root = document.querySelector({json.dumps(container_selector)}) || document.body; "
        "const head = '<title>' + document.title + '</title>'; "
        "return JSON.stringify((root ? root.outerHTML.slice(0, 50000) : '') + head); "
        "})()"
    )


__all__ = [
    "TITLE_PATTERNS",
    "build_title_script",
    "default_title",
    "extract_title",
]
