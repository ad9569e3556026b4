"""
Per-keyword search and capture on the target site.

A search opens the platform's search entry, types the keyword, lets the
suggestion engine pick a suggestion (or submit plainly), and records the
results page. Capture then opens the first N result cells one after another
through the session manager's capture loop.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import structlog

from designscout.config import CaptureConfig, SiteProfile
from designscout.gateway.client import RemoteActionGateway
from designscout.models import CapturedResult, Platform, RouteKind
from designscout.session.manager import CaptureError, SessionCaptureManager
from designscout.suggestions.engine import SelectionOutcome, SuggestionDisambiguationEngine

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SearchOutcome:
    """Where a keyword search landed and how the suggestion was chosen."""

    keyword: str
    route: RouteKind
    platform: Platform
    results_url: str
    selection: SelectionOutcome
    candidate_count: int


def build_open_cell_script(cell_selector: str, index: int) -> str:
    """Page script clicking the link of the ``index``-th result cell."""
    return (
        "(() => { "
        f"const index = {int(index)}; "
        f"const cells = document.querySelectorAll({json.dumps(cell_selector)}); "
        "const cell = cells[index]; "
        "if (!cell) return JSON.stringify({success: false, reason: `no result cell at index ${index} (found ${cells.length})`}); "
        "const img = cell.querySelector('img'); "
        "const link = (img && img.closest('a')) || cell.querySelector('a'); "
        "if (!link) return JSON.stringify({success: false, reason: `result cell ${index} has no link`}); "
        "link.click(); "
        "return JSON.stringify({success: true}); "
        "})()"
    )


class KeywordSearch:
    """Runs searches and captures for single keywords."""

    def __init__(
        self,
        gateway: RemoteActionGateway,
        engine: SuggestionDisambiguationEngine,
        session: SessionCaptureManager,
        site: SiteProfile | None = None,
        capture: CaptureConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._session = session
        self._site = site or SiteProfile()
        self._capture = capture or CaptureConfig()
        self._log = logger.bind(component="keyword_search")

    async def _go_home(self) -> None:
        if self._gateway.context.current_url.startswith(self._site.base_url):
            await self._session.return_home()
        else:
            await self._gateway.navigate(self._site.base_url)

    async def search(self, keyword: str, route: RouteKind, platform: Platform) -> SearchOutcome:
        """
        Search for ``keyword`` and land on its results page.

        Raises:
            GatewayError: If the search could not be entered or submitted
        """
        log = self._log.bind(keyword=keyword, route=route, platform=platform)
        await self._go_home()

        await self._gateway.click(self._site.search_entry[platform])
        await self._gateway.pause(1000)
        await self._gateway.fill(self._site.search_input, keyword)

        candidates = await self._engine.discover_candidates(keyword)
        selection = await self._engine.select_and_execute(candidates, route)
        await self._gateway.pause(self._capture.results_settle_ms)

        results_url = await self._gateway.get_current_url()
        log.info(
            "Search submitted",
            outcome=selection.kind,
            interaction=selection.interaction,
            results_url=results_url,
        )
        return SearchOutcome(
            keyword=keyword,
            route=route,
            platform=platform,
            results_url=results_url,
            selection=selection,
            candidate_count=len(candidates),
        )

    async def open_result(self, index: int) -> None:
        """Open the ``index``-th result cell through a fresh DOM query."""
        script = build_open_cell_script(self._site.result_cell_selector, index)
        outcome = await self._gateway.evaluate_json(script, retry_count=0)
        if not isinstance(outcome, dict) or not outcome.get("success"):
            reason = outcome.get("reason") if isinstance(outcome, dict) else "unreadable script result"
            raise CaptureError(f"Could not open result {index}: {reason}")

    async def capture(self, outcome: SearchOutcome, n: int | None = None) -> list[CapturedResult]:
        """Capture up to ``n`` detail views from the outcome's results page."""
        current = await self._gateway.get_current_url(retry_count=0)
        if outcome.results_url and current != outcome.results_url:
            await self._gateway.navigate(outcome.results_url)
            await self._gateway.pause(self._capture.results_settle_ms)

        return await self._session.capture_n(
            self.open_result,
            self._capture.results_per_keyword if n is None else n,
            keyword=outcome.keyword,
            route=outcome.route,
            platform=outcome.platform,
        )

    async def search_and_capture(
        self,
        keyword: str,
        route: RouteKind,
        platform: Platform,
        n: int | None = None,
    ) -> list[CapturedResult]:
        outcome = await self.search(keyword, route, platform)
        return await self.capture(outcome, n)


__all__ = ["KeywordSearch", "SearchOutcome", "build_open_cell_script"]
