"""
Standard phase layouts for a search request.

Two layouts are provided:

- ``per-route``: authenticate, analyze-intent, one search phase per route
  (search and capture each keyword), curate
- ``staged``: authenticate, search (every keyword, results pages recorded),
  capture (revisit each results page and capture)
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from designscout.config import ScoutConfig
from designscout.gateway.backend import RemoteBackend
from designscout.gateway.client import Clock, RemoteActionGateway, Sleep
from designscout.models import CapturedResult, Platform, RouteKind, dedupe_by_url
from designscout.orchestrator.keywords import decide_route, extract_keywords
from designscout.orchestrator.phases import (
    PhaseContext,
    PhaseObserver,
    PhaseOrchestrator,
    PhaseSpec,
    RunReport,
)
from designscout.orchestrator.search import KeywordSearch, SearchOutcome
from designscout.session.manager import SessionCaptureManager
from designscout.suggestions.engine import SuggestionDisambiguationEngine

logger = structlog.get_logger(__name__)


class PhaseLayout(StrEnum):
    """Which standard phase list to run."""

    PER_ROUTE = "per-route"
    STAGED = "staged"


@dataclass(frozen=True)
class SearchRequest:
    """One overall search request."""

    keywords: list[str] = field(default_factory=list)
    query: str | None = None
    routes: list[RouteKind] = field(default_factory=list)
    platform: Platform = Platform.IOS
    results_per_keyword: int | None = None
    layout: PhaseLayout = PhaseLayout.PER_ROUTE

    def __post_init__(self) -> None:
        if not self.keywords and not self.query:
            raise ValueError("A search request needs keywords or a query")


@dataclass
class RunPlan:
    """Mutable state shared by the phases of one run."""

    keywords: list[str]
    routes: list[RouteKind]
    outcomes: list[SearchOutcome] = field(default_factory=list)


class ScoutPipeline:
    """Builds and runs phase lists over one gateway and session."""

    def __init__(
        self,
        gateway: RemoteActionGateway,
        session: SessionCaptureManager,
        searcher: KeywordSearch,
        config: ScoutConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._searcher = searcher
        self._config = config or ScoutConfig()
        self._log = logger.bind(component="pipeline")

    @classmethod
    def create(
        cls,
        backend: RemoteBackend,
        config: ScoutConfig,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        rng: random.Random | None = None,
    ) -> ScoutPipeline:
        """
        Wire gateway, suggestion engine, session manager and searcher.

        Raises:
            ConfigurationError: If credentials are missing
        """
        gateway = RemoteActionGateway(
            backend,
            retry=config.retry,
            browser=config.browser,
            capture=config.capture,
            sleep=sleep,
            clock=clock,
            rng=rng,
        )
        session = SessionCaptureManager(gateway, config.credentials, config.site, config.capture)
        engine = SuggestionDisambiguationEngine(gateway, config.site)
        searcher = KeywordSearch(gateway, engine, session, config.site, config.capture)
        return cls(gateway, session, searcher, config)

    @property
    def gateway(self) -> RemoteActionGateway:
        return self._gateway

    @property
    def session(self) -> SessionCaptureManager:
        return self._session

    def plan(self, request: SearchRequest) -> RunPlan:
        """Resolve keywords and routes for a request."""
        keywords = list(request.keywords) or extract_keywords(request.query or "")
        if not keywords:
            raise ValueError(f"No searchable keywords in query {request.query!r}")
        routes = list(request.routes) or [decide_route(request.query or keywords)]
        return RunPlan(keywords=keywords, routes=routes)

    def authenticate_phase(self, navigate_first: bool = True) -> PhaseSpec:
        async def authenticate(ctx: PhaseContext) -> None:
            if navigate_first:
                await self._gateway.navigate(self._config.site.base_url)
            await self._session.check_and_ensure_authenticated()

        return PhaseSpec("authenticate", "Checking authentication", authenticate, categorize=False)

    def analyze_phase(self, plan: RunPlan) -> PhaseSpec:
        async def analyze(ctx: PhaseContext) -> None:
            self._log.info("Search planned", keywords=plan.keywords, routes=plan.routes)

        return PhaseSpec("analyze-intent", "Planning keywords and routes", analyze, categorize=False)

    async def _search_keywords(
        self,
        ctx: PhaseContext,
        request: SearchRequest,
        plan: RunPlan,
        routes: Sequence[RouteKind],
        capture: bool,
    ) -> list[CapturedResult]:
        results: list[CapturedResult] = []
        for route in routes:
            for keyword in plan.keywords:
                try:
                    outcome = await self._searcher.search(keyword, route, request.platform)
                    plan.outcomes.append(outcome)
                    if capture:
                        results.extend(
                            await self._searcher.capture(outcome, request.results_per_keyword)
                        )
                except Exception as e:
                    ctx.record_error(f"{route}/{keyword}: {e}")
                    self._log.warning("Keyword failed", keyword=keyword, route=route, error=str(e))
        return results

    def route_phase(self, request: SearchRequest, plan: RunPlan, route: RouteKind) -> PhaseSpec:
        async def search_route(ctx: PhaseContext) -> list[CapturedResult]:
            return await self._search_keywords(ctx, request, plan, [route], capture=True)

        return PhaseSpec(f"search-{route.value}", f"Searching {route.value}", search_route)

    def search_phase(self, request: SearchRequest, plan: RunPlan) -> PhaseSpec:
        async def search(ctx: PhaseContext) -> None:
            await self._search_keywords(ctx, request, plan, plan.routes, capture=False)

        return PhaseSpec("search", "Searching keywords", search, categorize=False)

    def capture_phase(self, request: SearchRequest, plan: RunPlan) -> PhaseSpec:
        async def capture(ctx: PhaseContext) -> list[CapturedResult]:
            results: list[CapturedResult] = []
            for outcome in plan.outcomes:
                try:
                    results.extend(
                        await self._searcher.capture(outcome, request.results_per_keyword)
                    )
                except Exception as e:
                    ctx.record_error(f"{outcome.route}/{outcome.keyword}: {e}")
                    self._log.warning("Capture failed", keyword=outcome.keyword, error=str(e))
            return results

        return PhaseSpec("capture", "Capturing results", capture)

    def curate_phase(self) -> PhaseSpec:
        async def curate(ctx: PhaseContext) -> list[CapturedResult]:
            curated = dedupe_by_url(ctx.report.collected)
            ctx.report.summary = ctx.report.summarize()
            return curated

        return PhaseSpec("curate", "Curating results", curate, categorize=False)

    def build_phases(self, request: SearchRequest, plan: RunPlan | None = None) -> list[PhaseSpec]:
        plan = plan or self.plan(request)
        if request.layout == PhaseLayout.STAGED:
            return [
                self.authenticate_phase(),
                self.search_phase(request, plan),
                self.capture_phase(request, plan),
            ]
        return [
            self.authenticate_phase(),
            self.analyze_phase(plan),
            *(self.route_phase(request, plan, route) for route in plan.routes),
            self.curate_phase(),
        ]

    async def run(
        self,
        request: SearchRequest,
        on_phase_update: PhaseObserver | None = None,
        phases: Sequence[PhaseSpec] | None = None,
    ) -> RunReport:
        """
        Run the request's phases over a single remote session.

        Raises:
            PhaseFailedError: If a phase failed
        """
        orchestrator = PhaseOrchestrator(self._gateway, on_phase_update, clock=self._gateway.clock)
        return await orchestrator.run(phases if phases is not None else self.build_phases(request))


__all__ = [
    "PhaseLayout",
    "RunPlan",
    "ScoutPipeline",
    "SearchRequest",
]
