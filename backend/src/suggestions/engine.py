"""
Suggestion disambiguation engine.

After a search term is typed, the remote UI shows autocomplete-style
suggestions whose markup changes often. Discovery walks an ordered list of
locator strategies in a single page script (stable structural locator, then
generic ARIA/class patterns, then a broad scan of interactive-looking
elements) and stops at the first strategy that yields anything. Each element
is classified by keyword rules; selection picks the best candidate for the
caller's route intent or falls back to submitting the plain search.

Chosen suggestions are never clicked directly: the DOM re-renders between
discovery and action, so the input is re-focused and the suggestion is
highlighted and confirmed with the keyboard instead.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from designscout.config import SiteProfile
from designscout.gateway.client import RemoteActionGateway
from designscout.gateway.errors import GatewayError
from designscout.models import CandidateSuggestion, RouteKind, SuggestionKind, WorkflowStep
from designscout.suggestions.classifier import SuggestionClassifier

logger = structlog.get_logger(__name__)

PROBE_LOCATOR = '[role="option"]'


class LocatorStrategy(StrEnum):
    """Discovery strategies, most specific first."""

    STABLE = "stable"
    PATTERN = "pattern"
    BROAD_SCAN = "broad_scan"
    PROBE = "probe"


class OutcomeKind(StrEnum):
    """What selection decided to do."""

    CLICKED_CANDIDATE = "clicked_candidate"
    KEYBOARD_FALLBACK = "keyboard_fallback"
    NO_ACTION = "no_action"


@dataclass(frozen=True)
class SelectionOutcome:
    """Selection decision, and once executed, the interaction that succeeded."""

    kind: OutcomeKind
    reasoning: str
    suggestion: CandidateSuggestion | None = None
    interaction: str | None = None


@dataclass(frozen=True)
class InteractionPattern:
    """Named sequence of steps tried as one unit."""

    name: str
    steps: list[WorkflowStep] = field(default_factory=list)


def build_discovery_script(site: SiteProfile) -> str:
    """Page script returning JSON-encoded raw suggestion elements."""
    strategies = [{"name": LocatorStrategy.STABLE.value, "selector": site.stable_suggestion_locator}]
    strategies += [
        {"name": LocatorStrategy.PATTERN.value, "selector": selector}
        for selector in site.suggestion_patterns
    ]
    domain_terms = sorted(
        {term.lower() for rule in site.classification_rules
         if rule.kind == SuggestionKind.APP for term in rule.terms}
    )
    min_len, max_len = site.broad_scan_text_range

    return f"""(() => {{
  const strategies = {json.dumps(strategies)};
  const limit = {site.max_candidates};
  const domainTerms = {json.dumps(domain_terms)};
  const textOf = (el) => (el.textContent || '').trim().replace(/\\s+/g, ' ');
  const isVisible = (el) => {{
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
  }};
  for (const strategy of strategies) {{
    let nodes;
    try {{ nodes = Array.from(document.querySelectorAll(strategy.selector)); }} catch (e) {{ continue; }}
    const found = [];
    nodes.forEach((el, index) => {{
      const text = textOf(el);
      if (text.length > 2 && text.length < 200 && isVisible(el)) {{
        found.push({{text: text.slice(0, 100), index, selector: strategy.selector, strategy: strategy.name}});
      }}
    }});
    if (found.length > 0) return JSON.stringify(found.slice(0, limit));
  }}
  const scanned = Array.from(document.querySelectorAll({json.dumps(", ".join(site.broad_scan_tags))}))
    .filter((el) => {{
      const text = textOf(el);
      if (text.length < {min_len} || text.length > {max_len} || !isVisible(el)) return false;
      const lowered = text.toLowerCase();
      const clickable = el.onclick !== null || el.getAttribute('role') === 'option'
        || el.tabIndex >= 0 || window.getComputedStyle(el).cursor === 'pointer';
      return clickable || domainTerms.some((term) => lowered.includes(term));
    }})
    .slice(0, {site.broad_scan_limit})
    .map((el) => ({{text: textOf(el).slice(0, 100), index: -1, selector: '', strategy: '{LocatorStrategy.BROAD_SCAN.value}'}}));
  return JSON.stringify(scanned);
}})()"""


PROBE_SCRIPT = (
    "(() => { const el = document.querySelector('[role=\"option\"]'); "
    "return el ? JSON.stringify({text: (el.textContent || '').trim().slice(0, 100)}) : null; })()"
)


class SuggestionDisambiguationEngine:
    """
    Discovers, classifies and acts on search suggestions.

    Example:
        engine = SuggestionDisambiguationEngine(gateway, site)
        candidates = await engine.discover_candidates("banking")
        outcome = await engine.select_and_execute(candidates, RouteKind.APPS)
    """

    def __init__(
        self,
        gateway: RemoteActionGateway,
        site: SiteProfile | None = None,
        submit_plain_search: bool = True,
    ) -> None:
        self._gateway = gateway
        self._site = site or SiteProfile()
        self._classifier = SuggestionClassifier.from_profile(self._site)
        self._submit_plain_search = submit_plain_search
        self._discovery_script = build_discovery_script(self._site)
        self._log = logger.bind(component="suggestion_engine")

    async def discover_candidates(self, term: str) -> list[CandidateSuggestion]:
        """
        Discover suggestion candidates currently shown for ``term``.

        Returns an empty list when nothing plausible is on screen or the page
        could not be queried.
        """
        await self._gateway.pause(self._site.suggestion_settle_ms)

        try:
            raw = await self._gateway.evaluate_json(self._discovery_script)
            if isinstance(raw, list):
                candidates = self._build_candidates(raw)
            else:
                self._log.debug("Discovery result undecodable, probing", term=term)
                candidates = await self._probe()
        except GatewayError as e:
            self._log.warning("Suggestion discovery failed", term=term, error=str(e))
            return []

        self._log.info(
            "Suggestions discovered",
            term=term,
            count=len(candidates),
            kinds=[c.kind.value for c in candidates],
        )
        return candidates

    def _build_candidates(self, raw: Sequence[Any]) -> list[CandidateSuggestion]:
        candidates: list[CandidateSuggestion] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            text = str(item.get("text") or "").strip()
            if not text:
                continue
            origin = str(item.get("selector") or "")
            index = item.get("index")
            if item.get("strategy") == LocatorStrategy.BROAD_SCAN or not origin or not isinstance(index, int):
                locator = f"text={json.dumps(text[:30])}"
                origin = origin or LocatorStrategy.BROAD_SCAN.value
            else:
                locator = f"{origin} >> nth={index}"
            kind, confidence = self._classifier.classify(text)
            candidates.append(
                CandidateSuggestion(
                    display_text=text[:100],
                    kind=kind,
                    locator=locator,
                    confidence=confidence,
                    origin_selector=origin,
                )
            )
            if len(candidates) >= self._site.max_candidates:
                break
        return candidates

    async def _probe(self) -> list[CandidateSuggestion]:
        probed = await self._gateway.evaluate_json(PROBE_SCRIPT, retry_count=0)
        if not isinstance(probed, dict) or not probed.get("text"):
            return []
        text = str(probed["text"]).strip()
        kind, confidence = self._classifier.classify(text)
        return [
            CandidateSuggestion(
                display_text=text,
                kind=kind,
                locator=f"{PROBE_LOCATOR} >> nth=0",
                confidence=confidence,
                origin_selector=PROBE_LOCATOR,
            )
        ]

    def select(
        self,
        candidates: Sequence[CandidateSuggestion],
        intent: RouteKind,
    ) -> SelectionOutcome:
        """Decide which candidate (or fallback) serves ``intent``."""
        wanted = intent.suggestion_kind

        matching = [c for c in candidates if c.kind == wanted]
        if matching:
            best = max(matching, key=lambda c: c.confidence)
            return SelectionOutcome(
                kind=OutcomeKind.CLICKED_CANDIDATE,
                suggestion=best,
                reasoning=(
                    f"Selected {wanted} suggestion {best.display_text!r} "
                    f"(confidence {best.confidence:.2f})"
                ),
            )

        general = [c for c in candidates if c.kind == SuggestionKind.GENERAL]
        if general:
            best = max(general, key=lambda c: c.confidence)
            return SelectionOutcome(
                kind=OutcomeKind.KEYBOARD_FALLBACK,
                suggestion=best,
                reasoning=f"No {wanted} suggestions found, using general search",
            )

        if not self._submit_plain_search:
            return SelectionOutcome(
                kind=OutcomeKind.NO_ACTION,
                reasoning=f"No {wanted} suggestions found and plain search is disabled",
            )

        return SelectionOutcome(
            kind=OutcomeKind.KEYBOARD_FALLBACK,
            reasoning=f"No suitable suggestions among {len(candidates)}, submitting plain search",
        )

    def _click_patterns(self) -> list[InteractionPattern]:
        search_input = self._site.search_input
        return [
            InteractionPattern(
                name="focus_highlight_confirm",
                steps=[
                    WorkflowStep.wait(1000),
                    WorkflowStep.click(search_input, "Re-focus search input", retry_count=0),
                    WorkflowStep.wait(300),
                    WorkflowStep.press("ArrowDown", search_input, "Highlight suggestion", retry_count=0),
                    WorkflowStep.wait(500),
                    WorkflowStep.press("Enter", search_input, "Confirm suggestion", retry_count=0),
                    WorkflowStep.wait(1000),
                ],
            ),
            InteractionPattern(
                name="key_sequence",
                steps=[
                    WorkflowStep.press("ArrowDown", retry_count=0),
                    WorkflowStep.wait(300),
                    WorkflowStep.press("Enter", retry_count=0),
                    WorkflowStep.wait(1000),
                ],
            ),
            InteractionPattern(
                name="enter_only",
                steps=[WorkflowStep.press("Enter"), WorkflowStep.wait(1000)],
            ),
        ]

    def _submit_patterns(self) -> list[InteractionPattern]:
        return [
            InteractionPattern(
                name="enter",
                steps=[WorkflowStep.press("Enter", self._site.search_input), WorkflowStep.wait(1000)],
            ),
            InteractionPattern(
                name="submit_button",
                steps=[WorkflowStep.click(self._site.search_submit), WorkflowStep.wait(1000)],
            ),
        ]

    async def _run_patterns(self, patterns: Sequence[InteractionPattern]) -> str:
        """Run patterns in order until one succeeds; return its name."""
        last_error: GatewayError | None = None
        for pattern in patterns:
            report = await self._gateway.execute_workflow(pattern.steps, stop_on_error=True)
            if report.success:
                return pattern.name
            last_error = report.failures[-1].error
            self._log.warning(
                "Interaction pattern failed, degrading",
                pattern=pattern.name,
                error=str(last_error),
            )
        if last_error is None:
            raise RuntimeError("No interaction patterns to run")
        raise last_error

    async def select_and_execute(
        self,
        candidates: Sequence[CandidateSuggestion],
        intent: RouteKind,
    ) -> SelectionOutcome:
        """
        Select for ``intent`` and perform the chosen interaction.

        Raises:
            GatewayError: If every interaction pattern for the decision failed
        """
        outcome = self.select(candidates, intent)
        self._log.info(
            "Suggestion selected",
            intent=intent,
            outcome=outcome.kind,
            reasoning=outcome.reasoning,
        )

        match outcome.kind:
            case OutcomeKind.CLICKED_CANDIDATE:
                interaction = await self._run_patterns(self._click_patterns())
            case OutcomeKind.KEYBOARD_FALLBACK:
                interaction = await self._run_patterns(self._submit_patterns())
            case _:
                return outcome

        return SelectionOutcome(
            kind=outcome.kind,
            reasoning=outcome.reasoning,
            suggestion=outcome.suggestion,
            interaction=interaction,
        )


__all__ = [
    "InteractionPattern",
    "LocatorStrategy",
    "OutcomeKind",
    "SelectionOutcome",
    "SuggestionDisambiguationEngine",
    "build_discovery_script",
]
