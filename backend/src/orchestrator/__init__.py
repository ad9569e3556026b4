"""
Search orchestration.

Provides phase sequencing over one remote session, the standard search
pipelines, per-keyword search and concurrent runs across backends.
"""

from designscout.orchestrator.keywords import decide_route, extract_keywords
from designscout.orchestrator.parallel import ParallelRunResult, ParallelSearchRunner
from designscout.orchestrator.phases import (
    PhaseContext,
    PhaseFailedError,
    PhaseOrchestrator,
    PhaseSpec,
    RunReport,
)
from designscout.orchestrator.pipeline import (
    PhaseLayout,
    RunPlan,
    ScoutPipeline,
    SearchRequest,
)
from designscout.orchestrator.search import KeywordSearch, SearchOutcome

__all__ = [
    "KeywordSearch",
    "ParallelRunResult",
    "ParallelSearchRunner",
    "PhaseContext",
    "PhaseFailedError",
    "PhaseLayout",
    "PhaseOrchestrator",
    "PhaseSpec",
    "RunPlan",
    "RunReport",
    "ScoutPipeline",
    "SearchOutcome",
    "SearchRequest",
    "decide_route",
    "extract_keywords",
]
