"""
Concurrent runs against independent backends.

Each backend gets its own pipeline, gateway and session context; the runs
share nothing but the final aggregation of their results.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import structlog

from designscout.config import ScoutConfig
from designscout.gateway.backend import RemoteBackend
from designscout.models import CapturedResult, RouteKind, dedupe_by_url, group_by_route
from designscout.orchestrator.phases import PhaseFailedError, PhaseObserver, RunReport
from designscout.orchestrator.pipeline import ScoutPipeline, SearchRequest

logger = structlog.get_logger(__name__)

PipelineFactory = Callable[[RemoteBackend], ScoutPipeline]


@dataclass
class ParallelRunResult:
    """Reports of every backend run and the aggregated results."""

    reports: list[RunReport] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)

    @property
    def all_results(self) -> list[CapturedResult]:
        return dedupe_by_url(r for report in self.reports for r in report.collected)

    @property
    def results(self) -> dict[RouteKind, list[CapturedResult]]:
        return group_by_route(self.all_results)


class ParallelSearchRunner:
    """
    Runs one request against several independent backends concurrently.

    A backend that is not connected yet is connected and closed by the task
    running it. Backends the caller already connected are left open.
    """

    def __init__(
        self,
        config: ScoutConfig,
        backends: Sequence[RemoteBackend],
        max_concurrent: int | None = None,
        pipeline_factory: PipelineFactory | None = None,
    ) -> None:
        if not backends:
            raise ValueError("At least one backend is required")
        self._config = config
        self._backends = list(backends)
        self._max_concurrent = max_concurrent or len(self._backends)
        self._pipeline_factory = pipeline_factory or (
            lambda backend: ScoutPipeline.create(backend, config)
        )
        self._log = logger.bind(component="parallel_runner")

    async def run(
        self,
        request: SearchRequest,
        on_phase_update: PhaseObserver | None = None,
    ) -> ParallelRunResult:
        result = ParallelRunResult()
        semaphore = asyncio.Semaphore(self._max_concurrent)

        self._log.info(
            "Starting parallel search",
            backend_count=len(self._backends),
            max_parallel=self._max_concurrent,
        )

        async def run_one(backend: RemoteBackend) -> RunReport:
            # Transports like MCP stdio must connect and close in the same task.
            async with semaphore:
                owned = not backend.is_connected
                if owned:
                    await backend.connect()
                try:
                    pipeline = self._pipeline_factory(backend)
                    return await pipeline.run(request, on_phase_update)
                finally:
                    if owned:
                        await backend.aclose()

        tasks = [asyncio.create_task(run_one(backend)) for backend in self._backends]

        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            self._log.warning("Parallel search cancelled")
            for task in tasks:
                task.cancel()
            raise

        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, PhaseFailedError):
                result.reports.append(outcome.report)
                result.failures[index] = str(outcome)
            elif isinstance(outcome, BaseException):
                result.failures[index] = str(outcome) or type(outcome).__name__
            else:
                result.reports.append(outcome)
            if index in result.failures:
                self._log.error("Backend run failed", backend_index=index, error=result.failures[index])

        self._log.info(
            "Parallel search completed",
            succeeded=len(self._backends) - len(result.failures),
            failed=len(result.failures),
            result_count=len(result.all_results),
        )
        return result


__all__ = ["ParallelRunResult", "ParallelSearchRunner", "PipelineFactory"]
