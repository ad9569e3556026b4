"""
Phase orchestration.

Runs an ordered list of named phases against one remote session. The session
is opened before the first phase and closed after the last one, or on abort.
A failing phase is recorded as FAILED and aborts the run with
``PhaseFailedError``; phases that already ran keep their results.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from designscout.gateway.client import Clock, RemoteActionGateway
from designscout.models import (
    CapturedResult,
    ExecutionPhase,
    PhaseStatus,
    RouteKind,
    dedupe_by_url,
    group_by_route,
)

logger = structlog.get_logger(__name__)

PhaseObserver = Callable[[ExecutionPhase], None]


@dataclass
class RunReport:
    """Phase diagnostics and collected results of one run."""

    phases: list[ExecutionPhase] = field(default_factory=list)
    collected: list[CapturedResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0
    summary: str = ""

    @property
    def results(self) -> dict[RouteKind, list[CapturedResult]]:
        """Deduplicated results bucketed by route kind."""
        return group_by_route(self.collected)

    @property
    def all_results(self) -> list[CapturedResult]:
        return dedupe_by_url(self.collected)

    @property
    def succeeded(self) -> bool:
        return all(phase.status == PhaseStatus.COMPLETED for phase in self.phases)

    def phase(self, phase_id: str) -> ExecutionPhase | None:
        return next((p for p in self.phases if p.id == phase_id), None)

    def summarize(self) -> str:
        grouped = self.results
        keywords = {r.keyword for r in self.collected}
        parts = [f"{len(items)} {route.value}" for route, items in grouped.items() if items]
        if not parts:
            return "No results captured"
        return f"Captured {', '.join(parts)} across {len(keywords)} keyword(s)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "succeeded": self.succeeded,
            "summary": self.summary or self.summarize(),
            "phases": [phase.to_dict() for phase in self.phases],
            "results": {
                route.value: [r.to_dict() for r in items]
                for route, items in self.results.items()
            },
        }


class PhaseFailedError(Exception):
    """A phase failed and the run was aborted."""

    def __init__(self, phase_id: str, cause: BaseException, report: RunReport) -> None:
        super().__init__(f"Phase '{phase_id}' failed: {cause}")
        self.phase_id = phase_id
        self.cause = cause
        self.report = report


@dataclass
class PhaseContext:
    """Handle given to a phase action while it runs."""

    phase_id: str
    report: RunReport
    errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        """Record a failure the phase absorbed."""
        self.errors.append(message)


PhaseAction = Callable[[PhaseContext], Awaitable[Sequence[CapturedResult] | None]]


@dataclass(frozen=True)
class PhaseSpec:
    """One named phase and the action that performs it."""

    id: str
    message: str
    action: PhaseAction
    categorize: bool = True


class PhaseOrchestrator:
    """
    Sequences phases over a single remote session.

    The observer is called synchronously with a snapshot of the phase each
    time it starts and each time it reaches a terminal status; it should
    return quickly.
    """

    def __init__(
        self,
        gateway: RemoteActionGateway,
        on_phase_update: PhaseObserver | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._gateway = gateway
        self._on_phase_update = on_phase_update
        self._clock = clock or time.monotonic
        self._log = logger.bind(component="orchestrator")

    def _notify(self, phase: ExecutionPhase) -> None:
        if self._on_phase_update is None:
            return
        try:
            self._on_phase_update(phase.snapshot())
        except Exception as e:
            self._log.warning("Error in phase update callback", phase_id=phase.id, error=str(e))

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self._clock() - started) * 1000))

    async def run(self, phases: Sequence[PhaseSpec]) -> RunReport:
        """
        Run ``phases`` in order.

        Returns:
            RunReport with every phase's diagnostics and the collected results

        Raises:
            PhaseFailedError: If a phase raised; carries the partial report
        """
        report = RunReport()
        started = self._clock()
        self._log.info("Run started", phases=[p.id for p in phases])

        await self._gateway.open()
        try:
            for spec in phases:
                await self._run_phase(spec, report)
        finally:
            await self._gateway.close()
            report.duration_ms = self._elapsed_ms(started)

        report.summary = report.summary or report.summarize()
        self._log.info(
            "Run completed",
            duration_ms=report.duration_ms,
            result_count=len(report.all_results),
        )
        return report

    async def _run_phase(self, spec: PhaseSpec, report: RunReport) -> None:
        phase = ExecutionPhase(id=spec.id, message=spec.message)
        report.phases.append(phase)
        context = PhaseContext(phase_id=spec.id, report=report)
        started = self._clock()

        self._log.info("Phase started", phase_id=spec.id, message=spec.message)
        self._notify(phase)

        try:
            results = list(await spec.action(context) or [])
        except Exception as e:
            phase.duration_ms = self._elapsed_ms(started)
            phase.errors = [*context.errors, str(e)]
            phase.status = PhaseStatus.FAILED
            self._log.error(
                "Phase failed",
                phase_id=spec.id,
                duration_ms=phase.duration_ms,
                error=str(e),
            )
            self._notify(phase)
            raise PhaseFailedError(spec.id, e, report) from e

        phase.duration_ms = self._elapsed_ms(started)
        phase.results = results
        phase.errors = list(context.errors)
        phase.status = PhaseStatus.COMPLETED
        if spec.categorize:
            report.collected.extend(results)

        self._log.info(
            "Phase completed",
            phase_id=spec.id,
            duration_ms=phase.duration_ms,
            result_count=len(results),
            error_count=len(phase.errors),
        )
        self._notify(phase)


__all__ = [
    "PhaseAction",
    "PhaseContext",
    "PhaseFailedError",
    "PhaseObserver",
    "PhaseOrchestrator",
    "PhaseSpec",
    "RunReport",
]
