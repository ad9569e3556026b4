"""
Caller-owned service handle.

The service owns one remote backend for its lifetime and serializes runs on
it, so only one logical browser session is active at a time. Construct it
once, reuse it across requests and close it explicitly (or use it as an
async context manager).
"""

from __future__ import annotations

import asyncio
import time

import structlog

from designscout.config import ScoutConfig
from designscout.gateway.backend import RemoteBackend, create_backend
from designscout.gateway.client import Clock, Sleep
from designscout.orchestrator.phases import PhaseObserver, RunReport
from designscout.orchestrator.pipeline import ScoutPipeline, SearchRequest

logger = structlog.get_logger(__name__)


class ScoutService:
    """
    Entry point for running searches.

    Example:
        async with ScoutService(load_scout_config()) as service:
            report = await service.search(SearchRequest(keywords=["login"]))
    """

    def __init__(
        self,
        config: ScoutConfig,
        backend: RemoteBackend | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        config.credentials.require()
        self._config = config
        self._backend = backend or create_backend(config.backend)
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._closed = False
        self._log = logger.bind(component="scout_service")

    @property
    def config(self) -> ScoutConfig:
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Connect the backend ahead of the first search."""
        if self._closed:
            raise RuntimeError("Service is closed")
        if not self._backend.is_connected:
            await self._backend.connect()
            self._log.info("Service started", transport=self._config.backend.transport)

    async def search(
        self,
        request: SearchRequest,
        on_phase_update: PhaseObserver | None = None,
    ) -> RunReport:
        """
        Run one search request in its own remote session.

        Raises:
            PhaseFailedError: If a phase failed
            RuntimeError: If the service was closed
        """
        if self._closed:
            raise RuntimeError("Service is closed")

        async with self._lock:
            pipeline = ScoutPipeline.create(
                self._backend, self._config, sleep=self._sleep, clock=self._clock
            )
            return await pipeline.run(request, on_phase_update)

    async def aclose(self) -> None:
        """Release the backend. Further searches are refused."""
        if self._closed:
            return
        self._closed = True
        async with self._lock:
            await self._backend.aclose()
        self._log.info("Service closed")

    async def __aenter__(self) -> ScoutService:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


__all__ = ["ScoutService"]
