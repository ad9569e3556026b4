"""Pytest fixtures for DesignScout tests."""

from __future__ import annotations

import random

import pytest
from pydantic import SecretStr

from designscout.config import (
    CaptureConfig,
    Credentials,
    RetryPolicy,
    ScoutConfig,
    SiteProfile,
)
from designscout.gateway.client import RemoteActionGateway
from fakes import FakeClock, ScriptedBackend


@pytest.fixture
def clock() -> FakeClock:
    """Virtual clock shared by the gateway and the orchestrator."""
    return FakeClock()


@pytest.fixture
def backend() -> ScriptedBackend:
    """Scripted remote backend with an authenticated page."""
    return ScriptedBackend()


@pytest.fixture
def site() -> SiteProfile:
    return SiteProfile()


@pytest.fixture
def capture_config() -> CaptureConfig:
    return CaptureConfig()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        identifier=SecretStr("designer@example.com"),
        secret=SecretStr("hunter22"),
    )


@pytest.fixture
def scout_config(credentials: Credentials) -> ScoutConfig:
    return ScoutConfig(credentials=credentials)


@pytest.fixture
def gateway(backend: ScriptedBackend, clock: FakeClock) -> RemoteActionGateway:
    """Gateway over the scripted backend with virtual time."""
    return RemoteActionGateway(
        backend,
        retry=RetryPolicy(),
        sleep=clock.sleep,
        clock=clock.monotonic,
        rng=random.Random(7),
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DESIGNSCOUT_* variables of the developer's shell out of tests."""
    for name in (
        "DESIGNSCOUT_EMAIL",
        "DESIGNSCOUT_PASSWORD",
        "DESIGNSCOUT_HEADLESS",
        "DESIGNSCOUT_DEBUG_SCREENSHOTS",
        "DESIGNSCOUT_TRANSPORT",
        "DESIGNSCOUT_BACKEND_URL",
        "DESIGNSCOUT_BASE_URL",
        "DESIGNSCOUT_CONFIG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
