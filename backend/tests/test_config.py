"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import SecretStr, ValidationError

from designscout.config import (
    BackendConfig,
    CaptureConfig,
    ConfigurationError,
    Credentials,
    RetryPolicy,
    ScoutConfig,
    ScoutSettings,
    SiteProfile,
    TransportKind,
    load_scout_config,
)
from designscout.models import ErrorType, Platform, RouteKind


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()

        assert policy.max_retries == 3
        assert policy.initial_delay_ms == 1000
        assert policy.exponential_base == 2.0
        assert policy.rate_limit_extra_delay_ms == (5000, 8000)
        assert policy.is_retryable(ErrorType.TIMEOUT)
        assert policy.is_retryable(ErrorType.RATE_LIMIT)
        assert not policy.is_retryable(ErrorType.PERMISSION)
        assert not policy.is_retryable(ErrorType.NAVIGATION)
        assert not policy.is_retryable(ErrorType.UNKNOWN)

    def test_invalid_delay_range(self) -> None:
        with pytest.raises(ValidationError, match="rate_limit_extra_delay_ms"):
            RetryPolicy(rate_limit_extra_delay_ms=(8000, 5000))

    def test_frozen(self) -> None:
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.max_retries = 5  # type: ignore[misc]


class TestModels:
    """Tests for the other configuration models."""

    def test_backend_base_url_normalised(self) -> None:
        assert BackendConfig(base_url="http://localhost:8931/").base_url == "http://localhost:8931"
        with pytest.raises(ValidationError, match="http"):
            BackendConfig(base_url="localhost")

    def test_site_defaults(self) -> None:
        site = SiteProfile()

        assert site.base_url == "https://mobbin.com"
        assert site.search_entry[Platform.IOS] == "text=Search on iOS..."
        assert site.detail_pattern_for(RouteKind.SCREENS) == r"/screens/[a-f0-9-]+"

    def test_site_route_pattern_override(self) -> None:
        site = SiteProfile(detail_url_patterns={RouteKind.FLOWS: r"/flows/\w+"})
        assert site.detail_pattern_for(RouteKind.FLOWS) == r"/flows/\w+"
        assert site.detail_pattern_for(RouteKind.APPS) == r"/screens/[a-f0-9-]+"

    def test_credentials(self) -> None:
        assert not Credentials().is_complete
        with pytest.raises(ConfigurationError, match="DESIGNSCOUT_EMAIL"):
            Credentials(identifier=SecretStr("a@b.c")).require()

        complete = Credentials(identifier=SecretStr("a@b.c"), secret=SecretStr("pw"))
        assert complete.require() is complete

    def test_poll_interval_must_fit_timeout(self) -> None:
        with pytest.raises(ValidationError, match="url_poll_interval_ms"):
            ScoutConfig(capture=CaptureConfig(detail_timeout_ms=100, url_poll_interval_ms=200))

    def test_masked(self) -> None:
        config = ScoutConfig(
            credentials=Credentials(identifier=SecretStr("a@b.c"), secret=SecretStr("pw"))
        )

        masked = config.masked()

        assert masked["credentials"] == {"identifier": "**********", "secret": "**********"}
        assert "pw" not in str(masked["credentials"])
        assert masked["retry"]["max_retries"] == 3


class TestScoutSettings:
    """Tests for environment-based settings."""

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DESIGNSCOUT_EMAIL", "designer@example.com")
        monkeypatch.setenv("DESIGNSCOUT_PASSWORD", "secret")
        monkeypatch.setenv("DESIGNSCOUT_HEADLESS", "false")
        monkeypatch.setenv("DESIGNSCOUT_TRANSPORT", "http")

        overrides = ScoutSettings().overrides

        assert overrides["credentials"] == {"identifier": "designer@example.com", "secret": "secret"}
        assert overrides["browser"] == {"headless": False}
        assert overrides["backend"] == {"transport": TransportKind.HTTP}

    def test_no_env(self) -> None:
        assert ScoutSettings().overrides == {}


class TestLoadScoutConfig:
    """Tests for load_scout_config."""

    @pytest.fixture(autouse=True)
    def isolated_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

    def test_defaults(self) -> None:
        config = load_scout_config()

        assert config.backend.transport == TransportKind.MCP_STDIO
        assert config.capture.results_per_keyword == 5
        assert not config.credentials.is_complete

    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "backend": {"transport": "http", "base_url": "http://automation:9000"},
                    "retry": {"max_retries": 1},
                    "capture": {"results_per_keyword": 8},
                    "default_platform": "web",
                }
            )
        )

        config = load_scout_config(path)

        assert config.backend.transport == TransportKind.HTTP
        assert config.backend.base_url == "http://automation:9000"
        assert config.retry.max_retries == 1
        assert config.capture.results_per_keyword == 8
        assert config.default_platform == Platform.WEB

    def test_standard_path(self, tmp_path: Path) -> None:
        (tmp_path / ".designscout").mkdir()
        (tmp_path / ".designscout" / "config.yaml").write_text("capture:\n  results_per_keyword: 2\n")

        assert load_scout_config().capture.results_per_keyword == 2

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "designscout.yaml"
        path.write_text("browser:\n  headless: true\n  width: 1440\n")
        monkeypatch.setenv("DESIGNSCOUT_HEADLESS", "false")
        monkeypatch.setenv("DESIGNSCOUT_EMAIL", "designer@example.com")
        monkeypatch.setenv("DESIGNSCOUT_PASSWORD", "secret")

        config = load_scout_config()

        assert config.browser.headless is False
        assert config.browser.width == 1440
        assert config.credentials.is_complete

    def test_file_wins_without_env_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "designscout.yaml"
        path.write_text("browser:\n  headless: true\n")
        monkeypatch.setenv("DESIGNSCOUT_HEADLESS", "false")

        assert load_scout_config(env_override=False).browser.headless is True

    def test_config_file_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "elsewhere.yml"
        path.write_text("capture:\n  close_key: Backspace\n")
        monkeypatch.setenv("DESIGNSCOUT_CONFIG_FILE", str(path))

        assert load_scout_config().capture.close_key == "Backspace"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_scout_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("retry: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_scout_config(path)

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("retry:\n  max_retries: 99\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_scout_config(path)

    def test_unknown_keys_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "typo.yaml"
        path.write_text("capture:\n  results_per_keywrd: 3\n")

        with pytest.raises(ConfigurationError):
            load_scout_config(path)
