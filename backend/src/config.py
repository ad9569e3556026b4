"""
Configuration models for DesignScout.

Provides Pydantic-validated configuration for the remote backend, the retry
policy, capture timings and the target-site profile (selectors, vocabularies
and URL patterns), loaded from YAML and environment variables.
"""

from __future__ import annotations

from enum import StrEnum
from functools import cached_property
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from designscout.models import ErrorType, Platform, RouteKind, SuggestionKind


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


class TransportKind(StrEnum):
    """Supported remote backend transports."""

    MCP_STDIO = "mcp-stdio"
    HTTP = "http"


class RetryPolicy(BaseModel):
    """Retry and recovery behaviour for remote backend calls."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay_ms: int = Field(default=1000, ge=0, le=30000)
    max_delay_ms: int = Field(default=60000, ge=0, le=300000)
    exponential_base: float = Field(default=2.0, ge=1.0, le=4.0)
    jitter: bool = False
    retryable_errors: frozenset[ErrorType] = Field(
        default=frozenset(
            {
                ErrorType.TIMEOUT,
                ErrorType.NETWORK,
                ErrorType.ELEMENT_NOT_FOUND,
                ErrorType.RATE_LIMIT,
            }
        )
    )

    # Recovery transforms
    timeout_multiplier: float = Field(default=1.5, ge=1.0, le=4.0)
    timeout_cap_ms: int = Field(default=60000, ge=1000)
    rate_limit_extra_delay_ms: tuple[int, int] = (5000, 8000)
    navigation_timeout_ms: int = Field(default=30000, ge=1000)
    unknown_error_delay_ms: int = Field(default=1000, ge=0)

    @field_validator("rate_limit_extra_delay_ms")
    @classmethod
    def validate_delay_range(cls, v: tuple[int, int]) -> tuple[int, int]:
        """Ensure the randomized delay range is ordered and non-negative."""
        low, high = v
        if low < 0 or high < low:
            raise ValueError("rate_limit_extra_delay_ms must be (low, high) with 0 <= low <= high")
        return v

    def is_retryable(self, error_type: ErrorType) -> bool:
        return error_type in self.retryable_errors


class BrowserConfig(BaseModel):
    """Browser launch arguments sent with every navigation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    browser_type: str = "chromium"
    width: int = Field(default=1280, ge=320, le=7680)
    height: int = Field(default=720, ge=240, le=4320)
    headless: bool = True
    navigation_timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    debug_screenshots: bool = False


class BackendConfig(BaseModel):
    """How to reach the remote automation backend."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transport: TransportKind = TransportKind.MCP_STDIO
    command: str = "npx"
    args: list[str] = Field(
        default_factory=lambda: ["-y", "@executeautomation/playwright-mcp-server"]
    )
    env: dict[str, str] | None = None
    base_url: str = "http://localhost:8931"
    request_timeout_ms: int = Field(default=30000, ge=1000, le=600000)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base_url is valid and strip trailing slashes."""
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v


class CaptureConfig(BaseModel):
    """Timings for the open/capture/close loop."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    results_per_keyword: int = Field(default=5, ge=1, le=50)
    detail_timeout_ms: int = Field(default=5000, ge=100)
    url_poll_interval_ms: int = Field(default=200, ge=10)
    url_poll_error_backoff_ms: int = Field(default=500, ge=10)
    close_key: str = "Escape"
    close_settle_ms: int = Field(default=800, ge=0)
    second_close_settle_ms: int = Field(default=600, ge=0)
    dom_settle_ms: int = Field(default=600, ge=0)
    results_settle_ms: int = Field(default=3000, ge=0)
    lock_detail_links: bool = True


class ClassificationRule(BaseModel):
    """Keyword rule assigning a suggestion kind and confidence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: SuggestionKind
    terms: list[str]
    confidence: float = Field(ge=0.0, le=1.0)


def _default_classification_rules() -> list[ClassificationRule]:
    return [
        ClassificationRule(
            kind=SuggestionKind.APP,
            terms=["bank", "banking", "chase", "wells", "america", "finance",
                   "credit", "paypal", "venmo"],
            confidence=0.9,
        ),
        ClassificationRule(
            kind=SuggestionKind.FLOW,
            terms=["flow", "flows", "onboarding", "signup", "sign up", "registration"],
            confidence=0.85,
        ),
        ClassificationRule(
            kind=SuggestionKind.TEXT_SEARCH,
            terms=["text in screenshot"],
            confidence=0.8,
        ),
        ClassificationRule(
            kind=SuggestionKind.UI_ELEMENT,
            terms=["ui element", "ui elements", "component", "button", "tab bar"],
            confidence=0.8,
        ),
        ClassificationRule(
            kind=SuggestionKind.SCREEN,
            terms=["screen", "screens", "login", "ui"],
            confidence=0.85,
        ),
    ]


class SiteProfile(BaseModel):
    """
    Target-site selectors, vocabularies and URL patterns.

    Defaults target mobbin.com; every value can be overridden from YAML.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "https://mobbin.com"

    # Search entry points
    search_entry: dict[Platform, str] = Field(
        default_factory=lambda: {
            Platform.IOS: "text=Search on iOS...",
            Platform.WEB: "text=Search on Web...",
            Platform.ANDROID: "text=Search on Android...",
        }
    )
    search_input: str = 'input[type="text"]'
    search_submit: str = 'button[type="submit"], [aria-label="Search"], .search-button'

    # Suggestion discovery
    stable_suggestion_locator: str = 'div[role="option"].flex.h-56.cursor-pointer'
    suggestion_patterns: list[str] = Field(
        default_factory=lambda: [
            '[role="option"]',
            ".suggestion-item",
            ".dropdown-item",
            ".search-suggestion",
            '[data-testid*="suggestion"]',
            ".autocomplete-item",
            ".search-result-item",
            'li[role="option"]',
            ".menu-item",
            '[class*="suggestion"]',
            '[class*="dropdown"]',
            'div[tabindex="0"]',
            ".react-select__option",
            ".select-option",
            "ul > li",
            ".list-item",
        ]
    )
    broad_scan_tags: list[str] = Field(default_factory=lambda: ["div", "li", "a", "span"])
    broad_scan_text_range: tuple[int, int] = (5, 100)
    broad_scan_limit: int = Field(default=5, ge=1, le=50)
    max_candidates: int = Field(default=10, ge=1, le=100)
    suggestion_settle_ms: int = Field(default=5000, ge=0)
    classification_rules: list[ClassificationRule] = Field(
        default_factory=_default_classification_rules
    )
    default_kind: SuggestionKind = SuggestionKind.GENERAL
    default_confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    # Authentication
    login_vocabulary: list[str] = Field(
        default_factory=lambda: ["log in", "login", "sign in", "join for free"]
    )
    account_vocabulary: list[str] = Field(
        default_factory=lambda: [
            "profile", "account", "logout", "log out", "dashboard", "settings",
        ]
    )
    login_entry_locators: list[str] = Field(
        default_factory=lambda: [
            'a[href="/login"]',
            'a[href*="login"]',
            '[data-sentry-component="PublicPagesLink"]',
            '[data-sentry-element="LinkComponent"]',
            'a:has-text("Log in")',
            '[href*="login"]',
            'button:has-text("Login")',
            '[data-testid="login-button"]',
            ".login-btn",
        ]
    )
    email_locators: list[str] = Field(
        default_factory=lambda: [
            'input[type="email"]',
            'input[name="email"]',
            'input[placeholder*="email" i]',
            "#email",
            ".email-input",
        ]
    )
    password_locators: list[str] = Field(
        default_factory=lambda: [
            'input[type="password"]',
            'input[name="password"]',
            'input[placeholder*="password" i]',
            "#password",
            ".password-input",
        ]
    )
    continue_locators: list[str] = Field(
        default_factory=lambda: [
            'button[type="submit"]:not(:has-text("Google"))',
            'button:has-text("Continue"):not(:has-text("Google")):not(:has-text("with"))',
            'form:has(input[type="email"]) button[type="submit"]',
            'form:has(input[type="password"]) button[type="submit"]',
            'button:has-text("Log in"):not(:has-text("Google"))',
        ]
    )
    login_entry_settle_ms: int = Field(default=3000, ge=0)
    login_step_settle_ms: int = Field(default=2000, ge=0)
    login_submit_settle_ms: int = Field(default=5000, ge=0)
    home_settle_ms: int = Field(default=2000, ge=0)

    # Navigation and detail views
    home_locators: list[str] = Field(
        default_factory=lambda: [
            'a[href="/"]',
            '[data-testid="logo"]',
            'a[aria-label="Home"]',
            ".logo",
        ]
    )
    close_modal_locators: list[str] = Field(
        default_factory=lambda: [
            '[data-testid="close-modal"]',
            ".modal-close",
            ".close-button",
            '[aria-label="Close"]',
        ]
    )
    result_cell_selector: str = 'div[data-sentry-component="ScreenCell"]'
    detail_url_pattern: str = r"/screens/[a-f0-9-]+"
    detail_url_patterns: dict[RouteKind, str] = Field(default_factory=dict)
    detail_container_selector: str = '[role="dialog"]'
    leaving_link_selector: str = 'a[href*="/apps/"], a[href*="/brand"]'
    generic_titles: list[str] = Field(default_factory=lambda: ["mobbin"])

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base_url is an absolute http(s) URL without trailing slash."""
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    def detail_pattern_for(self, route: RouteKind) -> str:
        return self.detail_url_patterns.get(route, self.detail_url_pattern)


class Credentials(BaseModel):
    """Login identifier and secret for the target site."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identifier: SecretStr = SecretStr("")
    secret: SecretStr = SecretStr("")

    @property
    def is_complete(self) -> bool:
        return bool(self.identifier.get_secret_value() and self.secret.get_secret_value())

    def require(self) -> Self:
        """Return self, or raise when either value is missing."""
        if not self.is_complete:
            raise ConfigurationError(
                "Login credentials are required: set DESIGNSCOUT_EMAIL and DESIGNSCOUT_PASSWORD"
            )
        return self


class ScoutConfig(BaseModel):
    """Complete DesignScout configuration."""

    model_config = ConfigDict(extra="forbid")

    backend: BackendConfig = Field(default_factory=BackendConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    site: SiteProfile = Field(default_factory=SiteProfile)
    credentials: Credentials = Field(default_factory=Credentials)
    default_platform: Platform = Platform.IOS

    @model_validator(mode="after")
    def validate_capture_timing(self) -> Self:
        """The URL poll interval must fit inside the detail-view timeout."""
        if self.capture.url_poll_interval_ms > self.capture.detail_timeout_ms:
            raise ValueError("capture.url_poll_interval_ms exceeds capture.detail_timeout_ms")
        return self

    def masked(self) -> dict[str, Any]:
        """Dump configuration with secrets masked."""
        data = self.model_dump(mode="json")
        data["credentials"] = {
            "identifier": "**********" if self.credentials.identifier.get_secret_value() else "",
            "secret": "**********" if self.credentials.secret.get_secret_value() else "",
        }
        return data


class ScoutSettings(BaseSettings):
    """
    Environment-based settings.

    Loads configuration from environment variables with DESIGNSCOUT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DESIGNSCOUT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    email: SecretStr = SecretStr("")
    password: SecretStr = SecretStr("")
    headless: bool | None = None
    debug_screenshots: bool | None = None
    transport: TransportKind | None = None
    backend_url: str | None = None
    base_url: str | None = None

    config_file: Path | None = None

    @cached_property
    def overrides(self) -> dict[str, Any]:
        """Nested config overrides for values set in the environment."""
        data: dict[str, Any] = {}
        if self.email.get_secret_value():
            data.setdefault("credentials", {})["identifier"] = self.email.get_secret_value()
        if self.password.get_secret_value():
            data.setdefault("credentials", {})["secret"] = self.password.get_secret_value()
        if self.headless is not None:
            data.setdefault("browser", {})["headless"] = self.headless
        if self.debug_screenshots is not None:
            data.setdefault("browser", {})["debug_screenshots"] = self.debug_screenshots
        if self.transport is not None:
            data.setdefault("backend", {})["transport"] = self.transport
        if self.backend_url:
            data.setdefault("backend", {})["base_url"] = self.backend_url
        if self.base_url:
            data.setdefault("site", {})["base_url"] = self.base_url
        return data


STANDARD_CONFIG_PATHS = [
    Path(".designscout/config.yaml"),
    Path(".designscout/config.yml"),
    Path("designscout.yaml"),
    Path("designscout.yml"),
]


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_scout_config(
    config_file: Path | str | None = None,
    env_override: bool = True,
) -> ScoutConfig:
    """
    Load configuration from file and/or environment.

    Priority (highest to lowest):
    1. Environment variables (if env_override=True)
    2. Config file
    3. Defaults

    Args:
        config_file: Optional path to YAML config file
        env_override: Whether environment variables override file config

    Returns:
        Complete ScoutConfig instance

    Raises:
        ConfigurationError: If the file or the merged values are invalid
    """
    settings = ScoutSettings()
    path = Path(config_file) if config_file else settings.config_file

    file_config: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        file_config = _read_yaml(path)
    else:
        for candidate in STANDARD_CONFIG_PATHS:
            if candidate.exists():
                file_config = _read_yaml(candidate)
                break

    if env_override:
        data = _deep_merge(file_config, settings.overrides)
    else:
        data = _deep_merge(settings.overrides, file_config)

    try:
        return ScoutConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
