"""
Authentication detection and the credential login flow.

Detection is conservative: a page counts as authenticated only when no
login-prompt vocabulary is visible and some account vocabulary is.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import structlog

from designscout.config import Credentials, SiteProfile
from designscout.gateway.client import RemoteActionGateway
from designscout.gateway.errors import GatewayError
from designscout.models import WorkflowStep

logger = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """The session is not authenticated or its auth state cannot be established."""


class LoginFailedError(AuthenticationError):
    """The login flow ran and did not produce an authenticated session."""


@dataclass(frozen=True)
class AuthDetection:
    """Vocabulary found on the current page."""

    login_markers: list[str] = field(default_factory=list)
    account_markers: list[str] = field(default_factory=list)

    @property
    def authenticated(self) -> bool:
        return not self.login_markers and bool(self.account_markers)


def detect_authentication(page_text: str, site: SiteProfile) -> AuthDetection:
    """Apply the login and account vocabulary heuristics to visible text."""
    lowered = page_text.lower()
    return AuthDetection(
        login_markers=[term for term in site.login_vocabulary if term.lower() in lowered],
        account_markers=[term for term in site.account_vocabulary if term.lower() in lowered],
    )


class LoginFlow:
    """
    Fixed multi-step credential login.

    Steps: open the login entry point, fill the identifier, continue (never
    through a third-party SSO button), fill the secret, continue, settle.
    Each step tries its locators in priority order and uses the first that
    works.
    """

    def __init__(
        self,
        gateway: RemoteActionGateway,
        site: SiteProfile,
        credentials: Credentials,
    ) -> None:
        self._gateway = gateway
        self._site = site
        self._credentials = credentials
        self._log = logger.bind(component="login_flow")

    async def _first_working(
        self,
        purpose: str,
        locators: Sequence[str],
        make_step: Callable[[str], WorkflowStep],
    ) -> str:
        for locator in locators:
            try:
                await self._gateway.execute(make_step(locator))
            except GatewayError as e:
                self._log.debug("Locator failed", purpose=purpose, locator=locator, error=str(e))
                continue
            self._log.debug("Locator worked", purpose=purpose, locator=locator)
            return locator
        raise AuthenticationError(f"No working locator for {purpose}")

    def _click(self, description: str) -> Callable[[str], WorkflowStep]:
        return lambda locator: WorkflowStep.click(locator, description, retry_count=0)

    def _fill(self, value: str, description: str) -> Callable[[str], WorkflowStep]:
        return lambda locator: WorkflowStep.fill(locator, value, description, retry_count=0)

    async def run(self) -> None:
        """
        Run the flow.

        Raises:
            AuthenticationError: If a step found no working locator
        """
        site = self._site
        self._log.info("Starting login flow")

        await self._first_working(
            "login entry point", site.login_entry_locators, self._click("Open login")
        )
        await self._gateway.pause(site.login_entry_settle_ms)

        await self._first_working(
            "email field",
            site.email_locators,
            self._fill(self._credentials.identifier.get_secret_value(), "Fill email"),
        )
        await self._first_working(
            "continue after email", site.continue_locators, self._click("Continue")
        )
        await self._gateway.pause(site.login_step_settle_ms)

        await self._first_working(
            "password field",
            site.password_locators,
            self._fill(self._credentials.secret.get_secret_value(), "Fill password"),
        )
        await self._first_working(
            "continue after password", site.continue_locators, self._click("Continue")
        )
        await self._gateway.pause(site.login_submit_settle_ms)

        self._log.info("Login flow submitted")


__all__ = [
    "AuthDetection",
    "AuthenticationError",
    "LoginFailedError",
    "LoginFlow",
    "detect_authentication",
]
