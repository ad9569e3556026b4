"""
Session and capture management.

Owns the authentication state of one remote session and the bulk
open/capture/close loop used to extract detail views.
"""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable

import structlog

from designscout.config import CaptureConfig, Credentials, SiteProfile
from designscout.gateway.client import RemoteActionGateway
from designscout.gateway.errors import GatewayError
from designscout.models import (
    AUTH_TRANSITIONS,
    AuthenticationState,
    CapturedResult,
    Platform,
    RouteKind,
)
from designscout.session.auth import (
    AuthDetection,
    AuthenticationError,
    LoginFailedError,
    LoginFlow,
    detect_authentication,
)
from designscout.session.titles import build_title_script, default_title, extract_title

logger = structlog.get_logger(__name__)

OpenItem = Callable[[int], Awaitable[None]]

SOURCE_DETAIL_VIEW = "detail_view"
SOURCE_SALVAGED_URL = "salvaged_url"


class CaptureError(Exception):
    """A single item could not be opened or captured."""


class SessionCaptureManager:
    """
    Authentication state and bulk capture for one remote session.

    Authentication is attempted at most once per manager: once the state is
    AUTHENTICATED it is never re-checked, and once LOGIN_FAILED every further
    call raises without re-running the login flow.
    """

    def __init__(
        self,
        gateway: RemoteActionGateway,
        credentials: Credentials,
        site: SiteProfile | None = None,
        capture: CaptureConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials.require()
        self._site = site or SiteProfile()
        self._capture = capture or CaptureConfig()
        self._state = AuthenticationState.UNKNOWN
        self._title_script = build_title_script(self._site.detail_container_selector)
        self._lock_script = (
            f"document.querySelectorAll({json.dumps(self._site.leaving_link_selector)})"
            ".forEach((a) => { a.style.pointerEvents = 'none'; a.setAttribute('tabindex', '-1'); })"
        )
        self._log = logger.bind(component="session_manager")

    @property
    def state(self) -> AuthenticationState:
        return self._state

    def _transition(self, new_state: AuthenticationState) -> None:
        if new_state not in AUTH_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid auth transition {self._state} -> {new_state}")
        self._log.debug("Auth state changed", old=self._state, new=new_state)
        self._state = new_state

    async def detect(self) -> AuthDetection:
        """Read the page's visible text and apply the detection heuristics."""
        text = await self._gateway.get_visible_text()
        detection = detect_authentication(text, self._site)
        self._log.debug(
            "Auth detection",
            authenticated=detection.authenticated,
            login_markers=detection.login_markers,
            account_markers=detection.account_markers,
        )
        return detection

    async def check_and_ensure_authenticated(self) -> AuthenticationState:
        """
        Make sure the session is logged in, logging in at most once.

        Returns:
            AuthenticationState.AUTHENTICATED

        Raises:
            LoginFailedError: If the login flow failed now or earlier
            AuthenticationError: If an earlier check never completed
            GatewayError: If the page could not be read during the check
        """
        if self._state == AuthenticationState.AUTHENTICATED:
            return self._state
        if self._state == AuthenticationState.LOGIN_FAILED:
            raise LoginFailedError("Login already failed for this session, not retrying")
        if self._state != AuthenticationState.UNKNOWN:
            raise AuthenticationError(
                f"Authentication check did not complete earlier (state: {self._state})"
            )

        self._transition(AuthenticationState.CHECKING)
        detection = await self.detect()
        if detection.authenticated:
            self._transition(AuthenticationState.AUTHENTICATED)
            self._log.info("Session already authenticated")
            return self._state

        self._transition(AuthenticationState.LOGIN_REQUIRED)
        self._log.info("Login required", login_markers=detection.login_markers)

        try:
            await LoginFlow(self._gateway, self._site, self._credentials).run()
            verification = await self.detect()
        except (AuthenticationError, GatewayError) as e:
            self._transition(AuthenticationState.LOGIN_FAILED)
            self._log.error("Login flow failed", error=str(e))
            raise LoginFailedError(f"Login flow failed: {e}") from e

        if not verification.authenticated:
            self._transition(AuthenticationState.LOGIN_FAILED)
            self._log.error(
                "Login not confirmed",
                login_markers=verification.login_markers,
                account_markers=verification.account_markers,
            )
            raise LoginFailedError("Login flow completed but the session is still not authenticated")

        self._transition(AuthenticationState.AUTHENTICATED)
        self._log.info("Login succeeded")
        return self._state

    async def _read_title(self, route: RouteKind) -> str:
        try:
            page_html = await self._gateway.evaluate_json(self._title_script, retry_count=0)
        except GatewayError as e:
            self._log.debug("Title extraction failed", error=str(e))
            return default_title(route)
        if not isinstance(page_html, str):
            return default_title(route)
        return extract_title(page_html, route, self._site.generic_titles)

    async def _close_detail_view(self, detail: re.Pattern[str]) -> None:
        """Close key, then close again if the detail view is still open."""
        close_key = self._capture.close_key
        try:
            await self._gateway.press_key(close_key, retry_count=0)
            await self._gateway.pause(self._capture.close_settle_ms)
            if detail.search(await self._gateway.get_current_url(retry_count=0)):
                self._log.debug("Detail view still open, closing again")
                await self._gateway.press_key(close_key, retry_count=0)
                await self._gateway.pause(self._capture.second_close_settle_ms)
        except GatewayError as e:
            self._log.warning("Closing detail view failed", error=str(e))
        await self._gateway.pause(self._capture.dom_settle_ms)

    async def capture_n(
        self,
        open_item: OpenItem,
        n: int,
        keyword: str,
        route: RouteKind,
        platform: Platform,
    ) -> list[CapturedResult]:
        """
        Open, capture and close ``n`` items in turn.

        A failing item is salvaged from the current URL when it still shows a
        detail view, otherwise skipped; the batch always continues.

        Args:
            open_item: Opens the item at the given index
            n: Number of items to attempt
            keyword: Search term the items belong to
            route: Route kind being captured
            platform: Platform being searched

        Returns:
            Captured results in index order
        """
        pattern = self._site.detail_pattern_for(route)
        detail = re.compile(pattern)
        results: list[CapturedResult] = []
        log = self._log.bind(keyword=keyword, route=route)

        for index in range(n):
            try:
                await open_item(index)
                url = await self._gateway.wait_for_url_matching(
                    pattern, self._capture.detail_timeout_ms
                )
                title = await self._read_title(route)
                results.append(
                    CapturedResult(
                        url=url,
                        title=title,
                        route_kind=route,
                        keyword=keyword,
                        platform=platform,
                        position=index + 1,
                        source_strategy=SOURCE_DETAIL_VIEW,
                    )
                )
                log.info("Captured item", index=index, url=url, title=title)

                if self._capture.lock_detail_links:
                    try:
                        await self._gateway.evaluate(self._lock_script, retry_count=0)
                    except GatewayError as e:
                        log.debug("Locking detail links failed", error=str(e))

            except Exception as e:
                log.warning("Capture failed", index=index, error=str(e))
                current = await self._gateway.get_current_url(retry_count=0)
                if detail.search(current):
                    results.append(
                        CapturedResult(
                            url=current,
                            title=default_title(route),
                            route_kind=route,
                            keyword=keyword,
                            platform=platform,
                            position=index + 1,
                            source_strategy=SOURCE_SALVAGED_URL,
                        )
                    )
                    log.info("Salvaged item from current URL", index=index, url=current)
                else:
                    log.info("Skipped item", index=index)

            finally:
                await self._close_detail_view(detail)

        log.info("Capture batch finished", attempted=n, captured=len(results))
        return results

    async def dismiss_modals(self) -> None:
        """Click any visible modal close control, then send the close key."""
        for locator in self._site.close_modal_locators:
            try:
                await self._gateway.click(locator, retry_count=0)
                self._log.debug("Modal closed", locator=locator)
                break
            except GatewayError:
                continue
        try:
            await self._gateway.press_key(self._capture.close_key, retry_count=0)
        except GatewayError as e:
            self._log.debug("Close key failed", error=str(e))

    async def return_home(self) -> None:
        """Go back to the site's home view, by logo link or direct navigation."""
        await self.dismiss_modals()
        for locator in self._site.home_locators:
            try:
                await self._gateway.click(locator, retry_count=0)
            except GatewayError:
                continue
            await self._gateway.pause(self._site.home_settle_ms)
            self._log.debug("Returned home", locator=locator)
            return
        await self._gateway.navigate(self._site.base_url)


__all__ = [
    "CaptureError",
    "OpenItem",
    "SessionCaptureManager",
]
