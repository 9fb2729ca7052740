"""Unattended credential entry across the Adobe ID and Okta pages.

Each loop iteration classifies the current URL, hands the page to the
handler registered for that provider and re-dispatches whenever the
handler reports that the page moved to another provider. When Okta ends
on a push screen, a bounded wait watches for the user to approve it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog
from playwright.async_api import Error as PlaywrightError

from workfront_session.auth.locators import (
    Provider,
    classify_provider,
    is_broker_url,
    is_destination_url,
    is_push_heading,
)
from workfront_session.auth.providers import discover_providers, get_handler
from workfront_session.auth.providers.base import StepOutcome
from workfront_session.models import Credentials, LoginPhase, LoginSettings

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger()

HEADING_SELECTOR = 'h1, h2, h3, [data-se="o-form-head"]'
MAX_PROVIDER_HOPS = 6
PROVIDER_WAIT_POLLS = 10


class AutomaticOutcome(str, Enum):
    SUBMITTED = "submitted"
    DEVICE_CONFIRMED = "device_confirmed"
    DEGRADED = "degraded"


class AutomaticLogin:
    """Fills sign-in forms on behalf of the user.

    Args:
        settings: Driver timing knobs.
        report: Called with (phase, message) on every visible progress step.
        checkpoint: Called before each wait; raises to abandon the run.
    """

    def __init__(
        self,
        settings: LoginSettings,
        *,
        report: Callable[[LoginPhase, str], None],
        checkpoint: Callable[[], None],
    ) -> None:
        self.settings = settings
        self.report = report
        self.checkpoint = checkpoint
        self.log = logger.bind(flow="automatic_login")
        discover_providers()

    async def run(self, page: Page, credentials: Credentials) -> AutomaticOutcome:
        self.report(LoginPhase.AUTOMATIC_LOGIN, "Filling in credentials")

        outcome: StepOutcome | None = None
        hops = 0
        while hops < MAX_PROVIDER_HOPS:
            self.checkpoint()
            provider = self._classify(page.url)
            if provider is Provider.UNKNOWN:
                if hops:
                    break
                provider = await self._wait_for_provider(page)
                if provider is Provider.UNKNOWN:
                    self.log.info("no_sign_in_page", url=page.url)
                    break

            handler = get_handler(provider, self.settings)
            self.log.info("provider_dispatch", provider=provider.value, hop=hops + 1)
            outcome = await handler.handle(page, credentials)
            hops += 1
            if outcome is not StepOutcome.REDIRECTED:
                break

        if await self.push_screen_visible(page):
            if await self.wait_for_device_confirmation(page):
                return AutomaticOutcome.DEVICE_CONFIRMED
            return AutomaticOutcome.DEGRADED

        if outcome is None or outcome is StepOutcome.NEEDS_HUMAN:
            self.log.info("automatic_login_degraded", hops=hops)
            return AutomaticOutcome.DEGRADED
        if outcome is StepOutcome.REDIRECTED and not self._reached_portal(page.url):
            # Moved to a host no handler knows, e.g. an unlisted Okta domain.
            self.log.info("redirected_to_unknown_host", url=page.url, hops=hops)
            return AutomaticOutcome.DEGRADED
        return AutomaticOutcome.SUBMITTED

    def _classify(self, url: str) -> Provider:
        return classify_provider(url, self.settings.broker_host_markers)

    def _on_broker(self, url: str) -> bool:
        return is_broker_url(url, self.settings.broker_host_markers)

    def _reached_portal(self, url: str) -> bool:
        """True once the page is back on Workfront or the Experience Cloud host."""
        if is_destination_url(url):
            return True
        portal = urlparse(self.settings.login_url).hostname
        return bool(portal) and urlparse(url).hostname == portal

    async def _wait_for_provider(self, page: Page) -> Provider:
        """The portal entry page redirects to Adobe ID client-side; wait for it."""
        for _ in range(PROVIDER_WAIT_POLLS):
            self.checkpoint()
            await asyncio.sleep(self.settings.step_settle_ms / 1000)
            provider = self._classify(page.url)
            if provider is not Provider.UNKNOWN:
                return provider
        return Provider.UNKNOWN

    async def _push_headings(self, page: Page) -> bool:
        texts = await page.locator(HEADING_SELECTOR).all_text_contents()
        return any(is_push_heading(text) for text in texts)

    async def push_screen_visible(self, page: Page) -> bool:
        if not self._on_broker(page.url):
            return False
        try:
            return await self._push_headings(page)
        except PlaywrightError as e:
            self.log.debug("push_heading_check_failed", error=str(e))
            return False

    async def wait_for_device_confirmation(self, page: Page) -> bool:
        """Wait for the user to approve the push on their phone.

        Confirmation is either leaving the Okta domain or the push heading
        going away. Navigation errors ("execution context was destroyed")
        usually mean the page moved on, so they are judged by the URL.
        """
        self.report(
            LoginPhase.WAITING_DEVICE_CONFIRMATION,
            "Approve the push notification on your device",
        )
        interval = self.settings.push_poll_interval_ms / 1000

        for poll in range(1, self.settings.push_max_polls + 1):
            self.checkpoint()
            await asyncio.sleep(interval)
            try:
                if not self._on_broker(page.url):
                    return self._confirmed(poll, reason="left_broker")
                if not await self._push_headings(page):
                    return self._confirmed(poll, reason="push_heading_gone")
            except PlaywrightError as e:
                if not self._on_broker(page.url):
                    return self._confirmed(poll, reason="navigated_away")
                self.log.info("device_wait_transient_error", poll=poll, error=str(e))
                continue
            self.log.debug("device_confirmation_pending", poll=poll)

        self.log.warning("device_confirmation_timeout", polls=self.settings.push_max_polls)
        return False

    def _confirmed(self, poll: int, *, reason: str) -> bool:
        self.log.info("device_confirmed", poll=poll, reason=reason)
        self.report(LoginPhase.DEVICE_CONFIRMED, "Device confirmation received")
        return True
