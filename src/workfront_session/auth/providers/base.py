"""Abstract base class for identity provider sign-in handlers."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import Error as PlaywrightError

from workfront_session.auth.locators import (
    LocatorStrategy,
    Provider,
    classify_provider,
    click_first,
    fill_field,
    find_first,
)
from workfront_session.models import Credentials, LoginSettings

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger()


class StepOutcome(str, Enum):
    """How far a handler got before returning control."""

    SUBMITTED = "submitted"
    REDIRECTED = "redirected"
    NEEDS_HUMAN = "needs_human"


class ProviderHandler(ABC):
    """Fills the sign-in forms of one identity provider.

    Subclasses only describe *where* things are (selector chains) and which
    password belongs to them; the sequence identifier -> continue ->
    password -> submit is shared. Whenever the page leaves this provider's
    domain mid-flow the handler stops and reports ``REDIRECTED`` so the
    caller can dispatch to the handler that owns the new page.
    """

    provider: Provider = Provider.UNKNOWN

    identifier_fields: tuple[LocatorStrategy, ...] = ()
    continue_buttons: tuple[LocatorStrategy, ...] = ()
    password_fields: tuple[LocatorStrategy, ...] = ()
    submit_buttons: tuple[LocatorStrategy, ...] = ()

    def __init__(self, settings: LoginSettings) -> None:
        self.settings = settings
        self.log = logger.bind(provider=self.provider.value)

    @abstractmethod
    def password_for(self, credentials: Credentials) -> str | None:
        """Return the password this provider asks for, if the caller gave one."""

    async def after_submit(self, page: Page) -> None:
        """Hook run after the password was submitted. Override when needed."""

    async def handle(self, page: Page, credentials: Credentials) -> StepOutcome:
        """Drive this provider's forms as far as possible."""
        if await self._identifier_step(page, credentials.email):
            await self.settle(page)
            if self.left(page):
                return StepOutcome.REDIRECTED

        password = self.password_for(credentials)
        if not password:
            self.log.info("password_not_supplied")
            return StepOutcome.NEEDS_HUMAN

        match = await find_first(page, self.password_fields)
        if match is None:
            # Password page may still be rendering after "continue".
            await self.settle(page)
            if self.left(page):
                return StepOutcome.REDIRECTED
            match = await find_first(page, self.password_fields)
        if match is None:
            self.log.info("password_field_not_found")
            return StepOutcome.NEEDS_HUMAN

        strategy, locator = match
        if not await fill_field(page, strategy, locator, password):
            return StepOutcome.NEEDS_HUMAN
        self.log.info("password_filled", strategy=strategy.name)

        if not await click_first(page, self.submit_buttons):
            try:
                await locator.press("Enter")
            except PlaywrightError as e:
                self.log.info("submit_failed", error=str(e))
                return StepOutcome.NEEDS_HUMAN

        await self.settle(page)
        if self.left(page):
            return StepOutcome.REDIRECTED
        await self.after_submit(page)
        return StepOutcome.SUBMITTED

    async def _identifier_step(self, page: Page, email: str) -> bool:
        match = await find_first(page, self.identifier_fields)
        if match is None:
            self.log.debug("identifier_field_not_found")
            return False

        strategy, locator = match
        if not await fill_field(page, strategy, locator, email):
            return False
        self.log.info("identifier_filled", strategy=strategy.name)

        if not await click_first(page, self.continue_buttons):
            self.log.debug("continue_button_not_found")
        return True

    def left(self, page: Page) -> bool:
        """True once the page belongs to a different provider."""
        return classify_provider(page.url, self.settings.broker_host_markers) is not self.provider

    async def settle(self, page: Page) -> None:
        """Give navigation or client-side rendering a moment to finish."""
        try:
            await page.wait_for_load_state(
                "domcontentloaded", timeout=self.settings.navigation_timeout_ms
            )
        except PlaywrightError as e:
            self.log.debug("settle_wait_failed", error=str(e))
        await asyncio.sleep(self.settings.step_settle_ms / 1000)
