"""Okta sign-in widget, the identity broker behind Adobe federation.

Covers both the classic widget (``#okta-signin-*``) and the Identity
Engine widget (``identifier`` / ``credentials.passcode``). After the
password, Okta usually offers a push to Okta Verify; the handler requests
it so the device-confirmation wait can start.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from workfront_session.auth.locators import LocatorStrategy, Provider, click_first
from workfront_session.auth.providers.base import ProviderHandler
from workfront_session.auth.providers.registry import register_provider
from workfront_session.models import Credentials

if TYPE_CHECKING:
    from playwright.async_api import Page

PUSH_BUTTONS = (
    LocatorStrategy("push-send-value", 'input[value="Send push"], input[value="Enviar push"]'),
    LocatorStrategy("push-select-okta-verify", '[data-se="okta_verify-push"] a, [data-se="okta_verify-push"] button'),
    LocatorStrategy("push-send-text", 'a:has-text("Send push"), button:has-text("Send push")'),
    LocatorStrategy("push-send-text-pt", 'a:has-text("Enviar push"), button:has-text("Enviar push")'),
)


@register_provider(Provider.BROKER)
class OktaHandler(ProviderHandler):
    """Okta identifier/password pages and the push prompt."""

    identifier_fields = (
        LocatorStrategy("identifier-id", "#okta-signin-username"),
        LocatorStrategy("identifier-data-se", '[data-se="o-form-input-identifier"] input'),
        LocatorStrategy("identifier-name", 'input[name="identifier"]'),
        LocatorStrategy("identifier-autocomplete", 'input[autocomplete="username"]'),
        LocatorStrategy("identifier-type", 'input[type="text"], input[type="email"]'),
    )
    continue_buttons = (
        LocatorStrategy("next-value", 'input[type="submit"][value="Next"], input[type="submit"][value="Próximo"]'),
        LocatorStrategy("next-data-type", 'input[data-type="save"]'),
        LocatorStrategy("next-class", "input.button-primary"),
        LocatorStrategy("next-submit", 'button[type="submit"], input[type="submit"]'),
    )
    password_fields = (
        LocatorStrategy("password-passcode", 'input[name="credentials.passcode"]'),
        LocatorStrategy("password-id", "#okta-signin-password"),
        LocatorStrategy("password-data-se", '[data-se="o-form-input-password"] input'),
        LocatorStrategy("password-type", 'input[type="password"]'),
    )
    submit_buttons = (
        LocatorStrategy("verify-value", 'input[type="submit"][value="Verify"], input[type="submit"][value="Verificar"]'),
        LocatorStrategy("signin-value", 'input[type="submit"][value="Sign In"]'),
        LocatorStrategy("submit-data-type", 'input[data-type="save"]'),
        LocatorStrategy("submit-type", 'button[type="submit"], input[type="submit"]'),
    )

    def password_for(self, credentials: Credentials) -> str | None:
        return credentials.broker_password

    async def after_submit(self, page: Page) -> None:
        if await click_first(page, PUSH_BUTTONS):
            self.log.info("push_requested")
            await self.settle(page)
