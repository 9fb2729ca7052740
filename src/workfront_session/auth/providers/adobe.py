"""Adobe ID sign-in pages (auth.services.adobe.com).

Federated accounts stop after the email step: Adobe redirects to the
company's Okta tenant, and the broker handler takes over from there.
"""

from __future__ import annotations

from workfront_session.auth.locators import LocatorStrategy, Provider
from workfront_session.auth.providers.base import ProviderHandler
from workfront_session.auth.providers.registry import register_provider
from workfront_session.models import Credentials


@register_provider(Provider.PRIMARY)
class AdobeHandler(ProviderHandler):
    """Adobe ID email/password pages."""

    identifier_fields = (
        LocatorStrategy("email-id", "#EmailPage-EmailField"),
        LocatorStrategy("email-data-id", 'input[data-id="EmailPage-EmailField"]'),
        LocatorStrategy("email-class", "input.spectrum-Textfield[name='username']"),
        LocatorStrategy("email-autocomplete", 'input[autocomplete="email"], input[autocomplete="username"]'),
        LocatorStrategy("email-type", 'input[type="email"]'),
    )
    continue_buttons = (
        LocatorStrategy("continue-data-id", 'button[data-id="EmailPage-ContinueButton"]'),
        LocatorStrategy("continue-text", 'button:has-text("Continue")'),
        LocatorStrategy("continue-text-pt", 'button:has-text("Continuar")'),
        LocatorStrategy("continue-submit", 'button[type="submit"]'),
    )
    password_fields = (
        LocatorStrategy("password-id", "#PasswordPage-PasswordField"),
        LocatorStrategy("password-data-id", 'input[data-id="PasswordPage-PasswordField"]'),
        LocatorStrategy("password-autocomplete", 'input[autocomplete="current-password"]'),
        LocatorStrategy("password-type", 'input[type="password"]'),
    )
    submit_buttons = (
        LocatorStrategy("submit-data-id", 'button[data-id="PasswordPage-ContinueButton"]'),
        LocatorStrategy("submit-text", 'button:has-text("Continue")'),
        LocatorStrategy("submit-text-pt", 'button:has-text("Continuar")'),
        LocatorStrategy("submit-type", 'button[type="submit"]'),
    )

    def password_for(self, credentials: Credentials) -> str | None:
        return credentials.primary_password
