"""Selector strategies and URL classification for the sign-in pages.

Field lookups are ordered tuples of ``LocatorStrategy``; ``find_first``
walks them lazily and stops at the first visible match.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog
from playwright.async_api import Error as PlaywrightError

from workfront_session.models import DEFAULT_BROKER_HOSTS

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = structlog.get_logger()


class Provider(str, Enum):
    """Identity UI currently shown in the page."""

    PRIMARY = "primary"
    BROKER = "broker"
    UNKNOWN = "unknown"


PRIMARY_HOST_MARKERS = ("auth.services.adobe.com", "adobelogin.com", "adobeid")
BROKER_HOST_MARKERS = DEFAULT_BROKER_HOSTS
DESTINATION_URL_MARKERS = ("workfront.adobe.com", "/workfront", "my.workfront.com")

# Push screen headings, English and Portuguese.
PUSH_HEADING_PHRASES = (
    "get a push notification",
    "push notification sent",
    "receba uma notificação push",
    "notificação push enviada",
)


def _host(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def classify_provider(url: str, broker_hosts: Iterable[str] = BROKER_HOST_MARKERS) -> Provider:
    """Map a page URL to the identity provider that owns it.

    ``broker_hosts`` are host fragments that identify an Okta tenant; pass
    ``LoginSettings.broker_host_markers`` to honour custom domains.
    """
    host = _host(url)
    if not host:
        return Provider.UNKNOWN
    if any(marker in host for marker in broker_hosts):
        return Provider.BROKER
    if any(marker in host for marker in PRIMARY_HOST_MARKERS):
        return Provider.PRIMARY
    return Provider.UNKNOWN


def is_broker_url(url: str, broker_hosts: Iterable[str] = BROKER_HOST_MARKERS) -> bool:
    return classify_provider(url, broker_hosts) is Provider.BROKER


def is_destination_url(url: str) -> bool:
    """True if ``url`` points into the Workfront application itself."""
    lowered = url.lower()
    return any(marker in lowered for marker in DESTINATION_URL_MARKERS)


def is_push_heading(text: str) -> bool:
    lowered = " ".join(text.lower().split())
    return any(phrase in lowered for phrase in PUSH_HEADING_PHRASES)


@dataclass(frozen=True)
class LocatorStrategy:
    """One way of finding an element: a human-readable name and a selector."""

    name: str
    selector: str


async def find_first(
    page: Page, strategies: tuple[LocatorStrategy, ...]
) -> tuple[LocatorStrategy, Locator] | None:
    """Return the first strategy whose selector matches a visible element.

    Strategies are tried in order and later ones are only evaluated when the
    earlier ones match nothing. Lookup errors count as "no match".
    """
    for strategy in strategies:
        locator = page.locator(strategy.selector).first
        try:
            if await locator.count() > 0 and await locator.is_visible():
                logger.debug("locator_matched", strategy=strategy.name)
                return strategy, locator
        except PlaywrightError as e:
            logger.debug("locator_error", strategy=strategy.name, error=str(e))
    return None


_SET_VALUE_JS = """
({ selector, value }) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.focus();
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""


async def fill_field(
    page: Page, strategy: LocatorStrategy, locator: Locator, value: str
) -> bool:
    """Fill a field natively, falling back to direct DOM manipulation."""
    try:
        await locator.fill(value)
        return True
    except PlaywrightError as e:
        logger.info("native_fill_failed", strategy=strategy.name, error=str(e))

    try:
        return bool(
            await page.evaluate(_SET_VALUE_JS, {"selector": strategy.selector, "value": value})
        )
    except PlaywrightError as e:
        logger.warning("dom_fill_failed", strategy=strategy.name, error=str(e))
        return False


async def click_first(page: Page, strategies: tuple[LocatorStrategy, ...]) -> bool:
    """Click the first matching element. Returns False when nothing matched."""
    match = await find_first(page, strategies)
    if match is None:
        return False
    strategy, locator = match
    try:
        await locator.click()
    except PlaywrightError as e:
        logger.info("click_failed", strategy=strategy.name, error=str(e))
        return False
    logger.debug("clicked", strategy=strategy.name)
    return True
