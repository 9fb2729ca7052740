"""Playwright browser lifecycle for login attempts.

Provides a managed browser session wrapper with:
- Guaranteed teardown of context, browser and Playwright on every exit path
- Automatic screenshot capture on errors
- Storage-state snapshots for session persistence
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from playwright.async_api import async_playwright

from workfront_session.errors import LoginCancelledError
from workfront_session.models import BrowserConfig

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

logger = structlog.get_logger()


class BrowserSession:
    """Managed Playwright browser session with error handling.

    Usage:
        async with BrowserSession(config, "workfront") as session:
            page = await session.new_page()
            await page.goto("https://experience.adobe.com/")
            state = await session.snapshot()
    """

    def __init__(self, config: BrowserConfig, name: str = "workfront") -> None:
        self.config = config
        self.name = name
        self._playwright = None
        self._browser = None
        self._context: BrowserContext | None = None
        self.log = logger.bind(browser_session=name, headless=config.headless)

    async def __aenter__(self) -> BrowserSession:
        self._playwright = await async_playwright().start()
        try:
            args = list(self.config.launch_args)
            if not self.config.headless:
                args.append("--start-maximized")
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=args,
            )
            self._context = await self._browser.new_context(
                no_viewport=not self.config.headless,
            )
            self._context.set_default_timeout(self.config.timeout)
        except BaseException:
            await self._close()
            raise

        self.log.info("browser_launched")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if (
                exc_type
                and self.config.screenshots_on_error
                and not issubclass(exc_type, LoginCancelledError)
            ):
                await self._capture_error_screenshot()
        finally:
            await self._close()

    async def _close(self) -> None:
        if self._context:
            try:
                await self._context.close()
            except Exception:
                self.log.warning("context_close_failed", exc_info=True)
            self._context = None
        if self._browser:
            try:
                await self._browser.close()
            except Exception:
                self.log.warning("browser_close_failed", exc_info=True)
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.log.debug("browser_closed")

    async def new_page(self) -> Page:
        """Create a new page in the browser context."""
        if not self._context:
            raise RuntimeError("BrowserSession not started. Use `async with`.")
        return await self._context.new_page()

    async def snapshot(self) -> dict[str, Any]:
        """Export cookies and origin storage of the current context."""
        if not self._context:
            raise RuntimeError("BrowserSession not started. Use `async with`.")
        return await self._context.storage_state()

    async def _capture_error_screenshot(self) -> None:
        """Capture a screenshot of all open pages for debugging."""
        if not self._context:
            return

        screenshots_dir = Path(self.config.screenshots_dir)
        try:
            screenshots_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.log.warning("screenshot_dir_unavailable", path=str(screenshots_dir), error=str(e))
            return

        for i, page in enumerate(self._context.pages):
            try:
                path = screenshots_dir / f"{self.name}_error_{i}.png"
                await page.screenshot(path=path, full_page=True)
                self.log.info("error_screenshot_captured", path=str(path))
            except Exception:
                self.log.warning("screenshot_capture_failed", page_index=i, exc_info=True)
