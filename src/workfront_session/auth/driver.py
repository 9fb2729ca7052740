"""Browser login driver: one end-to-end login attempt.

There is no callback telling us the user is signed in, so the driver
watches the page instead:

1. Open Experience Cloud in a fresh Playwright context.
2. With credentials, fill the Adobe ID / Okta forms automatically
   (``AutomaticLogin``). Without, a human completes SSO in the window.
3. Poll for the Experience Cloud shell button and snapshot the storage
   state to the partial file when it shows up.
4. After an Okta push approval, run a refinement loop instead that
   snapshots every tick until the Workfront page is verifiably loaded.
5. Promote the partial snapshot to the final session file.

Each ``run`` builds its own ``LoginAttempt`` pinned to the tracker
generation it was started under. Every wait goes through
``LoginAttempt.checkpoint``, so once ``cancel_login`` bumps the generation
the attempt stops at its next suspension point, even if a newer attempt
is already running on the same driver. The browser is always closed by
``BrowserSession``.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import Error as PlaywrightError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from workfront_session.auth.automatic import AutomaticLogin, AutomaticOutcome
from workfront_session.auth.locators import is_broker_url, is_destination_url
from workfront_session.auth.progress import ProgressTracker
from workfront_session.browser.automation import BrowserSession
from workfront_session.browser.storage import SessionStore, build_artifact
from workfront_session.errors import LoginCancelledError, LoginError
from workfront_session.models import BrowserConfig, Credentials, LoginPhase, LoginSettings
from workfront_session.utils.repeating import RepeatingTask

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger()

GRACE_STEP_SECONDS = 2.5

HERO_SELECTORS = '[data-testid="hero-title"], h1.hero-title, [class*="HeroTitle"]'
BRANDED_SELECTORS = (
    '[data-omega-element*="Workfront"], [aria-label*="Workfront"], img[alt*="Workfront"]'
)
BUSY_SELECTORS = (
    '[role="progressbar"], .spectrum-CircleLoader, '
    '[data-testid="error-page"], [class*="error-page"]'
)
TITLE_KEYWORDS = ("workfront", "adobe experience cloud")


class BrowserLoginDriver:
    """Runs login attempts, each inside its own browser context."""

    def __init__(
        self,
        store: SessionStore,
        tracker: ProgressTracker,
        settings: LoginSettings | None = None,
        browser_config: BrowserConfig | None = None,
        *,
        session_factory=BrowserSession,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.settings = settings or LoginSettings()
        self.browser_config = browser_config or BrowserConfig()
        self.session_factory = session_factory

    async def run(
        self,
        *,
        headless: bool,
        credentials: Credentials | None = None,
        generation: int | None = None,
    ) -> Path:
        """Run one attempt and return the promoted session file.

        Args:
            headless: Launch the browser without a window.
            credentials: Fill the sign-in forms automatically when given.
            generation: Tracker generation this attempt belongs to. Defaults
                to the current one.

        Raises:
            LoginError: No session could be captured.
            SessionPromotionError: The captured session had no cookies.
            LoginCancelledError: The attempt was cancelled mid-flight.
        """
        if generation is None:
            generation = self.tracker.generation
        attempt = LoginAttempt(self, generation=generation, headless=headless)
        return await attempt.run(credentials)


class LoginAttempt:
    """State of a single login run: its generation, browser and progress."""

    def __init__(self, driver: BrowserLoginDriver, *, generation: int, headless: bool) -> None:
        self.store = driver.store
        self.tracker = driver.tracker
        self.settings = driver.settings
        self.session_factory = driver.session_factory
        self.browser_config = driver.browser_config.model_copy(update={"headless": headless})
        self.generation = generation
        self.log = logger.bind(
            component="login_driver", headless=headless, generation=generation
        )

    # -- progress plumbing -------------------------------------------------

    def owns_tracker(self) -> bool:
        return self.tracker.is_current(self.generation)

    def report(self, phase: LoginPhase, message: str) -> None:
        if self.owns_tracker():
            self.tracker.update(phase, message)
        self.log.info("login_phase", phase=phase.value, message=message)

    def checkpoint(self) -> None:
        if not self.owns_tracker():
            raise LoginCancelledError("Login was cancelled")

    # -- main flow ---------------------------------------------------------

    async def run(self, credentials: Credentials | None) -> Path:
        self.checkpoint()
        try:
            async with self.session_factory(self.browser_config, "workfront") as session:
                page = await session.new_page()

                self.report(LoginPhase.NAVIGATING, "Opening Experience Cloud")
                await self._open_portal(page)

                outcome = None
                if credentials is not None:
                    outcome = await self._automatic_login(page, credentials)

                if outcome is AutomaticOutcome.DEVICE_CONFIRMED:
                    snapshots = await self._refine_after_confirmation(session, page)
                else:
                    snapshots = await self._poll_for_marker(
                        session, page, grace=outcome is not AutomaticOutcome.SUBMITTED
                    )

                if snapshots == 0:
                    await self._final_snapshot(session, page)
                    raise LoginError(
                        "Session could not be confirmed within "
                        f"{self.settings.max_total_ms // 1000}s"
                    )

            self.checkpoint()
            self.report(LoginPhase.PERSISTING, "Validating and saving final session")
            path = self.store.promote_partial()
        except LoginCancelledError:
            self.log.info("login_abandoned")
            raise
        except Exception as e:
            self.log.error("login_attempt_failed", error=str(e))
            if self.owns_tracker():
                self.tracker.fail(str(e))
            raise

        if self.owns_tracker():
            self.tracker.success("Login complete")
        self.log.info("login_attempt_succeeded", path=str(path), snapshots=snapshots)
        return path

    @retry(
        retry=retry_if_exception_type(PlaywrightError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _open_portal(self, page: Page) -> None:
        self.checkpoint()
        await page.goto(
            self.settings.login_url,
            wait_until="domcontentloaded",
            timeout=self.settings.navigation_timeout_ms,
        )

    async def _automatic_login(
        self, page: Page, credentials: Credentials
    ) -> AutomaticOutcome:
        """Fill credentials; any failure other than cancellation hands over to a human."""
        automatic = AutomaticLogin(self.settings, report=self.report, checkpoint=self.checkpoint)
        try:
            outcome = await automatic.run(page, credentials)
        except LoginCancelledError:
            raise
        except Exception as e:
            self.log.warning("automatic_login_failed", error=str(e), exc_info=True)
            outcome = AutomaticOutcome.DEGRADED

        if outcome is AutomaticOutcome.DEGRADED:
            self.log.info("falling_back_to_manual_login")
        return outcome

    # -- snapshots ---------------------------------------------------------

    async def _save_snapshot(self, session: BrowserSession, page: Page) -> None:
        state = await session.snapshot()
        # The partial file is shared with any newer attempt.
        self.checkpoint()
        self.store.write_partial(build_artifact(state, page.url))

    async def _final_snapshot(self, session: BrowserSession, page: Page) -> None:
        try:
            await self._save_snapshot(session, page)
            self.log.info("fallback_snapshot_saved")
        except LoginCancelledError:
            raise
        except Exception as e:
            self.log.warning("fallback_snapshot_failed", error=str(e))

    # -- manual / converged polling ---------------------------------------

    async def _poll_for_marker(
        self, session: BrowserSession, page: Page, *, grace: bool
    ) -> int:
        """Poll for the signed-in marker. Returns the number of snapshots saved."""
        settings = self.settings
        start = time.monotonic()
        max_total = settings.max_total_ms / 1000
        interval = settings.poll_interval_ms / 1000

        def elapsed() -> float:
            return time.monotonic() - start

        if grace and settings.initial_grace_ms:
            self.report(LoginPhase.WAITING_SSO, "Complete SSO/MFA in the browser window")
            grace_seconds = settings.initial_grace_ms / 1000
            while elapsed() < grace_seconds and not page.is_closed():
                self.checkpoint()
                await asyncio.sleep(min(GRACE_STEP_SECONDS, grace_seconds - elapsed()))
        else:
            self.report(LoginPhase.WAITING_SSO, "Waiting for sign-in to complete")

        persisted = 0
        while elapsed() < max_total and not page.is_closed():
            self.checkpoint()
            self.tracker.increment_attempt()
            try:
                button = await page.query_selector(settings.button_selector)
                if button:
                    self.report(LoginPhase.DETECTED_BUTTON, "Signed in, saving session")
                    await self._save_snapshot(session, page)
                    persisted += 1
                    self.log.info("session_snapshot_saved", count=persisted)
                    if not settings.multi_persist:
                        break
                    if persisted >= settings.max_persist_attempts:
                        self.log.info("persist_limit_reached", count=persisted)
                        break
                else:
                    self.log.debug("marker_not_found_yet", elapsed=round(elapsed(), 1))
            except PlaywrightError as e:
                self.log.warning("marker_poll_failed", error=str(e))
            await asyncio.sleep(interval)

        return persisted

    # -- post push refinement ---------------------------------------------

    async def _refine_after_confirmation(self, session: BrowserSession, page: Page) -> int:
        """Snapshot on a timer until the Workfront page is verifiably loaded.

        Done when the URL is the Workfront app, or has stayed the same for
        ``stable_ticks`` ticks outside Okta, and the page content confirms it.
        Reaching the tick cap still promotes the last snapshot.
        """
        settings = self.settings
        snapshots = 0
        last_url: str | None = None
        stable = 0

        async def tick(run: int) -> bool:
            nonlocal snapshots, last_url, stable
            self.checkpoint()
            self.tracker.increment_attempt()
            try:
                await self._save_snapshot(session, page)
                snapshots += 1
            except PlaywrightError as e:
                self.log.info("refinement_snapshot_failed", tick=run, error=str(e))

            url = page.url
            stable = stable + 1 if url == last_url else 1
            last_url = url

            landed = is_destination_url(url) or (
                stable >= settings.stable_ticks
                and not is_broker_url(url, settings.broker_host_markers)
            )
            if not landed:
                self.log.debug("refinement_waiting", tick=run, stable=stable)
                return False
            if await self._verify_destination(page):
                self.report(LoginPhase.DETECTED_BUTTON, "Workfront loaded, saving session")
                return True
            self.log.debug("refinement_content_unverified", tick=run)
            return False

        async with RepeatingTask(
            tick,
            interval=settings.refine_interval_ms / 1000,
            max_runs=settings.refine_max_ticks,
            name="session_refinement",
        ) as task:
            verified = await task.wait()

        if not verified:
            self.log.warning(
                "refinement_unverified_promoting_anyway",
                ticks=settings.refine_max_ticks,
                snapshots=snapshots,
                url=page.url,
            )
        return snapshots

    async def _verify_destination(self, page: Page) -> bool:
        """Look for Workfront content; a plausible URL on its own is not enough."""
        try:
            if await page.locator(BUSY_SELECTORS).count() > 0:
                return False
            if await page.locator(HERO_SELECTORS).count() > 0:
                return True
            if await page.locator(BRANDED_SELECTORS).count() > 0:
                return True
            if await page.query_selector(self.settings.button_selector):
                return True
            title = (await page.title()).lower()
        except PlaywrightError as e:
            self.log.debug("destination_check_failed", error=str(e))
            return False
        return any(keyword in title for keyword in TITLE_KEYWORDS)
