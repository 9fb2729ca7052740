"""Public entry point for Workfront session management.

``LoginService`` owns the session store, the progress tracker and the
login driver. Callers either await ``login()`` directly or use
``start_login()`` / ``get_progress()`` / ``cancel_login()`` to run it in
the background and poll.
"""

from __future__ import annotations

import asyncio

import structlog

from workfront_session.auth.driver import BrowserLoginDriver
from workfront_session.auth.progress import ProgressTracker
from workfront_session.browser.storage import SessionStore
from workfront_session.errors import LoginCancelledError, LoginError, LoginInProgressError
from workfront_session.headless import resolve_headless
from workfront_session.models import (
    AppConfig,
    ClearSessionResult,
    LoginOptions,
    LoginPhase,
    LoginProgressState,
    LoginResult,
    LoginStatus,
    SessionInfo,
    SessionStats,
    SessionValidation,
    StartLoginResult,
)

logger = structlog.get_logger()


class LoginService:
    """Login orchestration and session queries.

    Usage:
        service = LoginService(config)
        result = await service.login(LoginOptions(headless=False))
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        store: SessionStore | None = None,
        tracker: ProgressTracker | None = None,
        driver: BrowserLoginDriver | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store or SessionStore(self.config.session)
        self.tracker = tracker or ProgressTracker()
        self.driver = driver or BrowserLoginDriver(
            self.store, self.tracker, self.config.login, self.config.browser
        )
        self._task: asyncio.Task | None = None
        # Cancelled attempts keep running until their next checkpoint.
        self._tasks: set[asyncio.Task] = set()

    # -- login -------------------------------------------------------------

    async def login(self, options: LoginOptions | None = None) -> LoginResult:
        """Log in, reusing the stored session when it is still fresh.

        Raises:
            LoginInProgressError: Another login is already running.
            LoginError: The attempt failed or produced no valid session.
            LoginCancelledError: ``cancel_login`` was called mid-flight.
        """
        status = self.check_login_status()
        if status.logged_in:
            return self._reused(status)

        generation = self.tracker.start()
        return await self._run_login(options or LoginOptions(), generation)

    async def _run_login(self, options: LoginOptions, generation: int) -> LoginResult:
        """Run the driver for an attempt the tracker has already started."""
        self._ensure_current(generation)
        status = self.check_login_status()
        if status.logged_in:
            self.tracker.success("Existing session reused")
            return self._reused(status)

        headless = resolve_headless(
            options.headless, allow_override=self.config.login.allow_headless_override
        )
        credentials = options.credentials or self.config.credentials
        logger.info(
            "login_starting",
            headless=headless,
            automatic=credentials is not None,
        )
        # Progress never survives a restart, so a partial file found here was
        # left by an attempt nobody is tracking any more.
        self.store.discard_partial()
        self._ensure_current(generation)
        self.tracker.update(LoginPhase.LAUNCHING_BROWSER, "Launching browser")

        try:
            await self.driver.run(
                headless=headless, credentials=credentials, generation=generation
            )
        except LoginCancelledError:
            raise
        except Exception as e:
            logger.error("login_failed", error=str(e))
            if self.tracker.is_current(generation) and self.tracker.is_running():
                self.tracker.fail(str(e))
            raise LoginError(f"Login failed: {e}") from e

        status = self.check_login_status()
        if not status.logged_in:
            reason = "login appeared to fail, no valid session produced"
            if self.tracker.is_current(generation):
                self.tracker.fail(reason)
            raise LoginError(f"Login failed: {reason}")

        logger.info("login_succeeded", session_file=status.session_file)
        return LoginResult(
            success=True,
            message="Login successful, session saved",
            session_file=status.session_file,
            login_time=status.last_login,
        )

    def _ensure_current(self, generation: int) -> None:
        if not self.tracker.is_current(generation):
            raise LoginCancelledError("Login was cancelled")

    @staticmethod
    def _reused(status: LoginStatus) -> LoginResult:
        logger.info("session_reused", last_login=str(status.last_login))
        return LoginResult(
            success=True,
            message="Existing session reused",
            reused=True,
            session_file=status.session_file,
            login_time=status.last_login,
        )

    # -- fire and forget --------------------------------------------------

    def start_login(self, options: LoginOptions | None = None) -> StartLoginResult:
        """Start a login in the background.

        Must be called from a running event loop. A request while a login is
        running is rejected with ``conflict=True``; nothing is queued.
        """
        try:
            generation = self.tracker.start()
        except LoginInProgressError:
            phase = self.tracker.get().phase
            logger.info("login_start_conflict", phase=phase.value)
            return StartLoginResult(started=False, conflict=True, phase=phase)

        task = asyncio.create_task(
            self._background_login(options or LoginOptions(), generation), name="workfront_login"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._task = task
        return StartLoginResult(started=True, phase=LoginPhase.STARTING)

    async def _background_login(self, options: LoginOptions, generation: int) -> None:
        try:
            await self._run_login(options, generation)
        except LoginCancelledError:
            logger.info("background_login_cancelled")
        except Exception as e:
            # The driver already moved the tracker to FAILED in most cases.
            if self.tracker.is_current(generation) and self.tracker.is_running():
                self.tracker.fail(str(e))
            logger.warning("background_login_failed", error=str(e))

    def get_progress(self) -> LoginProgressState:
        return self.tracker.get()

    def cancel_login(self) -> LoginProgressState:
        """Stop tracking the running login.

        The driver notices at its next wait, stops and closes the browser.
        """
        self.tracker.reset()
        return self.tracker.get()

    async def wait_for_login(self) -> LoginProgressState:
        """Wait for the background login (if any) to finish.

        Attempts abandoned by ``cancel_login`` are awaited too, so their
        browsers are closed by the time this returns.
        """
        pending = set(self._tasks)
        if self._task is not None:
            pending.add(self._task)
        if pending:
            await asyncio.gather(*pending)
        return self.tracker.get()

    # -- session queries --------------------------------------------------

    def check_login_status(self) -> LoginStatus:
        return self.store.check_status()

    def requires_login(self) -> bool:
        return not self.check_login_status().logged_in

    def get_session_info(self) -> SessionInfo:
        return self.store.read_summary()

    def clear_session(self) -> ClearSessionResult:
        return self.store.clear()

    def validate_session(self) -> SessionValidation:
        return self.store.validate()

    def get_session_stats(self) -> SessionStats:
        return self.store.stats()
