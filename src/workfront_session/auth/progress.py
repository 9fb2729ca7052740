"""Process-wide progress of the single login attempt.

One ``ProgressTracker`` is owned by the ``LoginService`` and shared with the
driver. Only one login may run at a time; readers get snapshot copies.
"""

from __future__ import annotations

import datetime

import structlog

from workfront_session.errors import LoginInProgressError
from workfront_session.models import LoginPhase, LoginProgressState

logger = structlog.get_logger()


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ProgressTracker:
    """Single-flight holder for the current login phase.

    Transitions are not validated; the driver is trusted to call ``update``
    in a sensible order.

    ``generation`` changes on every ``start`` and ``reset``. A driver records
    it when it begins and uses ``is_current`` to notice that its run was
    cancelled or superseded.
    """

    def __init__(self) -> None:
        self._state = LoginProgressState()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def get(self) -> LoginProgressState:
        return self._state.model_copy()

    def is_running(self) -> bool:
        phase = self._state.phase
        return phase is not LoginPhase.IDLE and not phase.is_terminal

    def start(self, message: str = "Starting login") -> int:
        """Begin a new attempt and return its generation.

        Raises:
            LoginInProgressError: If an attempt is already running.
        """
        if self.is_running():
            raise LoginInProgressError("Login already in progress")

        now = _now()
        self._generation += 1
        self._state = LoginProgressState(
            phase=LoginPhase.STARTING,
            started_at=now,
            updated_at=now,
            attempts=0,
            message=message,
            done=False,
        )
        logger.info("login_progress_started", generation=self._generation)
        return self._generation

    def update(self, phase: LoginPhase, message: str | None = None) -> None:
        self._state.phase = phase
        self._state.updated_at = _now()
        if message:
            self._state.message = message
        logger.debug("login_progress", phase=phase.value, message=message)

    def increment_attempt(self) -> int:
        self._state.attempts += 1
        self._state.updated_at = _now()
        return self._state.attempts

    def success(self, message: str = "Login complete") -> None:
        self._state.phase = LoginPhase.SUCCESS
        self._state.message = message
        self._state.error = None
        self._state.done = True
        self._state.updated_at = _now()
        logger.info("login_progress_succeeded", message=message)

    def fail(self, error: str) -> None:
        self._state.phase = LoginPhase.FAILED
        self._state.error = error
        self._state.done = True
        self._state.updated_at = _now()
        logger.warning("login_progress_failed", error=error)

    def reset(self) -> None:
        """Force the tracker back to idle, abandoning any running attempt."""
        was_running = self.is_running()
        self._generation += 1
        self._state = LoginProgressState()
        logger.info("login_progress_reset", was_running=was_running)
