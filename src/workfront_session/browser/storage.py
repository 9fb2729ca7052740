"""Browser session state management.

Stores the authenticated Workfront browser state (cookies, localStorage)
so later automation can reuse it instead of logging in again.

Two files are involved: a *partial* file that the login driver overwrites
on every snapshot, and a *final* file that is only ever produced by
promoting a partial file that carries cookies.
"""

from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any

import structlog

from workfront_session.errors import SessionPromotionError
from workfront_session.models import (
    ClearSessionResult,
    LoginStatus,
    SessionAge,
    SessionConfig,
    SessionInfo,
    SessionStats,
    SessionValidation,
)

logger = structlog.get_logger()

EXPIRING_SOON_HOURS = 6


def build_artifact(state: dict[str, Any], url: str | None = None) -> dict[str, Any]:
    """Wrap a Playwright ``storage_state()`` export into a session artifact.

    ``cookies`` and ``origins`` stay at the top level so the file can be fed
    straight back into ``browser.new_context(storage_state=...)``.
    """
    origins = state.get("origins", [])
    return {
        "cookies": state.get("cookies", []),
        "origins": origins,
        "storageState": {
            "origins": origins,
            "url": url,
            "capturedAt": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        },
    }


class SessionStore:
    """File-backed store for the Workfront session artifact."""

    def __init__(self, config: SessionConfig | None = None) -> None:
        self.config = config or SessionConfig()

    @property
    def state_path(self) -> Path:
        return self.config.state_dir / self.config.state_file

    @property
    def partial_path(self) -> Path:
        return self.config.state_dir / self.config.partial_file

    def check_status(self) -> LoginStatus:
        """Report whether the final artifact exists and is still fresh.

        Never raises: a missing or unreadable file is a normal negative result.
        """
        path = self.state_path
        try:
            stat = path.stat()
        except OSError:
            return LoginStatus(
                logged_in=False,
                session_file=str(path),
                error="Session file not found or not accessible",
            )

        mtime = datetime.datetime.fromtimestamp(stat.st_mtime, tz=datetime.timezone.utc)
        now = datetime.datetime.now(datetime.timezone.utc)
        hours_age = (now - mtime).total_seconds() / 3600

        return LoginStatus(
            logged_in=hours_age < self.config.max_age_hours,
            session_file=str(path),
            last_login=mtime,
            hours_age=round(hours_age, 1),
            file_size=stat.st_size,
        )

    def _read_final(self) -> dict[str, Any]:
        return json.loads(self.state_path.read_text(encoding="utf-8"))

    def read_summary(self) -> SessionInfo:
        """Summarize the current session without exposing cookie values."""
        status = self.check_status()
        if not status.logged_in:
            return SessionInfo(has_session=False, message="No active session found")

        try:
            data = self._read_final()
        except (OSError, json.JSONDecodeError) as e:
            logger.error("session_read_failed", path=str(self.state_path), error=str(e))
            return SessionInfo(has_session=False, error="Failed to read session file")

        if not isinstance(data, dict):
            logger.error("session_file_malformed", path=str(self.state_path))
            return SessionInfo(has_session=False, error="Invalid session data")

        cookies = data.get("cookies")
        cookies = cookies if isinstance(cookies, list) else []

        return SessionInfo(
            has_session=True,
            last_login=status.last_login,
            hours_age=status.hours_age,
            has_storage_state=bool(data.get("storageState")),
            cookie_count=len(cookies),
            domain=cookie_domains(cookies),
        )

    def validate(self) -> SessionValidation:
        """Check that the final artifact is current, parseable and has storage state."""
        status = self.check_status()
        if not status.logged_in:
            return SessionValidation(valid=False, reason="No active session")

        try:
            data = self._read_final()
        except (OSError, json.JSONDecodeError) as e:
            logger.error("session_validation_failed", error=str(e))
            return SessionValidation(
                valid=False, reason="Failed to validate session", error=str(e)
            )

        if not isinstance(data, dict) or not data.get("storageState"):
            return SessionValidation(valid=False, reason="Invalid session data")

        return SessionValidation(
            valid=True, last_login=status.last_login, hours_age=status.hours_age
        )

    def stats(self) -> SessionStats:
        status = self.check_status()
        if not status.logged_in or status.hours_age is None:
            return SessionStats(has_stats=False, message="No active session")

        hours = status.hours_age
        return SessionStats(
            has_stats=True,
            session_age=SessionAge(hours=hours, days=round(hours / 24, 1)),
            session_size=status.file_size,
            last_access=status.last_login,
            expires_in=max(0.0, round(self.config.max_age_hours - hours, 1)),
            is_expiring_soon=hours > EXPIRING_SOON_HOURS,
        )

    def clear(self) -> ClearSessionResult:
        """Delete the final artifact. Clearing an absent session succeeds."""
        path = self.state_path
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("session_already_clear", path=str(path))
            return ClearSessionResult(
                success=True, message="Session was already clear.", cleared_file=str(path)
            )

        logger.info("session_cleared", path=str(path))
        return ClearSessionResult(
            success=True,
            message="Session cleared. Log in again to continue.",
            cleared_file=str(path),
        )

    def write_partial(self, document: dict[str, Any]) -> Path:
        """Overwrite the partial artifact with ``document``."""
        path = self.partial_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        logger.debug(
            "partial_session_saved",
            path=str(path),
            cookies=len(document.get("cookies") or []),
        )
        return path

    def discard_partial(self) -> bool:
        """Remove a leftover partial artifact. Returns True if one existed."""
        try:
            self.partial_path.unlink()
        except FileNotFoundError:
            return False
        logger.info("stale_partial_discarded", path=str(self.partial_path))
        return True

    def promote_partial(self) -> Path:
        """Promote the partial artifact to the final location.

        The partial must parse as JSON and carry a non-empty ``cookies`` list.
        On any failure the partial is deleted and the previous final artifact
        is left untouched.

        Raises:
            SessionPromotionError: If the partial is missing or invalid.
        """
        partial = self.partial_path
        final = self.state_path
        try:
            data = json.loads(partial.read_text(encoding="utf-8"))
            cookies = data.get("cookies") if isinstance(data, dict) else None
            if not isinstance(cookies, list) or not cookies:
                raise SessionPromotionError(
                    "Partial session has no cookies; refusing to promote"
                )
            final.unlink(missing_ok=True)
            partial.replace(final)
        except (OSError, json.JSONDecodeError, SessionPromotionError) as e:
            logger.error("session_promotion_failed", path=str(partial), error=str(e))
            partial.unlink(missing_ok=True)
            if isinstance(e, SessionPromotionError):
                raise
            raise SessionPromotionError(f"Could not promote partial session: {e}") from e

        logger.info("session_promoted", path=str(final), cookies=len(cookies))
        return final


def cookie_domains(cookies: list[dict[str, Any]]) -> str:
    """Distinct cookie domains in first-seen order, joined for display."""
    seen: list[str] = []
    for cookie in cookies:
        domain = cookie.get("domain") if isinstance(cookie, dict) else None
        if domain and domain not in seen:
            seen.append(domain)
    return ", ".join(seen)
