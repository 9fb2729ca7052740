"""Exception types raised by workfront-session."""

from __future__ import annotations


class WorkfrontSessionError(RuntimeError):
    """Base class for all workfront-session errors."""


class SessionPromotionError(WorkfrontSessionError):
    """The partial session artifact could not be promoted to the final one."""


class LoginError(WorkfrontSessionError):
    """A login attempt finished without producing a valid session."""


class LoginInProgressError(WorkfrontSessionError):
    """A login was requested while another one is still running."""


class LoginCancelledError(WorkfrontSessionError):
    """The running login was abandoned through ``cancel_login``."""
