"""Core data models for workfront-session."""

import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_LOGIN_URL = "https://experience.adobe.com/"
DEFAULT_BUTTON_SELECTOR = (
    'button[aria-label="Adobe Experience Cloud"], '
    'button[data-omega-element="Adobe Experience Cloud"]'
)
# Okta tenants, including companies that front Okta with their own domain.
DEFAULT_BROKER_HOSTS = ("okta.com", "oktapreview.com", "okta-emea.com", "login.dell.com")


class LoginPhase(str, Enum):
    """Phases of a login attempt, in the order the driver walks them."""

    IDLE = "IDLE"
    STARTING = "STARTING"
    LAUNCHING_BROWSER = "LAUNCHING_BROWSER"
    NAVIGATING = "NAVIGATING"
    AUTOMATIC_LOGIN = "AUTOMATIC_LOGIN"
    WAITING_SSO = "WAITING_SSO"
    WAITING_DEVICE_CONFIRMATION = "WAITING_DEVICE_CONFIRMATION"
    DEVICE_CONFIRMED = "DEVICE_CONFIRMED"
    DETECTED_BUTTON = "DETECTED_BUTTON"
    PERSISTING = "PERSISTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (LoginPhase.SUCCESS, LoginPhase.FAILED)


class Credentials(BaseModel):
    """Credentials for unattended login.

    The same email is used on the Adobe ID page and on the Okta broker.
    Adobe only asks for a password for non-federated accounts, so
    ``primary_password`` is optional.
    """

    email: str
    broker_password: str = Field(repr=False)
    primary_password: str | None = Field(default=None, repr=False)

    @field_validator("email")
    @classmethod
    def _email_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("email must not be empty")
        return value


class LoginOptions(BaseModel):
    """Options accepted by ``LoginService.login``."""

    headless: bool | str | None = None
    credentials: Credentials | None = None

    @field_validator("headless")
    @classmethod
    def _headless_bool_like(cls, value: bool | str | None) -> bool | str | None:
        if isinstance(value, str) and value.strip().lower() not in ("true", "false"):
            raise ValueError(f"headless must be true/false, got {value!r}")
        return value


class BrowserConfig(BaseModel):
    """Browser automation configuration."""

    headless: bool = True
    timeout: int = 30000
    screenshots_on_error: bool = True
    screenshots_dir: Path = Path("screenshots")
    launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-dev-shm-usage"]
    )


class LoginSettings(BaseModel):
    """Timing and selector knobs for the login driver (all times in ms)."""

    login_url: str = DEFAULT_LOGIN_URL
    button_selector: str = DEFAULT_BUTTON_SELECTOR
    max_total_ms: int = Field(default=90_000, ge=0)
    initial_grace_ms: int = Field(default=40_000, ge=0)
    poll_interval_ms: int = Field(default=3_000, ge=0)
    max_persist_attempts: int = Field(default=15, ge=1)
    multi_persist: bool = False
    navigation_timeout_ms: int = Field(default=60_000, ge=0)
    step_settle_ms: int = Field(default=1_500, ge=0)
    push_poll_interval_ms: int = Field(default=3_000, ge=0)
    push_max_polls: int = Field(default=20, ge=1)
    refine_interval_ms: int = Field(default=3_000, ge=0)
    refine_max_ticks: int = Field(default=15, ge=1)
    stable_ticks: int = Field(default=3, ge=1)
    allow_headless_override: bool = True
    broker_host_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_BROKER_HOSTS))

    @field_validator("broker_host_markers", mode="before")
    @classmethod
    def _split_hosts(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            value = [str(host).strip().lower() for host in value if str(host).strip()]
        return value


class SessionConfig(BaseModel):
    """Where session artifacts live and how long they stay fresh."""

    state_dir: Path = Path(".")
    state_file: str = "wf_state.json"
    partial_file: str = "wf_state.partial.json"
    max_age_hours: float = Field(default=8.0, gt=0)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    login: LoginSettings = Field(default_factory=LoginSettings)
    session: SessionConfig = Field(default_factory=SessionConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    credentials: Credentials | None = None


class LoginStatus(BaseModel):
    logged_in: bool
    session_file: str
    last_login: datetime.datetime | None = None
    hours_age: float | None = None
    file_size: int | None = None
    error: str | None = None


class SessionInfo(BaseModel):
    """Non-sensitive summary of the stored session. Never carries cookie values."""

    has_session: bool
    message: str | None = None
    last_login: datetime.datetime | None = None
    hours_age: float | None = None
    has_storage_state: bool | None = None
    cookie_count: int | None = None
    domain: str | None = None
    error: str | None = None


class SessionValidation(BaseModel):
    valid: bool
    reason: str | None = None
    last_login: datetime.datetime | None = None
    hours_age: float | None = None
    error: str | None = None


class SessionAge(BaseModel):
    hours: float
    days: float


class SessionStats(BaseModel):
    has_stats: bool
    message: str | None = None
    session_age: SessionAge | None = None
    session_size: int | None = None
    last_access: datetime.datetime | None = None
    expires_in: float | None = None
    is_expiring_soon: bool | None = None
    error: str | None = None


class ClearSessionResult(BaseModel):
    success: bool
    message: str
    cleared_file: str


class LoginResult(BaseModel):
    success: bool
    message: str
    reused: bool = False
    session_file: str | None = None
    login_time: datetime.datetime | None = None


class LoginProgressState(BaseModel):
    """Snapshot of the in-flight (or last) login attempt."""

    phase: LoginPhase = LoginPhase.IDLE
    started_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    attempts: int = 0
    message: str | None = None
    error: str | None = None
    done: bool = True


class StartLoginResult(BaseModel):
    """Outcome of a fire-and-forget login request.

    ``conflict`` is set when another login was already running; in that case
    nothing was started and ``phase`` reports the running attempt's phase.
    """

    started: bool
    conflict: bool = False
    phase: LoginPhase
