"""Shared test fixtures for workfront-session."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog
from playwright.async_api import Error as PlaywrightError

from workfront_session.auth.progress import ProgressTracker
from workfront_session.browser.storage import SessionStore
from workfront_session.models import (
    BrowserConfig,
    Credentials,
    LoginPhase,
    LoginSettings,
    SessionConfig,
)

SAMPLE_COOKIES = [
    {"name": "ims_sid", "value": "secret-sid", "domain": ".adobe.com", "path": "/"},
    {"name": "wf_token", "value": "secret-token", "domain": "acme.my.workfront.com", "path": "/"},
    {"name": "aux", "value": "secret-aux", "domain": ".adobe.com", "path": "/"},
]


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Reset structlog configuration after each test.

    Prevents the CLI's setup_logging() from poisoning other tests
    with a logger bound to a closed stderr file descriptor.
    """
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _clean_wf_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's WF_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("WF_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("workfront_session.headless._config_logged", False)


@pytest.fixture
def session_config(tmp_path: Path) -> SessionConfig:
    return SessionConfig(state_dir=tmp_path)


@pytest.fixture
def store(session_config: SessionConfig) -> SessionStore:
    return SessionStore(session_config)


@pytest.fixture
def tracker() -> RecordingTracker:
    return RecordingTracker()


@pytest.fixture
def fast_settings() -> LoginSettings:
    """Driver settings with every wait shrunk to milliseconds."""
    return LoginSettings(
        login_url="https://experience.adobe.com/",
        max_total_ms=200,
        initial_grace_ms=0,
        poll_interval_ms=1,
        navigation_timeout_ms=10,
        step_settle_ms=0,
        push_poll_interval_ms=1,
        push_max_polls=5,
        refine_interval_ms=1,
        refine_max_ticks=5,
        stable_ticks=2,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(email="jane.doe@acme.com", broker_password="okta-pass-123")


@pytest.fixture
def artifact() -> dict[str, Any]:
    return {
        "cookies": SAMPLE_COOKIES,
        "origins": [],
        "storageState": {"origins": [], "url": "https://experience.adobe.com/", "capturedAt": "x"},
    }


@pytest.fixture
def write_session(store: SessionStore, artifact: dict[str, Any]) -> Callable[..., Path]:
    """Write a final session file, optionally back-dated by ``hours``."""

    def _write(hours: float = 0.0, document: dict[str, Any] | None = None) -> Path:
        path = store.state_path
        path.write_text(json.dumps(artifact if document is None else document))
        if hours:
            stamp = time.time() - hours * 3600
            os.utime(path, (stamp, stamp))
        return path

    return _write


class RecordingTracker(ProgressTracker):
    """ProgressTracker that also keeps the phase history."""

    def __init__(self) -> None:
        super().__init__()
        self.phases: list[LoginPhase] = []

    def update(self, phase: LoginPhase, message: str | None = None) -> None:
        self.phases.append(phase)
        super().update(phase, message)


# -- Playwright fakes -------------------------------------------------------


class FakeElement:
    pass


class FakeLocator:
    def __init__(self, page: FakePage, selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> FakeLocator:
        return self

    async def count(self) -> int:
        return 1 if self.selector in self.page.present else 0

    async def is_visible(self) -> bool:
        return self.selector in self.page.present

    async def fill(self, value: str) -> None:
        if self.selector in self.page.fill_fails:
            raise PlaywrightError("Element is not an <input>")
        self.page.filled[self.selector] = value

    async def click(self) -> None:
        self.page.clicked.append(self.selector)
        hook = self.page.on_click.get(self.selector)
        if hook:
            hook(self.page)

    async def press(self, key: str) -> None:
        self.page.pressed.append((self.selector, key))

    async def all_text_contents(self) -> list[str]:
        self.page.heading_reads += 1
        if self.page.on_heading_read:
            self.page.on_heading_read(self.page, self.page.heading_reads)
        if self.page.heading_error:
            raise self.page.heading_error
        return list(self.page.headings)


class FakePage:
    """Just enough of ``playwright.async_api.Page`` for the login flow.

    ``present`` holds the selectors that currently match a visible element;
    ``on_click`` maps a selector to a hook that mutates the page, which is
    how tests script navigation between sign-in screens.
    """

    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.present: set[str] = set()
        self.fill_fails: set[str] = set()
        self.filled: dict[str, str] = {}
        self.evaluated: list[dict[str, Any]] = []
        self.clicked: list[str] = []
        self.pressed: list[tuple[str, str]] = []
        self.on_click: dict[str, Callable[[FakePage], None]] = {}
        self.headings: list[str] = []
        self.heading_reads = 0
        self.heading_error: Exception | None = None
        self.on_heading_read: Callable[[FakePage, int], None] | None = None
        self.goto_url: str | None = None
        self.visited: list[str] = []
        self.marker_after: int | None = None
        self.marker_queries = 0
        self.title_text = ""
        self.closed = False

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.visited.append(url)
        self.url = self.goto_url or url

    async def query_selector(self, selector: str) -> FakeElement | None:
        self.marker_queries += 1
        if self.marker_after is not None and self.marker_queries >= self.marker_after:
            return FakeElement()
        return FakeElement() if selector in self.present else None

    async def evaluate(self, script: str, arg: dict[str, Any]) -> bool:
        self.evaluated.append(arg)
        self.filled[arg["selector"]] = arg["value"]
        return True

    async def wait_for_load_state(self, state: str = "load", **kwargs: Any) -> None:
        return None

    async def title(self) -> str:
        return self.title_text

    def is_closed(self) -> bool:
        return self.closed


class FakeBrowser:
    """Stands in for ``BrowserSession``; pass ``fake.factory`` as session_factory."""

    def __init__(self, page: FakePage, cookies: list[dict[str, Any]] | None = None) -> None:
        self.page = page
        self.cookies = SAMPLE_COOKIES if cookies is None else cookies
        self.configs: list[BrowserConfig] = []
        self.snapshots = 0
        self.entered = False
        self.closed = False
        self.exit_exc: type[BaseException] | None = None

    def factory(self, config: BrowserConfig, name: str = "workfront") -> FakeSession:
        self.configs.append(config)
        return FakeSession(self)


class FakeSession:
    def __init__(self, browser: FakeBrowser) -> None:
        self.browser = browser

    async def __aenter__(self) -> FakeSession:
        self.browser.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.browser.closed = True
        self.browser.exit_exc = exc_type

    async def new_page(self) -> FakePage:
        return self.browser.page

    async def snapshot(self) -> dict[str, Any]:
        self.browser.snapshots += 1
        return {"cookies": list(self.browser.cookies), "origins": []}


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def fake_browser(fake_page: FakePage) -> FakeBrowser:
    return FakeBrowser(fake_page)


@pytest.fixture
def make_browser() -> Callable[..., FakeBrowser]:
    def _make(page: FakePage | None = None, cookies: list[dict[str, Any]] | None = None) -> FakeBrowser:
        return FakeBrowser(page or FakePage(), cookies)

    return _make


@pytest.fixture
def config_yaml_content() -> str:
    return """\
login:
  login_url: "https://experience.adobe.com/#/@acme"
  max_total_ms: 120000
  multi_persist: true

session:
  max_age_hours: 4

browser:
  headless: false
  timeout: 15000

credentials:
  email: "jane.doe@acme.com"
  broker_password: "op://Work/Okta/password"
"""
