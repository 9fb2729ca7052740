"""Tests for data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from workfront_session.models import (
    Credentials,
    LoginOptions,
    LoginPhase,
    LoginProgressState,
    LoginSettings,
)


class TestCredentials:
    def test_passwords_hidden_from_repr(self):
        creds = Credentials(
            email="jane.doe@acme.com", broker_password="okta-secret", primary_password="adobe-secret"
        )
        text = repr(creds)
        assert "okta-secret" not in text
        assert "adobe-secret" not in text
        assert "jane.doe@acme.com" in text

    def test_primary_password_optional(self):
        creds = Credentials(email="jane.doe@acme.com", broker_password="x")
        assert creds.primary_password is None

    def test_blank_email_rejected(self):
        with pytest.raises(ValidationError, match="email must not be empty"):
            Credentials(email="   ", broker_password="x")

    def test_broker_password_required(self):
        with pytest.raises(ValidationError):
            Credentials(email="jane.doe@acme.com")


class TestLoginOptions:
    def test_defaults(self):
        options = LoginOptions()
        assert options.headless is None
        assert options.credentials is None

    @pytest.mark.parametrize("value", [True, False, "true", "FALSE"])
    def test_accepts_bool_like(self, value):
        assert LoginOptions(headless=value).headless == value

    def test_rejects_other_strings(self):
        with pytest.raises(ValidationError, match="headless must be true/false"):
            LoginOptions(headless="sometimes")


class TestLoginPhase:
    def test_terminal_phases(self):
        assert LoginPhase.SUCCESS.is_terminal
        assert LoginPhase.FAILED.is_terminal
        assert not LoginPhase.IDLE.is_terminal
        assert not LoginPhase.WAITING_DEVICE_CONFIRMATION.is_terminal

    def test_progress_state_starts_idle_and_done(self):
        state = LoginProgressState()
        assert state.phase is LoginPhase.IDLE
        assert state.done is True
        assert state.attempts == 0


class TestLoginSettings:
    def test_negative_timing_rejected(self):
        with pytest.raises(ValidationError):
            LoginSettings(poll_interval_ms=-1)

    def test_persist_cap_at_least_one(self):
        with pytest.raises(ValidationError):
            LoginSettings(max_persist_attempts=0)
