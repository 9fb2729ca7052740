"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from workfront_session.config import apply_env_overrides, find_config_file, load_config
from workfront_session.models import DEFAULT_LOGIN_URL


class TestFindConfigFile:
    def test_explicit_path_exists(self, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text("login: {}")
        assert find_config_file(config) == config

    def test_explicit_path_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            find_config_file(tmp_path / "nonexistent.yaml")

    def test_no_default_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            "workfront_session.config.DEFAULT_CONFIG_PATHS", [Path("config.yaml")]
        )
        assert find_config_file() is None

    def test_finds_config_yaml_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.yaml").write_text("login: {}")
        assert find_config_file() == Path("config.yaml")


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            "workfront_session.config.DEFAULT_CONFIG_PATHS", [Path("config.yaml")]
        )
        config = load_config(environ={})

        assert config.login.login_url == DEFAULT_LOGIN_URL
        assert config.login.max_total_ms == 90_000
        assert config.login.initial_grace_ms == 40_000
        assert config.login.poll_interval_ms == 3_000
        assert config.login.max_persist_attempts == 15
        assert config.login.multi_persist is False
        assert config.session.state_file == "wf_state.json"
        assert config.session.partial_file == "wf_state.partial.json"
        assert config.credentials is None

    def test_load_valid_config(self, tmp_path: Path, config_yaml_content: str):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(config_yaml_content)

        config = load_config(config_file, resolve_secrets=False, environ={})

        assert config.login.login_url == "https://experience.adobe.com/#/@acme"
        assert config.login.max_total_ms == 120_000
        assert config.login.multi_persist is True
        assert config.session.max_age_hours == 4
        assert config.browser.headless is False
        assert config.credentials.email == "jane.doe@acme.com"

    def test_op_references_kept_when_not_resolving(self, tmp_path: Path, config_yaml_content: str):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(config_yaml_content)

        config = load_config(config_file, resolve_secrets=False, environ={})
        assert config.credentials.broker_password == "op://Work/Okta/password"

    def test_empty_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        config = load_config(config_file, environ={})
        assert config.login.max_total_ms == 90_000

    def test_env_overrides_file(self, tmp_path: Path, config_yaml_content: str):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(config_yaml_content)

        config = load_config(
            config_file,
            resolve_secrets=False,
            environ={
                "WF_LOGIN_MAX_TOTAL_MS": "5000",
                "WF_LOGIN_MULTI_PERSIST": "false",
                "WF_LOGIN_BUTTON_SELECTOR": "#shell",
                "WF_STATE_DIR": str(tmp_path / "state"),
            },
        )

        assert config.login.max_total_ms == 5000
        assert config.login.multi_persist is False
        assert config.login.button_selector == "#shell"
        assert config.session.state_dir == tmp_path / "state"

    def test_invalid_env_value(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("login: {}")
        with pytest.raises(ValidationError):
            load_config(config_file, environ={"WF_LOGIN_POLL_INTERVAL_MS": "soon"})


class TestApplyEnvOverrides:
    def test_does_not_mutate_input(self):
        raw = {"login": {"max_total_ms": 1}}
        merged = apply_env_overrides(raw, {"WF_LOGIN_MAX_TOTAL_MS": "2"})
        assert raw == {"login": {"max_total_ms": 1}}
        assert merged["login"]["max_total_ms"] == "2"

    def test_multi_persist_parsing(self):
        assert apply_env_overrides({}, {"WF_LOGIN_MULTI_PERSIST": "TRUE"})["login"]["multi_persist"] == "True"
        assert apply_env_overrides({}, {"WF_LOGIN_MULTI_PERSIST": ""})["login"]["multi_persist"] == "False"

    def test_empty_values_ignored(self):
        assert apply_env_overrides({}, {"WF_LOGIN_URL": ""}) == {}


class TestBrokerHosts:
    def test_default_includes_custom_okta_domain(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("login: {}")
        config = load_config(config_file, environ={})
        assert "okta.com" in config.login.broker_host_markers
        assert "login.dell.com" in config.login.broker_host_markers

    def test_env_comma_list(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("login: {}")

        config = load_config(
            config_file, environ={"WF_LOGIN_BROKER_HOSTS": "okta.com, SSO.Acme.com ,"}
        )

        assert config.login.broker_host_markers == ["okta.com", "sso.acme.com"]

    def test_yaml_list(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("login:\n  broker_host_markers:\n    - okta.com\n    - id.acme.com\n")

        config = load_config(config_file, environ={})

        assert config.login.broker_host_markers == ["okta.com", "id.acme.com"]


def test_secret_outside_credentials_rejected(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text('login:\n  login_url: "op://Work/Workfront/url"\n')

    with pytest.raises(ValueError, match="login.login_url"):
        load_config(config_file, environ={})
