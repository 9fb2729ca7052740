"""Configuration loading: optional YAML file, 1Password secrets, WF_* environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml

from workfront_session.models import AppConfig
from workfront_session.utils.secrets import resolve_credential_secrets

logger = structlog.get_logger()

DEFAULT_CONFIG_PATHS = [
    Path("config.yaml"),
    Path("config.yml"),
    Path.home() / ".config" / "workfront-session" / "config.yaml",
]

# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "WF_LOGIN_URL": ("login", "login_url"),
    "WF_LOGIN_BUTTON_SELECTOR": ("login", "button_selector"),
    "WF_LOGIN_MAX_TOTAL_MS": ("login", "max_total_ms"),
    "WF_LOGIN_INITIAL_GRACE_MS": ("login", "initial_grace_ms"),
    "WF_LOGIN_POLL_INTERVAL_MS": ("login", "poll_interval_ms"),
    "WF_LOGIN_MAX_PERSIST_ATTEMPTS": ("login", "max_persist_attempts"),
    "WF_LOGIN_MULTI_PERSIST": ("login", "multi_persist"),
    "WF_LOGIN_BROKER_HOSTS": ("login", "broker_host_markers"),
    "WF_STATE_DIR": ("session", "state_dir"),
}


def find_config_file(config_path: Path | None = None) -> Path | None:
    """Find the configuration file.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Path to the configuration file, or None when no default file exists.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
    """
    if config_path is not None:
        if config_path.exists():
            return config_path
        raise FileNotFoundError(f"Config file not found: {config_path}")

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            logger.info("config_found", path=str(path))
            return path

    logger.debug("no_config_file", searched=[str(p) for p in DEFAULT_CONFIG_PATHS])
    return None


def apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay ``WF_*`` environment variables on the raw config dict.

    Values stay strings; pydantic coerces them when the config is validated.
    ``WF_LOGIN_BROKER_HOSTS`` is a comma-separated host list.
    An empty ``WF_LOGIN_MULTI_PERSIST`` counts as false.
    """
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in raw.items()}
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or (value == "" and env_name != "WF_LOGIN_MULTI_PERSIST"):
            continue
        if env_name == "WF_LOGIN_MULTI_PERSIST":
            value = str(value.strip().lower() == "true")
        merged.setdefault(section, {})[field] = value
        logger.debug("config_env_override", variable=env_name)
    return merged


def load_config(
    config_path: Path | None = None,
    resolve_secrets: bool = True,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and validate application configuration.

    Args:
        config_path: Explicit path to config file.
        resolve_secrets: Whether to resolve 1Password references in the
            credentials section.
            Set to False for validation without 1Password access.
        environ: Environment to read instead of ``os.environ``.

    Returns:
        Validated AppConfig instance.
    """
    path = find_config_file(config_path)
    raw: dict[str, Any] = {}
    if path is not None:
        logger.info("loading_config", path=str(path))
        raw = yaml.safe_load(path.read_text()) or {}

    if resolve_secrets:
        raw = resolve_credential_secrets(raw)

    raw = apply_env_overrides(raw, os.environ if environ is None else environ)
    return AppConfig.model_validate(raw)
