"""Decide whether the login browser runs headless or in a visible window.

Rules, highest precedence first:

1. ``WF_FORCE_VISIBLE=true`` always opens a visible window.
2. An explicit override, honored only when the caller may override.
3. ``WF_HEADLESS_DEFAULT`` (``true``/``false``).
4. Headless.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

import structlog

logger = structlog.get_logger()

_config_logged = False


def _env_flag(environ: Mapping[str, str], name: str, default: str) -> bool:
    return environ.get(name, default).strip().lower() == "true"


def _parse_override(override: bool | str | None) -> bool | None:
    if isinstance(override, bool):
        return override
    if isinstance(override, str):
        value = override.strip().lower()
        if value == "true":
            return True
        if value == "false":
            return False
    return None


def resolve_headless(
    override: bool | str | None = None,
    *,
    allow_override: bool = False,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Resolve the headless flag for a browser launch.

    Args:
        override: Caller preference, as a bool or a ``"true"``/``"false"`` string.
            Other values are ignored.
        allow_override: Whether ``override`` may be honored at all.
        environ: Environment to read instead of ``os.environ``.

    Returns:
        True to run headless, False to open a visible window.
    """
    env = os.environ if environ is None else environ

    if _env_flag(env, "WF_DEBUG_HEADLESS", "false"):
        log_headless_config_once("resolve", environ=env)

    if _env_flag(env, "WF_FORCE_VISIBLE", "false"):
        return False

    if allow_override:
        parsed = _parse_override(override)
        if parsed is not None:
            return parsed

    return _env_flag(env, "WF_HEADLESS_DEFAULT", "true")


def log_headless_config_once(
    context: str = "bootstrap", *, environ: Mapping[str, str] | None = None
) -> bool:
    """Log the headless environment once per process.

    Returns:
        True if this call emitted the log line.
    """
    global _config_logged
    if _config_logged:
        return False
    _config_logged = True

    env = os.environ if environ is None else environ
    logger.info(
        "headless_config",
        context=context,
        headless_default=env.get("WF_HEADLESS_DEFAULT", "(unset)"),
        force_visible=env.get("WF_FORCE_VISIBLE", "(unset)"),
        resolved=resolve_headless(environ=env),
    )
    return True
