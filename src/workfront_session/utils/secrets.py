"""1Password CLI integration for login credentials.

The ``credentials`` section of ``config.yaml`` may hold
``op://vault/item/field`` references so that Adobe and Okta passwords never
sit on disk in clear text. Other sections are plain settings; a reference
there is a configuration mistake and is rejected.
"""

from __future__ import annotations

import subprocess
from typing import Any

import structlog

logger = structlog.get_logger()

OP_PREFIX = "op://"
SECRET_SECTIONS = ("credentials",)


def is_secret_reference(value: Any) -> bool:
    """Check if a value is a 1Password secret reference."""
    return isinstance(value, str) and value.startswith(OP_PREFIX)


def resolve_secret(reference: str, *, key: str = "secret") -> str:
    """Resolve a single 1Password secret reference using `op read`.

    Args:
        reference: A 1Password reference like "op://vault/item/field"
        key: Dotted config key the reference came from, used in errors.
            The reference itself is never echoed.

    Returns:
        The resolved secret value; non-references are returned unchanged.

    Raises:
        RuntimeError: If `op` CLI fails or is not available.
    """
    if not is_secret_reference(reference):
        return reference

    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
    except FileNotFoundError:
        raise RuntimeError(
            f"{key} is a 1Password reference but the 1Password CLI (`op`) is not "
            "installed or not in PATH. "
            "Install it from https://1password.com/downloads/command-line/"
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"Failed to resolve {key} from 1Password: {e.stderr.strip()}")
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"Timed out resolving {key}. Is 1Password unlocked?")

    value = result.stdout.strip()
    if not value:
        raise RuntimeError(f"1Password returned an empty value for {key}")
    return value


def _resolve_section(data: dict[str, Any], prefix: str) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for name, value in data.items():
        key = f"{prefix}.{name}"
        if isinstance(value, dict):
            resolved[name] = _resolve_section(value, key)
        elif is_secret_reference(value):
            logger.debug("resolving_secret", key=key)
            resolved[name] = resolve_secret(value, key=key)
        else:
            resolved[name] = value
    return resolved


def _find_references(data: dict[str, Any], prefix: str = "") -> list[str]:
    found = []
    for name, value in data.items():
        key = f"{prefix}.{name}" if prefix else str(name)
        if isinstance(value, dict):
            found.extend(_find_references(value, key))
        elif is_secret_reference(value):
            found.append(key)
    return found


def resolve_credential_secrets(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the raw config with credential references resolved.

    Raises:
        ValueError: A reference appears outside the credential sections.
        RuntimeError: A credential reference could not be read.
    """
    misplaced = _find_references(
        {name: value for name, value in raw.items() if name not in SECRET_SECTIONS}
    )
    if misplaced:
        raise ValueError(
            "1Password references are only supported under "
            f"{', '.join(SECRET_SECTIONS)}: found in {', '.join(misplaced)}"
        )

    resolved = dict(raw)
    for section in SECRET_SECTIONS:
        if isinstance(raw.get(section), dict):
            resolved[section] = _resolve_section(raw[section], section)
    return resolved
