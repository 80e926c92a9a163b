"""Helper utilities for configuration handling."""

from __future__ import annotations

import os
from pathlib import Path

_ENV_PREFIX = "env:"


def resolve_env_reference(value: str | None, *, required: bool = True) -> str | None:
    """Resolve values of the form ``"env:VAR_NAME"`` from ``os.environ``.

    Plain strings are returned unchanged and ``None`` passes through. When
    ``required`` is true a missing or empty variable raises
    :class:`EnvironmentError`; otherwise ``None`` is returned.
    """

    if value is None:
        return None
    if not value.startswith(_ENV_PREFIX):
        return value

    var_name = value.split(":", 1)[1]
    resolved = os.getenv(var_name)
    if resolved:
        return resolved
    if required:
        raise EnvironmentError(f"Environment variable '{var_name}' is not set or empty")
    return None


def resolve_path_reference(value: str | None) -> Path | None:
    """Resolve an optional path setting, expanding ``env:`` references and ``~``."""

    resolved = resolve_env_reference(value)
    if resolved is None:
        return None
    return Path(resolved).expanduser()


__all__ = ["resolve_env_reference", "resolve_path_reference"]
