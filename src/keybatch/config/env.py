"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value

    if missing:
        missing_list = ", ".join(sorted(missing))
        raise MissingConfigurationError(f"Missing configuration for: {missing_list}")

    return values


def optional_env_var(name: str) -> str | None:
    """Return a stripped environment variable, treating blank values as unset."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def optional_positive_int(name: str) -> int | None:
    value = optional_env_var(name)
    if value is None:
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise InvalidConfigurationError(name, value, "a positive integer") from exc
    if parsed <= 0:
        raise InvalidConfigurationError(name, value, "a positive integer")
    return parsed


def optional_positive_float(name: str) -> float | None:
    value = optional_env_var(name)
    if value is None:
        return None
    try:
        parsed = float(value)
    except ValueError as exc:
        raise InvalidConfigurationError(name, value, "a positive number") from exc
    if parsed <= 0:
        raise InvalidConfigurationError(name, value, "a positive number")
    return parsed


def env_list(name: str, *, separator: str = ",") -> tuple[str, ...]:
    """Split a separated environment variable into its non-blank items."""

    value = optional_env_var(name)
    if value is None:
        return ()
    return tuple(item.strip() for item in value.split(separator) if item.strip())
