from __future__ import annotations

from math import isfinite
from numbers import Real
from typing import Any


class ConfigurationError(ValueError):
    """Error raised when a debouncer or throttler is configured incorrectly.

    This is raised eagerly, when the wrapper is created, so that it can never be
    confused with an exception raised by the wrapped callable itself.
    """

    __module__ = "damper"


def validate_duration(name: str, value: Any, minimum: float = 0) -> float:
    """Return `value` as a float, or raise ConfigurationError if it is invalid."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationError(
            f"{name!r} must be a number of milliseconds, not {type(value).__name__}"
        )
    if not isfinite(value):
        raise ConfigurationError(f"{name!r} must be finite, got {value}")
    if value < minimum:
        raise ConfigurationError(f"{name!r} must be >= {minimum}, got {value}")
    return float(value)


def validate_flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name!r} must be a bool, not {type(value).__name__}")
    return value
