"""Damper provides debounced and throttled wrappers for Python callables.

A debounced function waits for a quiet period before invoking the function it
wraps; a throttled function invokes it at most once per interval.
"""

from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

try:
    __version__ = version("damper")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "AsyncioScheduler",
    "BoundWrapper",
    "ConfigurationError",
    "Debouncer",
    "Scheduler",
    "ThreadingScheduler",
    "Throttler",
    "__version__",
    "_compiled",
    "debounced",
    "get_default_scheduler",
    "set_default_scheduler",
    "throttled",
]

from ._async import AsyncioScheduler
from ._exceptions import ConfigurationError
from ._scheduler import (
    Scheduler,
    ThreadingScheduler,
    get_default_scheduler,
    set_default_scheduler,
)
from ._throttler import BoundWrapper, Debouncer, Throttler, debounced, throttled

if TYPE_CHECKING:
    _compiled: bool


def __getattr__(name: str) -> Any:
    if name == "_compiled":
        return hasattr(Debouncer, "__mypyc_attrs__")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


del TYPE_CHECKING
