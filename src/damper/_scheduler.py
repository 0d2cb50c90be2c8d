from __future__ import annotations

import logging
import os
import threading
import time
from typing import TYPE_CHECKING, Any, overload

from typing_extensions import Protocol, runtime_checkable

from ._exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Literal

    from typing_extensions import TypeAlias

    from ._async import AsyncioScheduler

    SchedulerName: TypeAlias = Literal["threading", "asyncio"]

__all__ = [
    "Scheduler",
    "ThreadingScheduler",
    "get_default_scheduler",
    "set_default_scheduler",
]

logger = logging.getLogger(__name__)

SCHEDULER_ENV_VAR = "DAMPER_SCHEDULER"


@runtime_checkable
class Scheduler(Protocol):
    """A clock paired with a delayed-callback primitive.

    All times and delays are in milliseconds.  `now()` only needs to be monotonic
    enough for subtraction: the engine tolerates a clock that moves backwards.
    """

    def now(self) -> float:
        """Return the current time in milliseconds."""
        ...

    def schedule(self, callback: Callable[[], Any], delay: float) -> Any:
        """Call `callback` once, `delay` milliseconds from now. Return a handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Prevent the callback identified by `handle` from running.

        Cancelling a handle whose callback already ran must be a no-op.
        """
        ...


class ThreadingScheduler:
    """Scheduler that runs each delayed callback on a `threading.Timer`.

    Callbacks run on the timer's own (daemon) thread, so whatever they touch must
    be guarded by a lock.
    """

    def now(self) -> float:
        return time.monotonic() * 1000

    def schedule(self, callback: Callable[[], Any], delay: float) -> threading.Timer:
        timer = threading.Timer(max(delay, 0) / 1000, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


_DEFAULT_SCHEDULER: Scheduler | None = None


def _scheduler_from_name(name: str) -> Scheduler:
    if name == "threading":
        return ThreadingScheduler()
    if name == "asyncio":
        from ._async import AsyncioScheduler

        return AsyncioScheduler()
    raise ConfigurationError(
        f"Scheduler not supported: {name!r}. Must be one of: 'threading', 'asyncio'"
    )


def get_default_scheduler() -> Scheduler:
    """Return the scheduler used by wrappers created without an explicit one.

    On first use, this is chosen by the ``DAMPER_SCHEDULER`` environment variable
    ("threading" or "asyncio"), falling back to a `ThreadingScheduler`.
    """
    global _DEFAULT_SCHEDULER
    if _DEFAULT_SCHEDULER is None:
        name = os.getenv(SCHEDULER_ENV_VAR, "threading").strip().lower()
        _DEFAULT_SCHEDULER = _scheduler_from_name(name)
        logger.debug("default scheduler initialized: %r", _DEFAULT_SCHEDULER)
    return _DEFAULT_SCHEDULER


@overload
def set_default_scheduler(scheduler: Literal["threading"]) -> ThreadingScheduler: ...
@overload
def set_default_scheduler(scheduler: Literal["asyncio"]) -> AsyncioScheduler: ...
@overload
def set_default_scheduler(scheduler: Scheduler) -> Scheduler: ...
def set_default_scheduler(scheduler: SchedulerName | Scheduler) -> Scheduler:
    """Set the scheduler used by wrappers created without an explicit one.

    Only wrappers created *after* this call are affected.
    """
    global _DEFAULT_SCHEDULER
    if isinstance(scheduler, str):
        scheduler = _scheduler_from_name(scheduler)
    elif not isinstance(scheduler, Scheduler):
        raise ConfigurationError(
            f"Expected a Scheduler or a scheduler name, not {type(scheduler).__name__}"
        )
    _DEFAULT_SCHEDULER = scheduler
    logger.debug("default scheduler set to %r", scheduler)
    return scheduler


def clear_default_scheduler() -> None:
    """Forget the default scheduler. Primarily for testing purposes."""
    global _DEFAULT_SCHEDULER
    _DEFAULT_SCHEDULER = None
