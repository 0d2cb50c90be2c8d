"""Utilities for testing code that uses debounced and throttled functions."""

from __future__ import annotations

import heapq
import itertools
from typing import TYPE_CHECKING, Any
from unittest.mock import Mock
from unittest.util import safe_repr

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ["CallRecorder", "FakeClock", "ManualScheduler"]


class FakeClock:
    """A clock that only moves when told to.

    Moving a FakeClock never runs any callbacks; it may also be moved backwards,
    which is handy to exercise clock-skew handling.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    __call__ = now

    def advance(self, ms: float) -> float:
        """Move the clock by `ms` milliseconds (may be negative)."""
        self._now += ms
        return self._now

    def set(self, ms: float) -> None:
        self._now = float(ms)

    def __repr__(self) -> str:
        return f"FakeClock(now={self._now:g})"


class _ScheduledCall:
    __slots__ = ("callback", "cancelled", "due")

    def __init__(self, callback: Callable[[], Any], due: float) -> None:
        self.callback = callback
        self.due = due
        self.cancelled = False


class ManualScheduler:
    """A deterministic scheduler driven by a FakeClock.

    Delayed callbacks only run from `advance` or `run_all`, in order of their due
    time (ties in the order they were scheduled), and the clock reads exactly the
    due time while each callback runs.

    Examples
    --------
    ```python
    from damper import debounced
    from damper.testing import ManualScheduler

    scheduler = ManualScheduler()
    search = debounced(print, wait=100, scheduler=scheduler)
    search("a")
    search("b")
    scheduler.advance(100)  # prints "b"
    ```
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock if clock is not None else FakeClock()
        self._queue: list[tuple[float, int, _ScheduledCall]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self.clock.now()

    def schedule(self, callback: Callable[[], Any], delay: float) -> _ScheduledCall:
        call = _ScheduledCall(callback, self.clock.now() + max(delay, 0))
        heapq.heappush(self._queue, (call.due, next(self._counter), call))
        return call

    def cancel(self, handle: _ScheduledCall) -> None:
        handle.cancelled = True

    @property
    def scheduled_count(self) -> int:
        """Number of callbacks that are scheduled and not cancelled."""
        return sum(not call.cancelled for *_, call in self._queue)

    def _pop_due(self, until: float) -> _ScheduledCall | None:
        while self._queue and self._queue[0][0] <= until:
            *_, call = heapq.heappop(self._queue)
            if not call.cancelled:
                return call
        return None

    def advance(self, ms: float) -> None:
        """Move the clock forward by `ms`, running every callback that comes due."""
        if ms < 0:
            raise ValueError("ManualScheduler cannot advance backwards")
        target = self.clock.now() + ms
        while (call := self._pop_due(target)) is not None:
            self.clock.set(max(call.due, self.clock.now()))
            call.cancelled = True
            call.callback()
        self.clock.set(target)

    def run_all(self, limit: int = 1000) -> None:
        """Run callbacks until none are left, moving the clock as needed."""
        for _ in range(limit):
            if (call := self._pop_due(float("inf"))) is None:
                return
            self.clock.set(max(call.due, self.clock.now()))
            call.cancelled = True
            call.callback()
        raise RuntimeError(f"Callbacks still scheduled after {limit} iterations")

    def __repr__(self) -> str:
        return f"ManualScheduler({self.clock!r}, scheduled={self.scheduled_count})"


class CallRecorder:
    """A callable that records its calls and returns a configurable value.

    Parameters
    ----------
    return_value : Any
        Value returned from every call.
    side_effect : Any
        Passed to the underlying `unittest.mock.Mock`, e.g. an exception to raise.
    """

    def __init__(self, return_value: Any = None, side_effect: Any = None) -> None:
        self.mock = Mock(return_value=return_value, side_effect=side_effect)
        self.__name__ = "CallRecorder"
        self.__qualname__ = "CallRecorder"

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.mock(*args, **kwargs)

    @property
    def call_count(self) -> int:
        return self.mock.call_count

    @property
    def call_args_list(self) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(c.args, c.kwargs) for c in self.mock.call_args_list]

    def reset(self) -> None:
        self.mock.reset_mock()

    def assert_not_invoked(self) -> None:
        if self.mock.call_count:
            raise AssertionError(
                f"Expected no invocation. Invoked {self.mock.call_count} times."
            )

    def assert_invoked_once(self) -> None:
        if self.mock.call_count != 1:
            raise AssertionError(
                f"Expected exactly one invocation. "
                f"Invoked {self.mock.call_count} times."
            )

    def assert_invoked_times(self, count: int) -> None:
        if self.mock.call_count != count:
            raise AssertionError(
                f"Expected {count} invocations. Invoked {self.mock.call_count} times."
            )

    def assert_invoked_once_with(self, *args: Any, **kwargs: Any) -> None:
        self.assert_invoked_once()
        self.assert_last_invoked_with(*args, **kwargs)

    def assert_last_invoked_with(self, *args: Any, **kwargs: Any) -> None:
        if not self.mock.call_count:
            raise AssertionError("Expected an invocation. Not invoked.")
        call = self.mock.call_args
        if call.args != args or call.kwargs != kwargs:
            raise AssertionError(
                f"Expected last invocation with {safe_repr(args)} {safe_repr(kwargs)}."
                f" Invoked with {safe_repr(call.args)} {safe_repr(call.kwargs)}."
            )
