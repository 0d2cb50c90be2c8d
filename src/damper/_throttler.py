from __future__ import annotations

import logging
import threading
from functools import partial
from math import inf
from typing import TYPE_CHECKING, Any, Generic, NamedTuple, TypeVar, overload

from typing_extensions import ParamSpec

from ._exceptions import ConfigurationError, validate_duration, validate_flag
from ._scheduler import get_default_scheduler

if TYPE_CHECKING:
    import inspect
    from collections.abc import Callable

    from typing_extensions import Self

    from ._scheduler import Scheduler

__all__ = ["BoundWrapper", "Debouncer", "Throttler", "debounced", "throttled"]

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


class _Unbound:
    def __repr__(self) -> str:
        return "<unbound>"


_UNBOUND: Any = _Unbound()


class _PendingTimer(NamedTuple):
    handle: Any
    token: object


class _InvocationState:
    """Mutable state owned by exactly one wrapper instance."""

    __slots__ = (
        "args",
        "kwargs",
        "last_call_time",
        "last_invoke_time",
        "receiver",
        "result",
        "timer",
    )

    def __init__(self) -> None:
        self.last_call_time: float | None = None
        self.last_invoke_time: float | None = None
        self.args: tuple[Any, ...] | None = None
        self.kwargs: dict[str, Any] = {}
        self.receiver: Any = _UNBOUND
        self.result: Any = None
        self.timer: _PendingTimer | None = None

    def clear_pending(self) -> None:
        self.args = None
        self.kwargs = {}
        self.receiver = _UNBOUND

    def since_call(self, now: float) -> float:
        if self.last_call_time is None:
            return inf
        return now - self.last_call_time

    def since_invoke(self, now: float) -> float:
        if self.last_invoke_time is None:
            return inf
        return now - self.last_invoke_time


class _ThrottlerBase(Generic[P, R]):
    def __init__(
        self,
        func: Callable[P, R],
        wait: float = 100,
        leading: bool = False,
        trailing: bool = True,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        if not callable(func):
            raise ConfigurationError(f"{func!r} is not callable")
        self.__wrapped__: Callable[P, R] = func
        self._wait: float = validate_duration("wait", wait)
        self._leading: bool = validate_flag("leading", leading)
        self._trailing: bool = validate_flag("trailing", trailing)
        self._scheduler: Scheduler = (
            get_default_scheduler() if scheduler is None else scheduler
        )
        self._state = _InvocationState()
        self._lock = threading.RLock()

        # this mimics what functools.wraps does, but avoids __dict__ usage and other
        # things that won't work with mypyc.
        self.__module__: str = getattr(func, "__module__", "")
        self.__name__: str = getattr(func, "__name__", "")
        self.__qualname__: str = getattr(func, "__qualname__", "")
        self.__doc__: str | None = getattr(func, "__doc__", None)
        self.__annotations__: dict[str, Any] = getattr(func, "__annotations__", {})

    # ------------------------- public surface -------------------------

    @property
    def wait(self) -> float:
        """Window (throttle) or quiet period (debounce), in milliseconds."""
        return self._wait

    @property
    def leading(self) -> bool:
        return self._leading

    @property
    def trailing(self) -> bool:
        return self._trailing

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def pending(self) -> bool:
        """Whether an invocation check is currently scheduled."""
        return self._state.timer is not None

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R | None:
        """Request a call of the wrapped function.

        Returns the result of the wrapped function if it was invoked by this call,
        otherwise the (possibly stale) result of the last invocation.
        """
        return self._handle_call(_UNBOUND, args, kwargs)

    def cancel(self) -> None:
        """Cancel any pending invocation and reset to the never-called state."""
        with self._lock:
            self._clear_timer()
            state = self._state
            state.clear_pending()
            state.last_call_time = None
            state.last_invoke_time = None
        logger.debug("%s: cancelled", self.__qualname__)

    def flush(self) -> R | None:
        """Immediately complete a pending invocation, if there is one.

        Returns the result of that invocation, or the last cached result if nothing
        was pending.
        """
        with self._lock:
            if self._state.timer is None:
                return self._state.result  # type: ignore [no-any-return]
            logger.debug("%s: flushing", self.__qualname__)
            return self._trailing_edge(self._scheduler.now())

    @overload
    def __get__(self, instance: None, owner: type[Any] | None = None) -> Self: ...
    @overload
    def __get__(
        self, instance: Any, owner: type[Any] | None = None
    ) -> BoundWrapper[R]: ...
    def __get__(
        self, instance: Any, owner: type[Any] | None = None
    ) -> Self | BoundWrapper[R]:
        """Bind to `instance` when used as a method decorator.

        State is held by this (class-level) wrapper, so all instances share one
        window; the instance is simply passed as the receiver of the next
        invocation.
        """
        if instance is None:
            return self
        return BoundWrapper(self, instance)

    @property
    def __signature__(self) -> inspect.Signature:
        import inspect

        return inspect.signature(self.__wrapped__)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.__qualname__ or self.__wrapped__!r}, "
            f"wait={self._wait:g}, leading={self._leading}, "
            f"trailing={self._trailing}{self._repr_extra()})"
        )

    # ------------------------- timing engine -------------------------

    def _repr_extra(self) -> str:
        return ""

    def _should_invoke(self, now: float) -> bool:
        raise NotImplementedError("Subclasses must implement this method.")

    def _remaining_wait(self, now: float) -> float:
        return self._wait - self._state.since_call(now)

    def _on_call(self, now: float, is_invoking: bool) -> R | None:
        raise NotImplementedError("Subclasses must implement this method.")

    def _handle_call(
        self, receiver: Any, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> R | None:
        with self._lock:
            state = self._state
            now = self._scheduler.now()
            is_invoking = self._should_invoke(now)

            state.args = args
            state.kwargs = kwargs
            state.receiver = receiver
            state.last_call_time = now
            return self._on_call(now, is_invoking)

    def _invoke(self, now: float) -> R:
        state = self._state
        args = state.args if state.args is not None else ()
        kwargs, receiver = state.kwargs, state.receiver
        state.clear_pending()
        state.last_invoke_time = now

        if receiver is _UNBOUND:
            result = self.__wrapped__(*args, **kwargs)
        else:
            result = self.__wrapped__(receiver, *args, **kwargs)  # type: ignore
        state.result = result
        return result

    def _start_timer(self, delay: float) -> None:
        self._clear_timer()
        token = object()
        handle = self._scheduler.schedule(partial(self._timer_expired, token), delay)
        self._state.timer = _PendingTimer(handle, token)

    def _clear_timer(self) -> None:
        if (timer := self._state.timer) is not None:
            self._state.timer = None
            self._scheduler.cancel(timer.handle)

    def _timer_expired(self, token: object) -> None:
        with self._lock:
            timer = self._state.timer
            if timer is None or timer.token is not token:
                # superseded by cancel, flush, or a reschedule
                return
            self._state.timer = None
            now = self._scheduler.now()
            if self._should_invoke(now):
                self._trailing_edge(now)
            else:
                remaining = self._remaining_wait(now)
                logger.debug("%s: rescheduling in %gms", self.__qualname__, remaining)
                self._start_timer(remaining)

    def _trailing_edge(self, now: float) -> R | None:
        self._clear_timer()
        state = self._state
        if self._trailing and state.args is not None:
            logger.debug("%s: trailing invocation", self.__qualname__)
            return self._invoke(now)
        state.clear_pending()
        return state.result  # type: ignore [no-any-return]


class Debouncer(_ThrottlerBase[P, R]):
    """Class that waits for `wait` ms without calls before calling `func`.

    Parameters
    ----------
    func : Callable[P, R]
        a function to wrap
    wait : float, optional
        the quiet period in ms that must pass after the last call before the
        function is called, by default 100
    leading : bool, optional
        Whether to invoke the function on the first call of a burst, by default False
    trailing : bool, optional
        Whether to invoke the function with the latest arguments once the quiet
        period has elapsed, by default True
    max_wait : float, optional
        Maximum time in ms that invocation may be deferred by a continuous stream
        of calls.  By default, there is no maximum.
    scheduler : Scheduler, optional
        Clock and delayed-callback provider.  By default, the scheduler returned by
        `get_default_scheduler()`.
    """

    def __init__(
        self,
        func: Callable[P, R],
        wait: float = 100,
        leading: bool = False,
        trailing: bool = True,
        max_wait: float | None = None,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        super().__init__(func, wait, leading, trailing, scheduler=scheduler)
        self._max_wait: float | None = (
            None if max_wait is None else validate_duration("max_wait", max_wait)
        )

    @property
    def max_wait(self) -> float | None:
        return self._max_wait

    def _repr_extra(self) -> str:
        return "" if self._max_wait is None else f", max_wait={self._max_wait:g}"

    def _should_invoke(self, now: float) -> bool:
        state = self._state
        if state.last_call_time is None:
            return True
        since_call = now - state.last_call_time
        return (
            since_call >= self._wait
            or since_call < 0
            or (
                self._max_wait is not None
                and state.since_invoke(now) >= self._max_wait
            )
        )

    def _remaining_wait(self, now: float) -> float:
        time_waiting = super()._remaining_wait(now)
        if self._max_wait is None:
            return time_waiting
        return min(time_waiting, self._max_wait - self._state.since_invoke(now))

    def _on_call(self, now: float, is_invoking: bool) -> R | None:
        state = self._state
        if is_invoking:
            if state.timer is None:
                return self._leading_edge(now)
            if self._max_wait is not None:
                # deferred for max_wait already: invoke now, whatever the edges
                logger.debug("%s: max_wait reached", self.__qualname__)
                self._start_timer(self._wait)
                return self._invoke(now)
        if state.timer is None:
            self._start_timer(self._wait)
        return state.result  # type: ignore [no-any-return]

    def _leading_edge(self, now: float) -> R | None:
        self._state.last_invoke_time = now
        self._start_timer(self._wait)
        if self._leading:
            logger.debug("%s: leading invocation", self.__qualname__)
            return self._invoke(now)
        return self._state.result  # type: ignore [no-any-return]


class Throttler(_ThrottlerBase[P, R]):
    """Class that prevents calling `func` more than once per `wait` ms.

    Parameters
    ----------
    func : Callable[P, R]
        a function to wrap
    wait : float, optional
        the minimum interval in ms that must pass before the function is called
        again, by default 100
    leading : bool, optional
        Whether to invoke the function immediately when a new window opens,
        by default True
    trailing : bool, optional
        Whether to invoke the function with the latest arguments at the end of a
        window in which it was called, by default True
    scheduler : Scheduler, optional
        Clock and delayed-callback provider.  By default, the scheduler returned by
        `get_default_scheduler()`.
    """

    def __init__(
        self,
        func: Callable[P, R],
        wait: float = 100,
        leading: bool = True,
        trailing: bool = True,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        super().__init__(func, wait, leading, trailing, scheduler=scheduler)

    def _should_invoke(self, now: float) -> bool:
        state = self._state
        if state.last_call_time is None:
            return True
        since_call = now - state.last_call_time
        return (
            since_call >= self._wait
            or since_call < 0
            or state.since_invoke(now) >= self._wait
        )

    def _on_call(self, now: float, is_invoking: bool) -> R | None:
        state = self._state
        if is_invoking and state.timer is None:
            # opens a new window; the window-close check is only scheduled by a
            # later call inside it
            state.last_invoke_time = now
            if self._leading:
                logger.debug("%s: leading invocation", self.__qualname__)
                return self._invoke(now)
            return state.result  # type: ignore [no-any-return]
        if state.timer is None and self._trailing:
            self._start_timer(self._wait)
        return state.result  # type: ignore [no-any-return]


class BoundWrapper(Generic[R]):
    """A Debouncer or Throttler accessed as an attribute of an instance.

    Calls are forwarded to the owning wrapper with the instance as receiver.
    """

    __slots__ = ("__self__", "__wrapper__")

    def __init__(self, wrapper: _ThrottlerBase[..., R], receiver: Any) -> None:
        self.__wrapper__ = wrapper
        self.__self__ = receiver

    def __call__(self, *args: Any, **kwargs: Any) -> R | None:
        return self.__wrapper__._handle_call(self.__self__, args, kwargs)

    @property
    def __wrapped__(self) -> Callable[..., R]:
        return self.__wrapper__.__wrapped__

    @property
    def pending(self) -> bool:
        return self.__wrapper__.pending

    def cancel(self) -> None:
        self.__wrapper__.cancel()

    def flush(self) -> R | None:
        return self.__wrapper__.flush()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BoundWrapper):
            return (
                self.__wrapper__ is other.__wrapper__
                and self.__self__ is other.__self__
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self.__wrapper__), id(self.__self__)))

    def __repr__(self) -> str:
        return f"<bound {self.__wrapper__!r} of {self.__self__!r}>"


@overload
def throttled(
    func: Callable[P, R],
    wait: float = ...,
    leading: bool = ...,
    trailing: bool = ...,
    *,
    scheduler: Scheduler | None = ...,
) -> Throttler[P, R]: ...
@overload
def throttled(
    func: None = ...,
    wait: float = ...,
    leading: bool = ...,
    trailing: bool = ...,
    *,
    scheduler: Scheduler | None = ...,
) -> Callable[[Callable[P, R]], Throttler[P, R]]: ...
def throttled(
    func: Callable[P, R] | None = None,
    wait: float = 100,
    leading: bool = True,
    trailing: bool = True,
    *,
    scheduler: Scheduler | None = None,
) -> Throttler[P, R] | Callable[[Callable[P, R]], Throttler[P, R]]:
    """Create a throttled function that invokes func at most once per `wait` ms.

    The throttled function comes with a `cancel` method to cancel delayed func
    invocations, a `flush` method to immediately invoke them and a `pending`
    property.  Options indicate whether func should be invoked on the leading
    and/or trailing edge of the window.  The func is invoked with the last
    arguments provided to the throttled function.  Calls that do not invoke func
    return the result of the last func invocation.

    This decorator may be used with or without parameters.

    Parameters
    ----------
    func : Callable
        A function to throttle
    wait : float
        Window in milliseconds during which further invocations are suppressed,
        by default 100
    leading : bool
        Whether to invoke the function on the leading edge of the window,
        by default True
    trailing : bool
        Whether to invoke the function on the trailing edge of the window,
        by default True
    scheduler : Scheduler, optional
        Clock and delayed-callback provider, by default `get_default_scheduler()`

    Examples
    --------
    ```python
    from damper import throttled

    @throttled(wait=50)
    def on_scroll(position: int) -> None:
        # do something possibly expensive
        ...

    # on_scroll runs right away, then at most once every 50 milliseconds
    for position in range(1000):
        on_scroll(position)
    ```
    """

    def deco(func: Callable[P, R]) -> Throttler[P, R]:
        return Throttler(func, wait, leading, trailing, scheduler=scheduler)

    return deco(func) if func is not None else deco


@overload
def debounced(
    func: Callable[P, R],
    wait: float = ...,
    leading: bool = ...,
    trailing: bool = ...,
    max_wait: float | None = ...,
    *,
    scheduler: Scheduler | None = ...,
) -> Debouncer[P, R]: ...
@overload
def debounced(
    func: None = ...,
    wait: float = ...,
    leading: bool = ...,
    trailing: bool = ...,
    max_wait: float | None = ...,
    *,
    scheduler: Scheduler | None = ...,
) -> Callable[[Callable[P, R]], Debouncer[P, R]]: ...
def debounced(
    func: Callable[P, R] | None = None,
    wait: float = 100,
    leading: bool = False,
    trailing: bool = True,
    max_wait: float | None = None,
    *,
    scheduler: Scheduler | None = None,
) -> Debouncer[P, R] | Callable[[Callable[P, R]], Debouncer[P, R]]:
    """Create a debounced function that delays invoking `func`.

    `func` will not be invoked until `wait` ms have elapsed since the last time
    the debounced function was called (or, if `max_wait` is given, until `max_wait`
    ms have elapsed since the last invocation, whichever comes first).

    The debounced function comes with a `cancel` method to cancel delayed func
    invocations, a `flush` method to immediately invoke them and a `pending`
    property.  The func is invoked with the *last* arguments provided to the
    debounced function.  Calls that do not invoke func return the result of the
    last `func` invocation.

    This decorator may be used with or without parameters.

    Parameters
    ----------
    func : Callable
        A function to debounce
    wait : float
        Quiet period in milliseconds, by default 100
    leading : bool
        Whether to invoke the function on the leading edge of a burst,
        by default False
    trailing : bool
        Whether to invoke the function on the trailing edge of a burst,
        by default True
    max_wait : float, optional
        Maximum time in milliseconds that invocation may be deferred, by default
        None (no maximum)
    scheduler : Scheduler, optional
        Clock and delayed-callback provider, by default `get_default_scheduler()`

    Examples
    --------
    ```python
    from damper import debounced

    @debounced(wait=300, max_wait=1000)
    def search(query: str) -> None:
        ...

    # search runs once, with "hello", 300 ms after the last keystroke
    for query in ("h", "he", "hel", "hell", "hello"):
        search(query)
    ```
    """

    def deco(func: Callable[P, R]) -> Debouncer[P, R]:
        return Debouncer(func, wait, leading, trailing, max_wait, scheduler=scheduler)

    return deco(func) if func is not None else deco
