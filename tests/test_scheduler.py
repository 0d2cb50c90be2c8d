from __future__ import annotations

import asyncio
import threading
from unittest.mock import Mock

import pytest

from damper import (
    AsyncioScheduler,
    ConfigurationError,
    Scheduler,
    ThreadingScheduler,
    debounced,
    get_default_scheduler,
    set_default_scheduler,
    throttled,
)
from damper import _scheduler
from damper.testing import ManualScheduler


def test_schedulers_satisfy_protocol() -> None:
    assert isinstance(ThreadingScheduler(), Scheduler)
    assert isinstance(AsyncioScheduler(), Scheduler)
    assert isinstance(ManualScheduler(), Scheduler)
    assert not isinstance(object(), Scheduler)


def test_default_scheduler_is_threading(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(_scheduler.SCHEDULER_ENV_VAR, raising=False)
    _scheduler.clear_default_scheduler()
    scheduler = get_default_scheduler()
    assert isinstance(scheduler, ThreadingScheduler)
    assert get_default_scheduler() is scheduler


def test_default_scheduler_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(_scheduler.SCHEDULER_ENV_VAR, "asyncio")
    _scheduler.clear_default_scheduler()
    assert isinstance(get_default_scheduler(), AsyncioScheduler)


def test_default_scheduler_bad_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(_scheduler.SCHEDULER_ENV_VAR, "gevent")
    _scheduler.clear_default_scheduler()
    with pytest.raises(ConfigurationError, match="gevent"):
        get_default_scheduler()


def test_set_default_scheduler() -> None:
    manual = ManualScheduler()
    assert set_default_scheduler(manual) is manual

    mock = Mock()
    f = debounced(mock, wait=10)
    assert f.scheduler is manual
    f(1)
    manual.advance(10)
    mock.assert_called_once_with(1)

    assert isinstance(set_default_scheduler("threading"), ThreadingScheduler)
    assert isinstance(throttled(mock).scheduler, ThreadingScheduler)
    # wrappers keep the scheduler they were created with
    assert f.scheduler is manual


@pytest.mark.parametrize("bad", ["trio", object(), None])
def test_set_default_scheduler_invalid(bad: object) -> None:
    with pytest.raises(ConfigurationError):
        set_default_scheduler(bad)  # type: ignore [call-overload]


def test_threading_scheduler_runs_on_timer_thread() -> None:
    scheduler = ThreadingScheduler()
    ran = threading.Event()
    threads: list[threading.Thread] = []

    def callback() -> None:
        threads.append(threading.current_thread())
        ran.set()

    start = scheduler.now()
    scheduler.schedule(callback, 10)
    assert ran.wait(1)
    assert threads[0] is not threading.current_thread()
    assert scheduler.now() - start >= 9


def test_threading_scheduler_cancel() -> None:
    scheduler = ThreadingScheduler()
    mock = Mock()
    handle = scheduler.schedule(mock, 20)
    scheduler.cancel(handle)
    handle.join(1)
    mock.assert_not_called()
    # cancelling twice, or after the fact, is harmless
    scheduler.cancel(handle)


def test_asyncio_scheduler_requires_running_loop() -> None:
    f = debounced(Mock(), wait=10, scheduler=AsyncioScheduler())
    with pytest.raises(RuntimeError):
        f()


def test_asyncio_scheduler_bound_to_closed_loop() -> None:
    loop = asyncio.new_event_loop()
    scheduler = AsyncioScheduler(loop)
    assert scheduler.loop is loop
    loop.close()

    f = debounced(Mock(), wait=10, scheduler=scheduler)
    with pytest.raises(RuntimeError, match="closed event loop"):
        f()
    with pytest.raises(RuntimeError, match="closed event loop"):
        scheduler.schedule(Mock(), 10)


def test_asyncio_scheduler_follows_running_loop() -> None:
    scheduler = AsyncioScheduler()
    mock = Mock()
    f = debounced(mock, wait=10, scheduler=scheduler)

    async def burst(value: int) -> asyncio.AbstractEventLoop:
        f(value)
        await asyncio.sleep(0.05)
        return scheduler.loop

    first = asyncio.run(burst(1))
    second = asyncio.run(burst(2))
    assert first is not second
    assert [c.args for c in mock.call_args_list] == [(1,), (2,)]


async def test_asyncio_debounced() -> None:
    mock = Mock()
    f = debounced(mock, wait=10, scheduler=AsyncioScheduler())
    f(1)
    f(2)
    assert f.pending
    await asyncio.sleep(0.05)
    mock.assert_called_once_with(2)
    assert not f.pending


async def test_asyncio_throttled_with_explicit_loop() -> None:
    mock = Mock(return_value="result")
    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    f = throttled(mock, wait=10, scheduler=scheduler)
    assert f("a") == "result"
    f("b")
    f("c")
    await asyncio.sleep(0.05)
    assert mock.call_count == 2
    mock.assert_called_with("c")


async def test_asyncio_cancel() -> None:
    mock = Mock()
    set_default_scheduler("asyncio")
    f = debounced(mock, wait=10)
    f()
    f.cancel()
    await asyncio.sleep(0.05)
    mock.assert_not_called()


async def test_asyncio_awaitable_result() -> None:
    async def fetch(x: int) -> int:
        await asyncio.sleep(0)
        return x * 2

    f = throttled(fetch, wait=10, scheduler=AsyncioScheduler())
    assert await f(2) == 4
    f(3)
    assert await f.flush() == 6
