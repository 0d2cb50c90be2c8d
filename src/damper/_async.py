from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


class AsyncioScheduler:
    """Scheduler that uses an asyncio event loop's clock and `call_later`.

    Callbacks run on the loop's thread.  If `loop` is provided, the scheduler is
    bound to it for good, and using the scheduler once that loop is closed raises
    RuntimeError.  Otherwise every `now` and `schedule` uses whichever loop is
    running at the time, so one scheduler can serve successive `asyncio.run`
    calls, and using it outside of a running loop raises RuntimeError.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            return asyncio.get_running_loop()
        if self._loop.is_closed():
            raise RuntimeError(f"{self!r} is bound to a closed event loop")
        return self._loop

    def now(self) -> float:
        return self.loop.time() * 1000

    def schedule(
        self, callback: Callable[[], Any], delay: float
    ) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0) / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(loop={self._loop!r})"
