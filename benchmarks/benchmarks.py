# type: ignore
from damper import Debouncer, Throttler, debounced, throttled
from damper.testing import ManualScheduler


def callback(x: int) -> None:
    list(range(2))  # simulate a brief thing


class CreateSuite:
    def setup(self):
        self.scheduler = ManualScheduler()

    def time_create_debouncer(self):
        _ = Debouncer(callback, 100, scheduler=self.scheduler)

    def time_create_throttler(self):
        _ = Throttler(callback, 100, scheduler=self.scheduler)


class CallSuite:
    params = [1, 100, 1000]

    def setup(self, n: int) -> None:
        self.scheduler = ManualScheduler()
        self.debounced = debounced(callback, 100, scheduler=self.scheduler)
        self.debounced_max = debounced(
            callback, 100, max_wait=200, scheduler=self.scheduler
        )
        self.throttled = throttled(callback, 100, scheduler=self.scheduler)

    def time_call_debounced(self, n: int) -> None:
        for i in range(n):
            self.debounced(i)
        self.debounced.cancel()

    def time_call_debounced_max_wait(self, n: int) -> None:
        for i in range(n):
            self.debounced_max(i)
            self.scheduler.advance(10)
        self.debounced_max.cancel()

    def time_call_throttled(self, n: int) -> None:
        for i in range(n):
            self.throttled(i)
        self.throttled.cancel()

    def time_flush(self, n: int) -> None:
        for i in range(n):
            self.debounced(i)
            self.debounced.flush()
