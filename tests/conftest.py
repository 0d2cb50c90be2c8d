from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from damper import _scheduler
from damper.testing import CallRecorder, ManualScheduler

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _reset_default_scheduler() -> Iterator[None]:
    yield
    _scheduler.clear_default_scheduler()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recorder() -> CallRecorder:
    return CallRecorder(return_value="result")
