"""Shared fixtures: a virtual clock and isolated configuration."""

import heapq
import itertools
from collections.abc import Callable
from typing import Any

import pytest

from git_oracle.config import Config


class VirtualTimer:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """A `Scheduler` whose clock only moves when a test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, VirtualTimer, Callable[[], object]]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], object]) -> VirtualTimer:
        timer = VirtualTimer()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), timer, callback))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def advance(self, seconds: float) -> None:
        """Moves the clock forward, firing due timers in order."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, timer, callback = heapq.heappop(self._queue)
            self.now = when
            if not timer.cancelled:
                callback()
        self.now = target


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture(autouse=True)
def clear_config_cache(tmp_path_factory: pytest.TempPathFactory, mocker: Any) -> Any:
    """Ensures every test starts with a clean config cache and no global file."""
    missing = tmp_path_factory.mktemp("config") / "config.toml"
    mocker.patch("git_oracle.config.CONFIG_FILE", missing)
    Config._global_cache = None
    yield
    Config._global_cache = None
