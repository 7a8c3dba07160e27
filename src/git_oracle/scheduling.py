"""Timer-driven coordination: change notification and debouncing.

The engine is single-threaded. Background work is triggered only by timers
obtained from a `Scheduler`, which an `asyncio` event loop satisfies as-is
(`loop.time()` and `loop.call_later()`). Tests substitute a virtual clock.
"""

import logging
from collections.abc import Callable
from typing import Protocol

from .constants import APP_NAME, DEFAULT_DEBOUNCE_WINDOW

logger = logging.getLogger(APP_NAME)

Callback = Callable[..., object]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The clock and timer facility the engine runs on."""

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        ...


class Subscription:
    """A handle that removes a callback from its publisher when disposed."""

    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe: Callable[[], None] | None = unsubscribe

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class ListenerSet:
    """An ordered collection of callbacks invoked with failure isolation.

    A failing callback is logged and the remaining callbacks still run.
    """

    def __init__(self, label: str):
        self._label = label
        self._callbacks: list[Callback] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callback) -> Subscription:
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return Subscription(remove)

    def clear(self) -> None:
        self._callbacks.clear()

    def notify(self, *args: object) -> None:
        # Snapshot so callbacks may unsubscribe while we iterate.
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"{self._label}: subscriber {callback!r} failed")


class ChangeNotifier:
    """Fans out payload-less "something changed" signals.

    Owned by the composition root and handed to whoever produces or consumes
    change signals (file watchers, mutating commands, the poller).
    """

    def __init__(self) -> None:
        self._listeners = ListenerSet("change notifier")

    def subscribe(self, callback: Callback) -> Subscription:
        return self._listeners.add(callback)

    def publish(self) -> None:
        self._listeners.notify()

    def clear(self) -> None:
        self._listeners.clear()


class Debouncer:
    """Collapses bursts of change signals into one refresh.

    The first signal arms a timer for `window` seconds; signals arriving while
    it is pending are absorbed without re-arming it. When the timer fires each
    subscriber runs exactly once.

    Attributes:
        window (float): The debounce window in seconds.
    """

    def __init__(self, scheduler: Scheduler, window: float = DEFAULT_DEBOUNCE_WINDOW):
        self.window = window
        self._scheduler = scheduler
        self._pending: TimerHandle | None = None
        self._listeners = ListenerSet("debouncer")

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def subscribe(self, callback: Callback) -> Subscription:
        return self._listeners.add(callback)

    def signal(self) -> None:
        """Records a change; arms the timer unless one is already pending."""
        if self._pending is not None:
            return
        self._pending = self._scheduler.call_later(self.window, self._fire)

    def cancel(self) -> None:
        """Drops the pending refresh, if any. Nothing runs afterwards."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self) -> None:
        self._pending = None
        self._listeners.notify()
