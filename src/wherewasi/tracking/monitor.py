"""Activity tracking and idle detection."""

import threading
import time
from typing import Callable, Protocol

from loguru import logger

from wherewasi.context.models import CursorPosition

IdleCallback = Callable[[CursorPosition], None]


class CancellableTimer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], CancellableTimer]


def _thread_timer(interval: float, function: Callable[[], None]) -> CancellableTimer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class Subscription:
    """Handle returned by a registration; ``cancel()`` unregisters it."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel: Callable[[], None] | None = on_cancel

    @property
    def active(self) -> bool:
        return self._on_cancel is not None

    def cancel(self) -> None:
        if self._on_cancel is None:
            return
        on_cancel, self._on_cancel = self._on_cancel, None
        on_cancel()


class ActivityMonitor:
    """Remembers the latest editing position and fires idle callbacks.

    A single delayed task is re-armed on every activity signal. Once it fires
    it stays idle until the next signal, so callbacks run at most once per
    idle period.
    """

    def __init__(
        self,
        idle_timeout_minutes: float = 10,
        timer_factory: TimerFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout_minutes = idle_timeout_minutes
        self._timer_factory = timer_factory or _thread_timer
        self._clock = clock
        self._timer: CancellableTimer | None = None
        self._current: CursorPosition | None = None
        self._last_activity = 0.0
        self._callbacks: list[IdleCallback] = []
        self._lock = threading.RLock()
        self._disposed = False
        self._generation = 0

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_minutes * 60

    def get_current_context(self) -> CursorPosition | None:
        return self._current

    def record_activity(self, position: CursorPosition) -> None:
        """Register a keystroke, cursor move or focus change at ``position``."""
        with self._lock:
            if self._disposed:
                return
            self._current = position
            self._last_activity = self._clock()
            self._rearm(self.idle_timeout_seconds)

    def set_idle_timeout(self, minutes: float) -> None:
        """Change the threshold; a pending timer is rescheduled from the last activity."""
        with self._lock:
            self.idle_timeout_minutes = minutes
            if self._timer is not None:
                elapsed = self._clock() - self._last_activity
                self._rearm(max(0.0, self.idle_timeout_seconds - elapsed))

    def on_idle(self, callback: IdleCallback) -> Subscription:
        with self._lock:
            self._callbacks.append(callback)

        def _remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return Subscription(_remove)

    def dispose(self) -> None:
        """Cancel any pending idle timer and drop all subscriptions."""
        with self._lock:
            self._cancel_timer()
            self._callbacks.clear()
            self._disposed = True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _rearm(self, delay: float) -> None:
        self._cancel_timer()
        self._generation += 1
        generation = self._generation
        timer = self._timer_factory(delay, lambda: self._fire(generation))
        self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # stale if re-armed after it started running, or already fired
            if self._disposed or generation != self._generation or self._timer is None:
                return
            self._timer = None
            position = self._current
            callbacks = list(self._callbacks)

        logger.debug("Idle for {} minutes at {}", self.idle_timeout_minutes, position.file_path)
        for callback in callbacks:
            callback(position)
