"""
Timer services for the gcsim scheduler.

The scheduler never sleeps or reads the clock directly; it asks a
`TimerService` for the current time and for delayed callbacks. Production
code uses real threads, tests use `VirtualTimerService` and advance time by
hand.
"""

import heapq
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set, Tuple


logger = logging.getLogger(__name__)


class TimerHandle:
    """A cancellable reference to one scheduled callback"""

    def __init__(self, due_ms: float, cancel_hook: Optional[Callable[[], None]] = None):
        self.due_ms = due_ms
        self._cancel_hook = cancel_hook
        self._cancelled = False
        self._fired = False

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._fired

    def cancel(self):
        if not self.active:
            return
        self._cancelled = True
        if self._cancel_hook is not None:
            self._cancel_hook()

    def _claim(self) -> bool:
        """Mark as fired; False if it was cancelled or already fired"""
        if not self.active:
            return False
        self._fired = True
        return True

    def __repr__(self) -> str:
        state = "active" if self.active else ("fired" if self._fired else "cancelled")
        return f"TimerHandle(due={self.due_ms:.0f}ms, {state})"


class TimerService(ABC):
    """Clock plus one-shot delayed callbacks, in milliseconds"""

    @abstractmethod
    def now_ms(self) -> float:
        pass

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        pass

    def shutdown(self):
        """Release any resources held by pending timers"""


class ThreadingTimerService(TimerService):
    """Wall-clock timers backed by `threading.Timer` daemon threads"""

    def __init__(self):
        self._lock = threading.Lock()
        self._timers: Set[threading.Timer] = set()

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        timer: Optional[threading.Timer] = None

        def run():
            with self._lock:
                self._timers.discard(timer)
            if handle._claim():
                try:
                    callback()
                except Exception:
                    logger.exception("Timer callback failed")

        timer = threading.Timer(max(delay_ms, 0.0) / 1000.0, run)
        timer.daemon = True
        handle = TimerHandle(self.now_ms() + delay_ms, cancel_hook=timer.cancel)

        with self._lock:
            self._timers.add(timer)
        timer.start()
        return handle

    def shutdown(self):
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()


class VirtualTimerService(TimerService):
    """
    Deterministic timers driven by `advance`.

    Callbacks run synchronously on the thread calling `advance`, in due-time
    order. A callback scheduled while advancing fires in the same call if it
    falls due before the new time.
    """

    handle_factory = TimerHandle

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue: List[Tuple[float, int, TimerHandle, Callable[[], None]]] = []
        self._sequence = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = self.handle_factory(self._now + delay_ms)
        heapq.heappush(self._queue, (handle.due_ms, next(self._sequence), handle, callback))
        return handle

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, firing due callbacks; returns how many fired"""
        target = self._now + delta_ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            if handle._claim():
                callback()
                fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if handle.active)

    def shutdown(self):
        self._queue.clear()
