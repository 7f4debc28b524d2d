"""
Cooperative scheduling for the booth.

Everything in the booth runs on one thread: timers, child-process polling,
deferred camera events and UI intents are all callbacks on a single
scheduler. In production that scheduler is the asyncio event loop the web
layer runs on. Tests drive a ``ManualScheduler`` whose clock only moves when
``advance`` is called, which makes countdowns and capture delays fully
deterministic.
"""

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ScheduledCall(ABC):
    """Handle returned by ``Scheduler.call_later``."""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """The single-threaded UI scheduler every component posts callbacks to."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        """Run ``callback(*args)`` once, ``delay`` seconds from now."""
        pass

    @abstractmethod
    def time(self) -> float:
        """Monotonic clock of this scheduler, in seconds."""
        pass

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        """Run ``callback(*args)`` on the next pass of the scheduler, never inline."""
        return self.call_later(0, callback, *args)


class _AsyncioCall(ScheduledCall):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    If no loop is given, the running loop is looked up at each call, so the
    scheduler can be constructed before the web server starts its loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        return _AsyncioCall(self.loop.call_later(max(0.0, delay), callback, *args))

    def time(self) -> float:
        if self._loop is None:
            try:
                return asyncio.get_running_loop().time()
            except RuntimeError:
                return time.monotonic()
        return self._loop.time()


class _ManualCall(ScheduledCall):
    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.when = when
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Deterministic fake clock.

    Callbacks never run on their own: ``advance(seconds)`` moves the clock
    forward and runs everything that falls due, in time order, including
    callbacks scheduled by other callbacks during the same advance.
    Callbacks due at the same instant run in the order they were scheduled.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, _ManualCall]] = []
        self._sequence = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        call = _ManualCall(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (call.when, next(self._sequence), call))
        return call

    def time(self) -> float:
        return self._now

    def advance(self, seconds: float) -> int:
        """Move the clock forward by ``seconds``. Returns how many callbacks ran."""
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, call = heapq.heappop(self._queue)
            if call.cancelled():
                continue
            self._now = max(self._now, when)
            call.callback(*call.args)
            ran += 1
        self._now = target
        return ran

    def run_pending(self) -> int:
        """Run every callback that is already due."""
        return self.advance(0)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call in self._queue if not call.cancelled())


class Timer:
    """
    Single-shot or periodic timer on a ``Scheduler``.

    A periodic timer re-arms itself before invoking its callback, so the
    callback may call ``stop()`` to end the series.
    """

    def __init__(self, scheduler: Scheduler, interval: float, callback: Callable[[], Any], single_shot: bool = False):
        self._scheduler = scheduler
        self.interval = interval
        self._callback = callback
        self.single_shot = single_shot
        self._handle: Optional[ScheduledCall] = None

    @property
    def is_active(self) -> bool:
        return self._handle is not None

    def start(self, interval: Optional[float] = None) -> None:
        """Start, or restart if already running."""
        if interval is not None:
            self.interval = interval
        self.stop()
        self._handle = self._scheduler.call_later(self.interval, self._fire)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        if self.single_shot:
            self._handle = None
        else:
            self._handle = self._scheduler.call_later(self.interval, self._fire)
        self._callback()
