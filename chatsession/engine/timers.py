import asyncio
import heapq
import itertools
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.timers')

FRAME_MS = 16


class TimerHandle:
    """A scheduled callback that can be cancelled before it fires.

    Attributes:
        when (int): Due time in scheduler milliseconds
        label (str): Name of the concern that owns the timer, for logging
        cancelled (bool): True once cancel() was called
        fired (bool): True once the callback ran
    """

    def __init__(self, when: int, callback: Callable, args: tuple, label: str = ""):
        self.when = when
        self.label = label
        self.cancelled = False
        self.fired = False
        self._callback = callback
        self._args = args
        self._inner = None  # loop handle when backed by asyncio

    def cancel(self):
        """Cancel the callback. Safe to call more than once or after firing."""
        if self.cancelled or self.fired:
            return
        self.cancelled = True
        if self._inner is not None:
            self._inner.cancel()
        logger.debug(f"Timer cancelled: {self.label or self._callback}")

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def _run(self):
        if not self.active:
            return
        self.fired = True
        self._callback(*self._args)

    def __repr__(self):
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"<TimerHandle {self.label!r} when={self.when} {state}>"


class Scheduler:
    """Clock and timer facility the engine schedules against.

    Implementations provide a monotonic millisecond clock, the wall clock
    used for deterministic simulation arithmetic, delayed callbacks and
    paint-frame callbacks. Delivery is never assumed to be exact, only
    monotonic and eventual.
    """

    frame_ms = FRAME_MS

    def now(self) -> int:
        raise NotImplementedError

    def timestamp_ms(self) -> int:
        raise NotImplementedError

    def wall_clock(self) -> datetime:
        raise NotImplementedError

    def call_later(self, delay_ms: int, callback: Callable, *args, label: str = "") -> TimerHandle:
        raise NotImplementedError

    def call_next_frame(self, callback: Callable, *args, label: str = "") -> TimerHandle:
        """Run callback on the next paint frame boundary."""
        return self.call_later(self.frame_ms, callback, *args, label=label)


class ManualScheduler(Scheduler):
    """Virtual-time scheduler for deterministic runs and tests.

    Time only moves when advance() is called. Callbacks fire in order of
    due time, and callbacks with the same due time fire in the order they
    were registered.
    """

    def __init__(self, start: Optional[datetime] = None, frame_ms: int = FRAME_MS):
        """Initialize the virtual clock.

        Args:
            start (datetime, optional): Wall clock at virtual time zero.
                Defaults to the current local time.
            frame_ms (int): Length of one paint frame
        """
        self.start = start or datetime.now()
        self.frame_ms = frame_ms
        self._now = 0
        self._seq = itertools.count()
        self._queue: List[Tuple[int, int, TimerHandle]] = []

    def now(self) -> int:
        return self._now

    def timestamp_ms(self) -> int:
        return int(self.start.timestamp() * 1000) + self._now

    def wall_clock(self) -> datetime:
        return self.start + timedelta(milliseconds=self._now)

    def call_later(self, delay_ms: int, callback: Callable, *args, label: str = "") -> TimerHandle:
        handle = TimerHandle(self._now + max(0, int(delay_ms)), callback, args, label)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def pending(self) -> List[TimerHandle]:
        """Active handles in firing order."""
        return [h for _, _, h in sorted(self._queue) if h.active]

    def advance(self, ms: int) -> int:
        """Move virtual time forward, firing every callback that falls due.

        Args:
            ms (int): Milliseconds to advance

        Returns:
            int: Number of callbacks fired
        """
        target = self._now + ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self._now = when
            handle._run()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit_ms: int = 60_000) -> int:
        """Advance until no active callbacks remain (bounded by limit_ms)."""
        fired = 0
        deadline = self._now + limit_ms
        while True:
            live = [h for _, _, h in self._queue if h.active]
            if not live:
                return fired
            next_when = min(h.when for h in live)
            if next_when > deadline:
                return fired
            fired += self.advance(next_when - self._now)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by a running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, frame_ms: int = FRAME_MS):
        self.loop = loop or asyncio.get_running_loop()
        self.frame_ms = frame_ms

    def now(self) -> int:
        return int(self.loop.time() * 1000)

    def timestamp_ms(self) -> int:
        return int(time.time() * 1000)

    def wall_clock(self) -> datetime:
        return datetime.now()

    def call_later(self, delay_ms: int, callback: Callable, *args, label: str = "") -> TimerHandle:
        handle = TimerHandle(self.now() + max(0, int(delay_ms)), callback, args, label)
        handle._inner = self.loop.call_later(max(0, delay_ms) / 1000, handle._run)
        return handle


class TimerSlot:
    """A single named timer owned by one component.

    Scheduling into a slot cancels whatever the slot held before, so two
    timers for the same concern never coexist.
    """

    def __init__(self, scheduler: Scheduler, label: str):
        self.scheduler = scheduler
        self.label = label
        self._handle: Optional[TimerHandle] = None

    def schedule(self, delay_ms: int, callback: Callable, *args) -> TimerHandle:
        self.cancel()
        self._handle = self.scheduler.call_later(delay_ms, callback, *args, label=self.label)
        return self._handle

    def schedule_frame(self, callback: Callable, *args) -> TimerHandle:
        self.cancel()
        self._handle = self.scheduler.call_next_frame(callback, *args, label=self.label)
        return self._handle

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active


class Debouncer:
    """Delay a call until delay_ms of quiet follows the last trigger."""

    def __init__(self, scheduler: Scheduler, delay_ms: int, callback: Callable, label: str = "debounce"):
        self.delay_ms = delay_ms
        self.callback = callback
        self._slot = TimerSlot(scheduler, label)
        self._args: tuple = ()

    def trigger(self, *args):
        """Restart the quiet period; the latest args win."""
        self._args = args
        self._slot.schedule(self.delay_ms, self._fire)

    def _fire(self):
        args, self._args = self._args, ()
        self.callback(*args)

    def flush(self) -> bool:
        """Fire a pending call right away.

        Returns:
            bool: True if a pending call was fired
        """
        if not self._slot.pending:
            return False
        self._slot.cancel()
        self._fire()
        return True

    def cancel(self):
        self._slot.cancel()
        self._args = ()

    @property
    def pending(self) -> bool:
        return self._slot.pending


class Throttle:
    """Accept at most one request per window; drop the rest.

    Rejected requests are not queued or retried.
    """

    def __init__(self, scheduler: Scheduler, window_ms: int):
        self.scheduler = scheduler
        self.window_ms = window_ms
        self._last_accepted: Optional[int] = None

    def try_acquire(self) -> bool:
        now = self.scheduler.now()
        if self._last_accepted is not None and now - self._last_accepted < self.window_ms:
            return False
        self._last_accepted = now
        return True

    def reset(self):
        self._last_accepted = None
