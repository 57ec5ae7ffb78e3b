"""Phase timers.

Every named timer owns a handle holding its start time and duration. Expiry
and tick callbacks are run under the owner's lock and re-checked against the
handle that scheduled them, so a timer that was cleared or replaced can never
fire into a later phase.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

TICK_INTERVAL_SEC = 1.0
SLEEP_SLICE_SEC = 0.5


class ScheduledCall:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, fn: Callable[[], None]) -> ScheduledCall: ...

    def spawn(self, fn: Callable[..., None], *args) -> None: ...


class SocketIOScheduler:
    """Runs delayed calls as Flask-SocketIO background tasks.

    ``socketio.sleep`` yields cooperatively under eventlet and falls back to
    ``time.sleep`` in threading mode.
    """

    def __init__(self, socketio, clock=time.monotonic) -> None:
        self._socketio = socketio
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay: float, fn: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall()
        deadline = self.now() + delay

        def _runner() -> None:
            # Sleep in short slices so a cancelled call frees its task early.
            while not call.cancelled:
                left = deadline - self.now()
                if left <= 0:
                    break
                self._socketio.sleep(min(left, SLEEP_SLICE_SEC))
            if call.cancelled:
                return
            try:
                fn()
            except Exception:
                logger.exception("[timer-error] scheduled call failed")

        self._socketio.start_background_task(_runner)
        return call

    def spawn(self, fn: Callable[..., None], *args) -> None:
        def _runner() -> None:
            try:
                fn(*args)
            except Exception:
                logger.exception("[task-error] background task failed")

        self._socketio.start_background_task(_runner)


@dataclass
class TimerHandle:
    name: str
    started_at: float
    duration: float
    ticking: bool
    expiry: ScheduledCall | None = None
    # Only the next pending tick; each tick replaces it when it reschedules.
    tick: ScheduledCall | None = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
        for call in (self.expiry, self.tick):
            if call is not None:
                call.cancel()


class PhaseTimers:
    def __init__(
        self,
        scheduler: Scheduler,
        on_tick: Callable[[str, int, int], None] | None = None,
        lock: RLock | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._lock = lock or RLock()
        self._handles: dict[str, TimerHandle] = {}

    def start(self, name: str, duration: float, on_expire: Callable[[], None]) -> TimerHandle:
        """Start a countdown that ticks every second and calls ``on_expire``."""
        return self._schedule(name, duration, on_expire, ticking=True)

    def delay(self, name: str, seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule a one-shot step without tick broadcasts."""
        return self._schedule(name, seconds, callback, ticking=False)

    def _schedule(self, name: str, duration: float, callback, ticking: bool) -> TimerHandle:
        with self._lock:
            self.clear(name)
            handle = TimerHandle(
                name=name,
                started_at=self._scheduler.now(),
                duration=duration,
                ticking=ticking,
            )
            self._handles[name] = handle

            handle.expiry = self._scheduler.call_later(duration, lambda: self._fire(handle, callback))
            if ticking:
                self._schedule_tick(handle)

            logger.debug(f"[timer-set] name={name} duration={duration}s ticking={ticking}")
            return handle

    def _schedule_tick(self, handle: TimerHandle) -> None:
        if handle.cancelled:
            return
        handle.tick = self._scheduler.call_later(TICK_INTERVAL_SEC, lambda: self._tick(handle))

    def _is_current(self, handle: TimerHandle) -> bool:
        return not handle.cancelled and self._handles.get(handle.name) is handle

    def _tick(self, handle: TimerHandle) -> None:
        with self._lock:
            if not self._is_current(handle):
                return
            remaining = self._remaining_for(handle)
            if self._on_tick is not None:
                self._on_tick(handle.name, remaining, _whole_seconds(handle.duration))
            self._schedule_tick(handle)

    def _fire(self, handle: TimerHandle, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._is_current(handle):
                logger.debug(f"[timer-abort] name={handle.name} stale")
                return
            self.clear(handle.name)
            logger.debug(f"[timer-fire] name={handle.name}")
            callback()

    def _remaining_for(self, handle: TimerHandle) -> int:
        elapsed_ms = (self._scheduler.now() - handle.started_at) * 1000
        duration_ms = handle.duration * 1000
        return max(0, math.ceil(round(duration_ms - elapsed_ms) / 1000))

    def remaining(self, name: str) -> int | None:
        with self._lock:
            handle = self._handles.get(name)
            if handle is None:
                return None
            return self._remaining_for(handle)

    def is_active(self, name: str) -> bool:
        with self._lock:
            return name in self._handles

    def clear(self, name: str) -> None:
        with self._lock:
            handle = self._handles.pop(name, None)
            if handle is not None:
                handle.cancel()

    def clear_all(self) -> None:
        with self._lock:
            for name in list(self._handles):
                self.clear(name)


def _whole_seconds(duration: float) -> int:
    return int(math.ceil(duration))
