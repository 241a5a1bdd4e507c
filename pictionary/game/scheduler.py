from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from .clock import TimerHandle


logger = logging.getLogger(__name__)

_EPSILON = 1e-6


@dataclass
class _Countdown:
    room_id: str
    deadline: float
    on_expire: Callable[[], None]
    on_tick: Callable[[float], None] | None
    handle: TimerHandle | None = None


class RoundScheduler:
    """One cancellable countdown per room.

    ``start`` supersedes any countdown already armed for the room. While a
    countdown runs ``on_tick(remaining)`` is called every ``tick_sec``; once
    the deadline passes ``on_expire()`` is called exactly once and the
    countdown is consumed.
    """

    def __init__(self, clock, tick_sec: float = 1.0) -> None:
        self._clock = clock
        self._tick_sec = tick_sec
        self._lock = Lock()
        self._active: dict[str, _Countdown] = {}

    def start(
        self,
        room_id: str,
        duration_sec: float,
        on_expire: Callable[[], None],
        on_tick: Callable[[float], None] | None = None,
    ) -> float:
        countdown = _Countdown(
            room_id=room_id,
            deadline=self._clock.now() + duration_sec,
            on_expire=on_expire,
            on_tick=on_tick,
        )
        with self._lock:
            previous = self._active.pop(room_id, None)
            if previous is not None and previous.handle is not None:
                previous.handle.cancel()
            self._active[room_id] = countdown
            self._arm(countdown)
        logger.debug("countdown armed room=%s duration=%.2fs", room_id, duration_sec)
        return countdown.deadline

    def cancel(self, room_id: str) -> bool:
        with self._lock:
            countdown = self._active.pop(room_id, None)
        if countdown is None:
            return False
        if countdown.handle is not None:
            countdown.handle.cancel()
        logger.debug("countdown cancelled room=%s", room_id)
        return True

    def is_active(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._active

    def remaining(self, room_id: str) -> float | None:
        with self._lock:
            countdown = self._active.get(room_id)
        if countdown is None:
            return None
        return max(0.0, countdown.deadline - self._clock.now())

    def _arm(self, countdown: _Countdown) -> None:
        remaining = max(0.0, countdown.deadline - self._clock.now())
        delay = min(self._tick_sec, remaining) if self._tick_sec > 0 else remaining
        countdown.handle = self._clock.call_later(delay, lambda: self._fire(countdown))

    def _fire(self, countdown: _Countdown) -> None:
        with self._lock:
            if self._active.get(countdown.room_id) is not countdown:
                # Superseded or cancelled after this tick was queued.
                return
            remaining = countdown.deadline - self._clock.now()
            expired = remaining <= _EPSILON
            if expired:
                del self._active[countdown.room_id]

        if expired:
            countdown.on_expire()
            return

        if countdown.on_tick is not None:
            countdown.on_tick(remaining)
        with self._lock:
            if self._active.get(countdown.room_id) is countdown:
                self._arm(countdown)
