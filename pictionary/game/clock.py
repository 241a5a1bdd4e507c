"""Time sources and deferred callbacks."""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from typing import Callable

from flask_socketio import SocketIO


logger = logging.getLogger(__name__)


class TimerHandle:
    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        try:
            self._callback()
        except Exception:
            logger.exception("timer callback failed")


class SocketIOClock:
    def __init__(self, socketio: SocketIO) -> None:
        self._socketio = socketio

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)

        def _runner() -> None:
            self._socketio.sleep(max(0.0, delay))
            handle.fire()

        self._socketio.start_background_task(_runner)
        return handle


class ManualClock:
    """Simulated clock; nothing happens until ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, TimerHandle]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)
        heapq.heappush(self._queue, (self._now + max(0.0, delay), next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            handle.fire()
        self._now = target

    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)
