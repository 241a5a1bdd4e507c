from __future__ import annotations

import logging
from threading import RLock
from typing import Callable

from .clock import TimerHandle
from .models import Room
from .scheduler import RoundScheduler


logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every live room plus the connection -> room index."""

    def __init__(self, clock, rounds: RoundScheduler, capacity: int = 8) -> None:
        self._clock = clock
        self._rounds = rounds
        self.capacity = capacity
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._sid_to_room: dict[str, str] = {}
        self._pending_deletions: dict[str, TimerHandle] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms

    def get(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = Room(id=room_id)
                self._rooms[room_id] = room
                logger.info("room created id=%s total=%d", room_id, len(self._rooms))
            return room

    def room_ids(self) -> list[str]:
        with self._lock:
            return list(self._rooms.keys())

    def remove(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.pop(room_id, None)
            pending = self._pending_deletions.pop(room_id, None)
            stale_sids = [sid for sid, rid in self._sid_to_room.items() if rid == room_id]
            for sid in stale_sids:
                del self._sid_to_room[sid]
        if pending is not None:
            pending.cancel()
        self._rounds.cancel(room_id)
        if room is None:
            return False
        logger.info("room deleted id=%s total=%d", room_id, len(self))
        return True

    def list_public(self) -> list[dict]:
        with self._lock:
            rooms = list(self._rooms.values())
        return [
            {
                "id": room.id,
                "count": len(room.connected_players()),
                "capacity": self.capacity,
            }
            for room in rooms
        ]

    # Connection index

    def bind(self, sid: str, room_id: str) -> None:
        with self._lock:
            self._sid_to_room[sid] = room_id

    def unbind(self, sid: str) -> str | None:
        with self._lock:
            return self._sid_to_room.pop(sid, None)

    def room_for(self, sid: str) -> str | None:
        with self._lock:
            return self._sid_to_room.get(sid)

    # Deferred deletion

    def schedule_deletion(
        self,
        room_id: str,
        delay_sec: float,
        on_deleted: Callable[[str], None] | None = None,
    ) -> None:
        """Delete ``room_id`` after ``delay_sec`` unless someone is connected by then.

        A later call for the same room supersedes the earlier one. Joins do
        not cancel the pending deletion; the emptiness check at fire time
        keeps a reoccupied room alive.
        """
        handle_box: list[TimerHandle] = []

        def _expire() -> None:
            room = self.get(room_id)
            if room is None:
                return
            with room.lock:
                with self._lock:
                    if self._pending_deletions.get(room_id) is not handle_box[0]:
                        return
                    del self._pending_deletions[room_id]
                    if room.connected_players():
                        logger.info("room %s reoccupied, keeping it", room_id)
                        return
                self.remove(room_id)
            if on_deleted is not None:
                on_deleted(room_id)

        with self._lock:
            handle = self._clock.call_later(delay_sec, _expire)
            handle_box.append(handle)
            previous = self._pending_deletions.get(room_id)
            self._pending_deletions[room_id] = handle
        if previous is not None:
            previous.cancel()
        logger.info("room %s empty, deletion in %.1fs", room_id, delay_sec)

    def has_pending_deletion(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._pending_deletions
