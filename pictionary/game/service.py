from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable

from ..config import GameSettings
from ..realtime import events
from . import scoring
from .models import GameResult, Player, Room
from .registry import RoomRegistry
from .scheduler import RoundScheduler
from .words import normalize, pick_word


logger = logging.getLogger(__name__)


class GameService:
    """Room lifecycle and round state machine.

    Every operation runs under the lock of the room it touches, and timer
    callbacks take the same lock, so a join, a guess and a round expiry for
    one room never interleave. Different rooms share no lock.
    """

    def __init__(
        self,
        gateway,
        clock,
        settings: GameSettings | None = None,
        word_picker: Callable[[], str] = pick_word,
    ) -> None:
        self.settings = settings or GameSettings()
        self.gateway = gateway
        self.clock = clock
        self.rounds = RoundScheduler(clock, tick_sec=self.settings.tick_sec)
        self.registry = RoomRegistry(clock, self.rounds, capacity=self.settings.max_players)
        self._pick_word = word_picker

    # ------------------------------------------------------------------
    # Payloads and broadcasts
    # ------------------------------------------------------------------

    def room_state(self, room: Room) -> dict:
        # Never includes the word: this payload goes to the whole room.
        turn = room.turn_player()
        payload: dict[str, Any] = {
            "roomId": room.id,
            "players": [p.public() for p in room.connected_players()],
            "round": room.round,
            "turnPlayerId": turn.id if turn else None,
            "drawerId": turn.id if turn and room.phase != "lobby" else None,
            "phase": room.phase,
        }
        if room.round_end_at is not None:
            remaining = room.round_end_at - self.clock.now()
            payload["timeLeft"] = max(0, math.ceil(remaining - 1e-6))
        return payload

    def rooms_payload(self) -> dict:
        return {"rooms": self.registry.list_public()}

    def status(self) -> dict:
        ids = self.registry.room_ids()
        return {
            "status": "running",
            "rooms": ids,
            "roomCount": len(ids),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def broadcast_rooms(self) -> None:
        self.gateway.emit(events.ROOMS_LIST, self.rooms_payload())

    def send_rooms(self, sid: str) -> None:
        self.gateway.emit(events.ROOMS_LIST, self.rooms_payload(), to=sid)

    def subscribe_rooms(self, sid: str) -> None:
        self.gateway.enter(sid, events.ROOMS_CHANNEL)
        self.send_rooms(sid)

    def _broadcast_state(self, room: Room) -> None:
        self.gateway.emit(events.ROOM_STATE, self.room_state(room), to=room.id)

    def _system_message(self, room: Room, text: str) -> None:
        self.gateway.emit(
            events.CHAT_MESSAGE,
            {"roomId": room.id, "fromName": events.SYSTEM_NAME, "text": text, "system": True},
            to=room.id,
        )

    def _score_update(self, room: Room) -> None:
        self.gateway.emit(
            events.SCORE_UPDATE,
            {"roomId": room.id, "players": [p.public() for p in room.players]},
            to=room.id,
        )

    def _on_room_deleted(self, room_id: str) -> None:
        self.broadcast_rooms()

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _room_for_action(self, sid: str, room_id: Any) -> Room | None:
        clean_room_id = str(room_id or "").strip() or (self.registry.room_for(sid) or "")
        if not clean_room_id:
            return None
        room = self.registry.get(clean_room_id)
        if room is None:
            self.gateway.emit(
                events.ROOM_ERROR,
                {"error": "room_not_found", "roomId": clean_room_id},
                to=sid,
            )
        return room

    def _name_error(self, name: str) -> str | None:
        if not name:
            return "Name is required to join a room"
        if len(name) > self.settings.name_max_length:
            return f"Name must be at most {self.settings.name_max_length} characters"
        if "<" in name or ">" in name or any(ord(ch) < 32 for ch in name):
            return "Name contains invalid characters"
        return None

    @staticmethod
    def _keep_turn(room: Room, turn_player: Player | None) -> None:
        """Point turn_index back at ``turn_player`` after the roster changed."""
        if turn_player is None:
            return
        for i, p in enumerate(room.connected_players()):
            if p is turn_player:
                room.turn_index = i
                return

    # ------------------------------------------------------------------
    # Joining, leaving, presence
    # ------------------------------------------------------------------

    def join(self, sid: str, room_id: Any, name: Any) -> bool:
        clean_name = str(name or "").strip()
        error = self._name_error(clean_name)
        if error:
            self.gateway.emit(events.PLAYER_JOIN_ERROR, {"message": error}, to=sid)
            return False

        clean_room_id = str(room_id or "").strip() or self.settings.default_room_id

        previous_room_id = self.registry.room_for(sid)
        if previous_room_id and previous_room_id != clean_room_id:
            logger.info("sid=%s switching from room %s to %s", sid, previous_room_id, clean_room_id)
            self.leave(sid, previous_room_id)

        while True:
            room = self.registry.get_or_create(clean_room_id)
            with room.lock:
                # A deferred deletion may have dropped the room before we got the lock.
                if self.registry.get(clean_room_id) is not room:
                    continue
                return self._join_locked(sid, room, clean_name)

    def _join_locked(self, sid: str, room: Room, name: str) -> bool:
        now = self.clock.now()
        turn_before = room.turn_player()

        player = room.find_player(sid)
        reconnected = False
        if player is None:
            player = next(
                (
                    p
                    for p in room.players
                    if p.name == name
                    and not p.connected
                    and p.disconnected_at is not None
                    and now - p.disconnected_at < self.settings.reconnect_grace_sec
                ),
                None,
            )
            reconnected = player is not None

        if player is None:
            if len(room.connected_players()) >= self.settings.max_players:
                self.gateway.emit(
                    events.PLAYER_JOIN_ERROR,
                    {
                        "roomId": room.id,
                        "message": "Room is full",
                        "capacity": self.settings.max_players,
                    },
                    to=sid,
                )
                self.send_rooms(sid)
                return False
            # Drop expired slots left behind under the same name.
            room.players = [p for p in room.players if not (p.name == name and not p.connected)]
            player = Player(id=sid, name=name)
            room.players.append(player)
        else:
            player.id = sid
            player.name = name

        player.connected = True
        player.disconnected_at = None
        self._keep_turn(room, turn_before)

        self.registry.bind(sid, room.id)
        self.gateway.enter(sid, room.id)

        if reconnected:
            logger.info("player %r reconnected to room %s score=%d", name, room.id, player.score)
            self._system_message(room, f"{name} rejoined the room")
        else:
            logger.info("player %r joined room %s", name, room.id)
            self._system_message(room, f"{name} joined the room")

        if room.phase == "lobby" and len(room.connected_players()) >= 2:
            self._start_round(room)
        else:
            self._broadcast_state(room)
        self.broadcast_rooms()
        return True

    def _depart(self, room: Room, player: Player, removed: bool) -> None:
        """Take ``player`` out of the connected roster and fix the turn index."""
        connected_before = room.connected_players()
        turn_before = room.turn_player()
        position = next((i for i, p in enumerate(connected_before) if p is player), None)

        if removed:
            room.players = [p for p in room.players if p is not player]
        else:
            player.connected = False
            player.disconnected_at = self.clock.now()

        remaining = len(room.connected_players())
        if turn_before is player and position is not None:
            # The follower inherits the turn.
            room.turn_index = position % remaining if remaining else 0
            if remaining and room.phase in ("drawing", "intermission"):
                room.turn_passed = True
        else:
            self._keep_turn(room, turn_before)

    def _halt(self, room: Room) -> None:
        """Stop play once fewer than two players are connected."""
        if room.phase == "gameover":
            # Scores stay until game:restart.
            return
        self._to_lobby(room)

    def _after_departure(self, room: Room, was_drawer: bool) -> None:
        if len(room.connected_players()) < 2:
            self._halt(room)
            self._broadcast_state(room)
            self.broadcast_rooms()
        elif was_drawer:
            self._end_round(room, "timeout")
        else:
            self._broadcast_state(room)
            self.broadcast_rooms()

    def leave(self, sid: str, room_id: Any = None) -> None:
        clean_room_id = str(room_id or "").strip() or self.registry.room_for(sid)
        if not clean_room_id:
            return
        room = self.registry.get(clean_room_id)
        if room is None:
            return

        with room.lock:
            self.gateway.leave(sid, room.id)
            if self.registry.room_for(sid) == room.id:
                self.registry.unbind(sid)

            player = room.find_player(sid)
            if player is None:
                return

            was_drawer = room.drawer() is player
            self._depart(room, player, removed=True)
            logger.info("player %r left room %s", player.name, room.id)
            self._system_message(room, f"{player.name} left the room")

            if not room.connected_players():
                self._halt(room)
                delay = (
                    self.settings.leave_delete_delay_sec
                    if not room.players
                    else self.settings.empty_room_ttl_sec
                )
                self.registry.schedule_deletion(room.id, delay, self._on_room_deleted)
                self.broadcast_rooms()
                return

            self._after_departure(room, was_drawer)

    def disconnect(self, sid: str) -> None:
        room_id = self.registry.unbind(sid)
        if not room_id:
            logger.debug("sid=%s disconnected without a room", sid)
            return
        room = self.registry.get(room_id)
        if room is None:
            return

        with room.lock:
            player = room.find_player(sid)
            if player is None or not player.connected:
                return

            was_drawer = room.drawer() is player
            self._depart(room, player, removed=False)
            logger.info(
                "player %r disconnected from room %s, keeping slot for %.0fs",
                player.name,
                room.id,
                self.settings.reconnect_grace_sec,
            )

            if not room.connected_players():
                self._halt(room)
                self.registry.schedule_deletion(
                    room.id, self.settings.empty_room_ttl_sec, self._on_room_deleted
                )
                self.broadcast_rooms()
                return

            self._system_message(
                room,
                f"{player.name} disconnected (can rejoin within "
                f"{self.settings.reconnect_grace_sec:.0f} seconds)",
            )
            self._after_departure(room, was_drawer)

    # ------------------------------------------------------------------
    # Round state machine
    # ------------------------------------------------------------------

    def _guarded(self, room: Room, phase: str, round_no: int, action: Callable[[], None]) -> Callable[[], None]:
        """Wrap a timer action so it no-ops once the room has moved on."""

        def _callback() -> None:
            with room.lock:
                if self.registry.get(room.id) is not room:
                    return
                if room.phase != phase or room.round != round_no:
                    logger.debug(
                        "stale timer room=%s expected=%s/%d actual=%s/%d",
                        room.id,
                        phase,
                        round_no,
                        room.phase,
                        room.round,
                    )
                    return
                action()

        return _callback

    def _ticker(self, room: Room) -> Callable[[float], None]:
        def _tick(remaining: float) -> None:
            with room.lock:
                if self.registry.get(room.id) is not room:
                    return
                self._broadcast_state(room)

        return _tick

    def _to_lobby(self, room: Room) -> None:
        self.rounds.cancel(room.id)
        room.phase = "lobby"
        room.word = None
        room.round_end_at = None
        room.guessed_this_round.clear()
        room.turn_passed = False

    def _start_round(self, room: Room) -> None:
        if len(room.connected_players()) < 2:
            self._to_lobby(room)
            self._broadcast_state(room)
            return

        room.phase = "drawing"
        room.guessed_this_round.clear()
        room.turn_passed = False
        drawer = room.turn_player()
        room.word = self._pick_word()
        round_no = room.round
        room.round_end_at = self.rounds.start(
            room.id,
            self.settings.round_duration_sec,
            on_expire=self._guarded(room, "drawing", round_no, lambda: self._end_round(room, "timeout")),
            on_tick=self._ticker(room),
        )
        logger.info("round %d started room=%s drawer=%r", round_no, room.id, drawer.name)

        self.gateway.emit(events.ROUND_CLEAR, {"roomId": room.id}, to=room.id)
        self.gateway.emit(
            events.ROUND_STARTED,
            {"roomId": room.id, "round": round_no, "drawerId": drawer.id},
            to=room.id,
        )
        self._broadcast_state(room)
        self.broadcast_rooms()

        # Deliver the word only after everyone has seen who is drawing.
        drawer_id = drawer.id
        self.clock.call_later(
            self.settings.word_delivery_delay_sec,
            lambda: self._deliver_word(room, round_no, drawer_id),
        )

    def _deliver_word(self, room: Room, round_no: int, drawer_id: str) -> None:
        with room.lock:
            if room.phase != "drawing" or room.round != round_no or not room.word:
                return
            drawer = room.drawer()
            if drawer is None or drawer.id != drawer_id:
                return
            self.gateway.emit(events.ROUND_WORD, {"word": room.word}, to=drawer_id)

    def _end_round(self, room: Room, reason: str) -> None:
        if room.phase != "drawing":
            return
        self.rounds.cancel(room.id)
        room.phase = "intermission"
        room.word = None
        room.round_end_at = None
        logger.info("round %d ended room=%s reason=%s", room.round, room.id, reason)
        self.gateway.emit(events.ROUND_ENDED, {"roomId": room.id, "reason": reason}, to=room.id)

        result = scoring.evaluate_game_end(room, self.settings.winning_score, self.settings.max_rounds)
        if result.ended:
            self._game_over(room, result)
            return

        if len(room.connected_players()) >= 2:
            room.round_end_at = self.rounds.start(
                room.id,
                self.settings.intermission_sec,
                on_expire=self._guarded(room, "intermission", room.round, lambda: self._advance(room)),
                on_tick=self._ticker(room),
            )
        else:
            self._to_lobby(room)
        self._broadcast_state(room)
        self.broadcast_rooms()

    def _advance(self, room: Room) -> None:
        count = len(room.connected_players())
        if count < 2:
            self._to_lobby(room)
            self._broadcast_state(room)
            return
        if room.turn_passed:
            room.turn_passed = False
        else:
            room.turn_index = (room.turn_index + 1) % count
        room.round += 1
        room.guessed_this_round.clear()
        room.round_end_at = None
        self._start_round(room)

    def _game_over(self, room: Room, result: GameResult) -> None:
        self.rounds.cancel(room.id)
        room.phase = "gameover"
        room.word = None
        room.round_end_at = None
        logger.info("game over room=%s winner=%s tie=%s", room.id, result.winner, result.tie)
        self.gateway.emit(
            events.GAME_OVER,
            {
                "roomId": room.id,
                "winner": result.winner.public() if result.winner else None,
                "tie": result.tie,
                "reason": result.reason,
                "finalScores": scoring.final_scores(room),
            },
            to=room.id,
        )
        self._broadcast_state(room)
        self.broadcast_rooms()

    # ------------------------------------------------------------------
    # In-round actions
    # ------------------------------------------------------------------

    def chat(self, sid: str, room_id: Any, message: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            player = room.find_player(sid)
            if player is None:
                return
            text = str(message or "").strip()
            if not text:
                return
            if room.word and normalize(text) == normalize(room.word):
                logger.debug("suppressed chat matching the word room=%s", room.id)
                return
            self.gateway.emit(
                events.CHAT_MESSAGE,
                {"roomId": room.id, "fromName": player.name, "text": text},
                to=room.id,
            )

    def guess(self, sid: str, room_id: Any, guess: Any) -> bool:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return False
        with room.lock:
            if room.phase != "drawing":
                return False
            player = room.find_player(sid)
            if player is None or not player.connected:
                return False
            drawer = room.drawer()
            if drawer is None or drawer is player:
                return False
            guess_norm = normalize(guess)
            if not guess_norm or room.guessed_this_round:
                return False
            if guess_norm != normalize(room.word):
                return False

            scoring.award_correct_guess(room, player, drawer.id)
            logger.info("player %r guessed the word in room %s", player.name, room.id)
            self._score_update(room)
            self._system_message(room, f"{player.name} guessed it!")
            self._end_round(room, "guessed")
            return True

    def stroke(self, sid: str, room_id: Any, points: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            drawer = room.drawer()
            if drawer is None or drawer.id != sid:
                return
            if not isinstance(points, list) or not points:
                return
            self.gateway.emit(
                events.DRAW_STROKE,
                {"roomId": room.id, "points": points},
                to=room.id,
                skip_sid=sid,
            )

    def clear_canvas(self, sid: str, room_id: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            drawer = room.drawer()
            if drawer is None or drawer.id != sid:
                return
            self.gateway.emit(events.ROUND_CLEAR, {"roomId": room.id}, to=room.id)

    def request_start(self, sid: str, room_id: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            if room.find_player(sid) is None:
                return
            if room.phase in ("drawing", "gameover"):
                return
            if len(room.connected_players()) < 2:
                return
            self._start_round(room)

    def skip(self, sid: str, room_id: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            drawer = room.drawer()
            if drawer is None or drawer.id != sid:
                return
            self._end_round(room, "skipped")

    def close_room(self, sid: str, room_id: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            turn = room.turn_player()
            if turn is None or turn.id != sid:
                return
            self._system_message(room, "Room was closed by the drawer.")
            self.registry.remove(room.id)
            room.phase = "lobby"
            room.word = None
            room.round_end_at = None
            self.gateway.close(room.id)
        self.broadcast_rooms()

    def restart(self, sid: str, room_id: Any) -> None:
        room = self._room_for_action(sid, room_id)
        if room is None:
            return
        with room.lock:
            if room.phase != "gameover" or room.find_player(sid) is None:
                return
            scoring.reset_scores(room)
            room.round = 1
            room.turn_index = 0
            room.turn_passed = False
            room.word = None
            room.round_end_at = None
            room.guessed_this_round.clear()
            logger.info("game restarted room=%s", room.id)
            if len(room.connected_players()) >= 2:
                self._start_round(room)
            else:
                room.phase = "lobby"
                self._broadcast_state(room)
            self._system_message(room, "Game restarted! Starting fresh...")
