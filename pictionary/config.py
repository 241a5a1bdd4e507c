from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Empty means "pick per platform" (see server.create_app)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # Rooms
    MAX_PLAYERS_PER_ROOM = int(os.environ.get("MAX_PLAYERS_PER_ROOM", "8"))
    DEFAULT_ROOM_ID = os.environ.get("DEFAULT_ROOM_ID", "lobby-1")
    NAME_MAX_LENGTH = int(os.environ.get("NAME_MAX_LENGTH", "24"))

    # Game
    ROUND_DURATION_SEC = float(os.environ.get("ROUND_DURATION_SEC", "60"))
    INTERMISSION_SEC = float(os.environ.get("INTERMISSION_SEC", "3"))
    TICK_SEC = float(os.environ.get("TICK_SEC", "1"))
    WINNING_SCORE = int(os.environ.get("WINNING_SCORE", "10"))
    MAX_ROUNDS = int(os.environ.get("MAX_ROUNDS", "6"))
    WORD_DELIVERY_DELAY_SEC = float(os.environ.get("WORD_DELIVERY_DELAY_SEC", "0.05"))

    # Presence
    RECONNECT_GRACE_SEC = float(os.environ.get("RECONNECT_GRACE_SEC", "30"))
    # Must stay longer than RECONNECT_GRACE_SEC
    EMPTY_ROOM_TTL_SEC = float(os.environ.get("EMPTY_ROOM_TTL_SEC", "35"))
    LEAVE_DELETE_DELAY_SEC = float(os.environ.get("LEAVE_DELETE_DELAY_SEC", "2"))


@dataclass(frozen=True)
class GameSettings:
    max_players: int = 8
    default_room_id: str = "lobby-1"
    name_max_length: int = 24
    round_duration_sec: float = 60.0
    intermission_sec: float = 3.0
    tick_sec: float = 1.0
    winning_score: int = 10
    max_rounds: int = 6
    word_delivery_delay_sec: float = 0.05
    reconnect_grace_sec: float = 30.0
    empty_room_ttl_sec: float = 35.0
    leave_delete_delay_sec: float = 2.0

    @classmethod
    def from_mapping(cls, config: Mapping) -> GameSettings:
        defaults = cls()
        return cls(
            max_players=int(config.get("MAX_PLAYERS_PER_ROOM", defaults.max_players)),
            default_room_id=str(config.get("DEFAULT_ROOM_ID", defaults.default_room_id)),
            name_max_length=int(config.get("NAME_MAX_LENGTH", defaults.name_max_length)),
            round_duration_sec=float(config.get("ROUND_DURATION_SEC", defaults.round_duration_sec)),
            intermission_sec=float(config.get("INTERMISSION_SEC", defaults.intermission_sec)),
            tick_sec=float(config.get("TICK_SEC", defaults.tick_sec)),
            winning_score=int(config.get("WINNING_SCORE", defaults.winning_score)),
            max_rounds=int(config.get("MAX_ROUNDS", defaults.max_rounds)),
            word_delivery_delay_sec=float(
                config.get("WORD_DELIVERY_DELAY_SEC", defaults.word_delivery_delay_sec)
            ),
            reconnect_grace_sec=float(config.get("RECONNECT_GRACE_SEC", defaults.reconnect_grace_sec)),
            empty_room_ttl_sec=float(config.get("EMPTY_ROOM_TTL_SEC", defaults.empty_room_ttl_sec)),
            leave_delete_delay_sec=float(
                config.get("LEAVE_DELETE_DELAY_SEC", defaults.leave_delete_delay_sec)
            ),
        )
