from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Literal


Phase = Literal["lobby", "drawing", "intermission", "gameover"]


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    connected: bool = True
    disconnected_at: float | None = None

    def public(self) -> dict:
        return {"id": self.id, "name": self.name, "score": self.score}


@dataclass
class Room:
    id: str
    players: list[Player] = field(default_factory=list)
    phase: Phase = "lobby"
    word: str | None = None
    round: int = 1
    turn_index: int = 0
    guessed_this_round: set[str] = field(default_factory=set)
    round_end_at: float | None = None
    # turn_index already names the next drawer; the next advance keeps it.
    turn_passed: bool = False
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    def connected_players(self) -> list[Player]:
        return [p for p in self.players if p.connected]

    def find_player(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def turn_player(self) -> Player | None:
        connected = self.connected_players()
        if not connected:
            return None
        return connected[self.turn_index % len(connected)]

    def drawer(self) -> Player | None:
        if self.phase != "drawing":
            return None
        return self.turn_player()


@dataclass
class GameResult:
    ended: bool
    winner: Player | None = None
    tie: bool = False
    reason: str = ""
