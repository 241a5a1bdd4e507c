from __future__ import annotations

from .models import GameResult, Player, Room


GUESSER_POINTS = 2
DRAWER_POINTS = 1


def award_correct_guess(room: Room, guesser: Player, drawer_id: str | None) -> None:
    """Score the first correct guess of the round.

    The drawer may have dropped out of the roster by now; their point is
    skipped in that case.
    """
    guesser.score += GUESSER_POINTS
    drawer = room.find_player(drawer_id) if drawer_id else None
    if drawer is not None and drawer is not guesser:
        drawer.score += DRAWER_POINTS
    room.guessed_this_round.add(guesser.id)


def final_scores(room: Room) -> list[dict]:
    return sorted((p.public() for p in room.players), key=lambda d: d["score"], reverse=True)


def _top_players(players: list[Player]) -> list[Player]:
    if not players:
        return []
    best = max(p.score for p in players)
    return [p for p in players if p.score == best]


def evaluate_game_end(room: Room, winning_score: int, max_rounds: int) -> GameResult:
    """Decide whether the game is over after a round ends.

    A score at or above ``winning_score`` wins immediately; otherwise once
    ``max_rounds`` have been played the top scorer wins, or nobody does on a
    tie.
    """
    reached = [p for p in room.players if p.score >= winning_score]
    if reached:
        winner = _top_players(reached)[0]
        return GameResult(
            ended=True,
            winner=winner,
            reason=f"{winner.name} reached {winning_score} points and wins the game early!",
        )

    if room.round >= max_rounds:
        top = _top_players(room.players)
        if not top:
            return GameResult(ended=True, reason=f"Game ended after {max_rounds} rounds.")
        if len(top) > 1:
            return GameResult(
                ended=True,
                tie=True,
                reason=f"Game ended after {max_rounds} rounds. It's a tie at {top[0].score} points!",
            )
        winner = top[0]
        return GameResult(
            ended=True,
            winner=winner,
            reason=f"Game ended after {max_rounds} rounds. {winner.name} wins with {winner.score} points!",
        )

    return GameResult(ended=False)


def reset_scores(room: Room) -> None:
    for p in room.players:
        p.score = 0
