import pytest

from conftest import WORD
from pictionary.config import GameSettings
from pictionary.game.service import GameService


def advance_cycle(clock, settings):
    """Let a round time out and the intermission run out."""
    clock.advance(settings.round_duration_sec)
    clock.advance(settings.intermission_sec)


def test_single_player_stays_in_lobby(service, gateway, clock):
    service.join("sid-a", "r1", "A")
    clock.advance(120)

    room = service.registry.get("r1")
    assert room.phase == "lobby"
    assert room.word is None
    assert not gateway.of("round:started")
    state = gateway.last("room:state", to="r1").payload
    assert state["drawerId"] is None
    assert state["turnPlayerId"] == "sid-a"


def test_second_player_starts_round(service, gateway, playing_room):
    room = playing_room
    assert room.phase == "drawing"
    assert room.round == 1
    assert room.drawer().id == "sid-a"
    assert room.word == WORD

    started = gateway.last("round:started", to="r1").payload
    assert started == {"roomId": "r1", "round": 1, "drawerId": "sid-a"}
    assert gateway.last("round:clear", to="r1") is not None
    state = gateway.last("room:state", to="r1").payload
    assert state["phase"] == "drawing"
    assert state["drawerId"] == "sid-a"
    assert state["timeLeft"] == 60


def test_word_delivered_only_to_drawer_after_state(service, gateway, clock, playing_room):
    assert gateway.of("round:word") == []

    clock.advance(0.05)

    words = gateway.of("round:word")
    assert len(words) == 1
    assert words[0].to == "sid-a"
    assert words[0].payload == {"word": WORD}
    last_state_index = max(i for i, s in enumerate(gateway.sent) if s.event == "room:state")
    word_index = next(i for i, s in enumerate(gateway.sent) if s.event == "round:word")
    assert last_state_index < word_index


def test_word_never_in_room_broadcasts(service, gateway, clock, playing_room):
    service.chat("sid-b", "r1", "hello")
    service.guess("sid-b", "r1", "wrong")
    advance_cycle(clock, service.settings)
    service.guess("sid-a", "r1", WORD)

    for sent in gateway.sent:
        if sent.event == "round:word":
            continue
        assert WORD not in repr(sent.payload)


def test_scenario_guess_then_rotation(service, gateway, clock, playing_room):
    room = playing_room

    assert service.guess("sid-b", "r1", "  rOcKeT ")

    a, b = room.players
    assert (a.score, b.score) == (1, 2)
    assert gateway.last("round:ended").payload == {"roomId": "r1", "reason": "guessed"}
    assert room.phase == "intermission"
    assert room.word is None
    assert gateway.last("score:update").payload["players"] == [
        {"id": "sid-a", "name": "A", "score": 1},
        {"id": "sid-b", "name": "B", "score": 2},
    ]

    clock.advance(service.settings.intermission_sec)

    assert room.phase == "drawing"
    assert room.round == 2
    assert room.drawer().id == "sid-b"
    assert room.guessed_this_round == set()


def test_second_correct_guess_is_a_noop(service, gateway, playing_room):
    service.join("sid-c", "r1", "C")
    room = playing_room

    assert service.guess("sid-b", "r1", WORD)
    updates = len(gateway.of("score:update"))
    assert not service.guess("sid-c", "r1", WORD)

    assert [p.score for p in room.players] == [1, 2, 0]
    assert len(gateway.of("score:update")) == updates
    assert len(room.guessed_this_round) == 1


def test_drawer_cannot_guess_own_word(service, playing_room):
    assert not service.guess("sid-a", "r1", WORD)
    assert playing_room.phase == "drawing"
    assert all(p.score == 0 for p in playing_room.players)


def test_guess_outside_drawing_is_ignored(service, gateway, playing_room):
    service.skip("sid-a", "r1")
    assert playing_room.phase == "intermission"

    assert not service.guess("sid-b", "r1", WORD)
    assert not gateway.of("room:error")


def test_wrong_guess_changes_nothing(service, playing_room):
    assert not service.guess("sid-b", "r1", "rocket ship")
    assert playing_room.phase == "drawing"
    assert playing_room.guessed_this_round == set()


def test_guess_collapses_inner_whitespace(gateway, clock):
    service = GameService(gateway, clock, word_picker=lambda: "ice  cream")
    service.join("a", "r", "A")
    service.join("b", "r", "B")

    assert service.guess("b", "r", "Ice \t Cream")


def test_timeout_ends_round_without_points(service, gateway, clock, playing_room):
    clock.advance(59)
    assert playing_room.phase == "drawing"
    assert gateway.last("room:state").payload["timeLeft"] == 1

    clock.advance(1)

    assert playing_room.phase == "intermission"
    assert gateway.last("round:ended").payload["reason"] == "timeout"
    assert all(p.score == 0 for p in playing_room.players)


def test_ticks_broadcast_remaining_time(service, gateway, clock, playing_room):
    gateway.clear()
    clock.advance(3)

    left = [s.payload["timeLeft"] for s in gateway.of("room:state", to="r1")]
    assert left == [59, 58, 57]


def test_skip_by_drawer_only(service, gateway, playing_room):
    service.skip("sid-b", "r1")
    assert playing_room.phase == "drawing"

    service.skip("sid-a", "r1")
    assert playing_room.phase == "intermission"
    assert gateway.last("round:ended").payload["reason"] == "skipped"
    assert all(p.score == 0 for p in playing_room.players)


def test_stale_timer_does_not_double_end(service, gateway, clock, playing_room):
    service.skip("sid-a", "r1")
    clock.advance(service.settings.intermission_sec)
    assert playing_room.round == 2

    # The original round-1 deadline passes while round 2 is running.
    clock.advance(service.settings.round_duration_sec - service.settings.intermission_sec)
    assert playing_room.phase == "drawing"
    assert len(gateway.of("round:ended")) == 1


@pytest.mark.parametrize("timeouts", [1, 2, 3, 4, 5])
def test_turn_rotation_after_timeouts(gateway, clock, timeouts):
    settings = GameSettings(max_rounds=100)
    service = GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)
    for sid in ("a", "b", "c"):
        service.join(sid, "r", sid.upper())
    room = service.registry.get("r")
    start = room.turn_index

    for _ in range(timeouts):
        advance_cycle(clock, settings)

    assert room.turn_index == (start + timeouts) % 3
    assert room.round == 1 + timeouts


def test_win_by_threshold_before_round_cap(service, gateway, clock, playing_room):
    room = playing_room
    service.skip("sid-a", "r1")
    clock.advance(service.settings.intermission_sec)
    service.skip("sid-b", "r1")
    clock.advance(service.settings.intermission_sec)
    assert room.round == 3

    drawer = room.drawer()
    guesser = "sid-b" if drawer.id == "sid-a" else "sid-a"
    room.find_player(guesser).score = 8
    service.guess(guesser, "r1", WORD)

    assert room.phase == "gameover"
    over = gateway.last("game:over").payload
    assert over["winner"]["id"] == guesser
    assert over["winner"]["score"] == 10
    assert over["tie"] is False
    assert room.round == 3


def test_tie_at_round_cap(gateway, clock):
    settings = GameSettings(max_rounds=2)
    service = GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)
    service.join("a", "r", "A")
    service.join("b", "r", "B")
    room = service.registry.get("r")

    service.guess("b", "r", WORD)  # A 1, B 2
    clock.advance(settings.intermission_sec)
    service.guess("a", "r", WORD)  # B drawing: A 3, B 3

    assert room.phase == "gameover"
    over = gateway.last("game:over").payload
    assert over["winner"] is None
    assert over["tie"] is True
    assert [s["score"] for s in over["finalScores"]] == [3, 3]
    assert room.round == 2


def test_final_scores_sorted_descending(gateway, clock):
    settings = GameSettings(max_rounds=1)
    service = GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)
    service.join("a", "r", "A")
    service.join("b", "r", "B")

    service.guess("b", "r", WORD)

    over = gateway.last("game:over").payload
    assert [s["id"] for s in over["finalScores"]] == ["b", "a"]
    assert over["winner"]["id"] == "b"


def test_no_timers_fire_after_gameover(gateway, clock):
    settings = GameSettings(max_rounds=1)
    service = GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)
    service.join("a", "r", "A")
    service.join("b", "r", "B")
    clock.advance(settings.round_duration_sec)
    room = service.registry.get("r")
    assert room.phase == "gameover"

    clock.advance(500)
    assert room.phase == "gameover"
    assert len(gateway.of("round:started")) == 1


def test_restart_resets_game(gateway, clock):
    settings = GameSettings(max_rounds=1)
    service = GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)
    service.join("a", "r", "A")
    service.join("b", "r", "B")
    service.guess("b", "r", WORD)
    room = service.registry.get("r")
    room.turn_index = 1

    service.restart("a", "r")

    assert room.phase == "drawing"
    assert room.round == 1
    assert room.turn_index == 0
    assert [p.score for p in room.players] == [0, 0]
    assert gateway.last("chat:message").payload["text"].startswith("Game restarted")


def test_restart_ignored_unless_gameover(service, playing_room):
    playing_room.players[0].score = 5
    service.restart("sid-a", "r1")
    assert playing_room.players[0].score == 5
    assert playing_room.phase == "drawing"


def test_manual_start_from_intermission(service, gateway, playing_room):
    service.skip("sid-a", "r1")
    service.request_start("sid-b", "r1")

    assert playing_room.phase == "drawing"
    assert len(gateway.of("round:started")) == 2


def test_manual_start_ignored_while_drawing(service, gateway, playing_room):
    service.request_start("sid-b", "r1")
    assert len(gateway.of("round:started")) == 1


def test_chat_is_broadcast(service, gateway, playing_room):
    service.chat("sid-b", "r1", "  nice drawing ")
    msg = gateway.last("chat:message", to="r1").payload
    assert msg == {"roomId": "r1", "fromName": "B", "text": "nice drawing"}


def test_chat_equal_to_word_is_suppressed_and_scores_nothing(service, gateway, playing_room):
    gateway.clear()
    service.chat("sid-b", "r1", " rocket ")

    assert gateway.of("chat:message") == []
    assert playing_room.phase == "drawing"
    assert all(p.score == 0 for p in playing_room.players)


def test_chat_from_non_member_ignored(service, gateway, playing_room):
    gateway.clear()
    service.chat("stranger", "r1", "hi")
    assert gateway.sent == []


def test_unknown_room_reports_error(service, gateway):
    service.chat("sid-x", "nowhere", "hi")
    err = gateway.last("room:error")
    assert err.to == "sid-x"
    assert err.payload == {"error": "room_not_found", "roomId": "nowhere"}


def test_stroke_relayed_except_sender(service, gateway, playing_room):
    service.stroke("sid-a", "r1", [{"x": 1, "y": 2}])
    sent = gateway.last("draw:stroke")
    assert sent.to == "r1"
    assert sent.skip_sid == "sid-a"
    assert sent.payload == {"roomId": "r1", "points": [{"x": 1, "y": 2}]}


def test_stroke_from_guesser_or_empty_dropped(service, gateway, playing_room):
    service.stroke("sid-b", "r1", [{"x": 1, "y": 2}])
    service.stroke("sid-a", "r1", [])
    service.stroke("sid-a", "r1", "nope")
    assert gateway.of("draw:stroke") == []


def test_clear_by_drawer_only(service, gateway, playing_room):
    gateway.clear()
    service.clear_canvas("sid-b", "r1")
    assert gateway.of("round:clear") == []
    service.clear_canvas("sid-a", "r1")
    assert gateway.last("round:clear").payload == {"roomId": "r1"}


def test_close_room_by_drawer(service, gateway, clock, playing_room):
    service.close_room("sid-b", "r1")
    assert "r1" in service.registry

    service.close_room("sid-a", "r1")

    assert "r1" not in service.registry
    assert gateway.closed == ["r1"]
    assert service.registry.room_for("sid-a") is None
    assert gateway.last("rooms:list").payload == {"rooms": []}
    # Round timer went with the room.
    clock.advance(120)
    assert gateway.last("round:ended") is None
