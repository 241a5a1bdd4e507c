from collections import defaultdict
from dataclasses import dataclass

import pytest

from pictionary.config import Config, GameSettings
from pictionary.game.clock import ManualClock
from pictionary.game.service import GameService
from pictionary.server import create_app


WORD = "Rocket"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False


@dataclass
class Sent:
    event: str
    payload: dict
    to: str | None
    skip_sid: str | None


class RecordingGateway:
    """Stands in for Socket.IO and remembers everything emitted."""

    def __init__(self):
        self.sent: list[Sent] = []
        self.groups: dict[str, set[str]] = defaultdict(set)
        self.closed: list[str] = []

    def emit(self, event, payload, to=None, skip_sid=None):
        self.sent.append(Sent(event, payload, to, skip_sid))

    def enter(self, sid, group):
        self.groups[group].add(sid)

    def leave(self, sid, group):
        self.groups[group].discard(sid)

    def close(self, group):
        self.groups.pop(group, None)
        self.closed.append(group)

    def of(self, event, to=None):
        return [s for s in self.sent if s.event == event and (to is None or s.to == to)]

    def last(self, event, to=None):
        matches = self.of(event, to)
        return matches[-1] if matches else None

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def gateway():
    return RecordingGateway()


@pytest.fixture()
def settings():
    return GameSettings()


@pytest.fixture()
def service(gateway, clock, settings):
    return GameService(gateway, clock, settings=settings, word_picker=lambda: WORD)


@pytest.fixture()
def playing_room(service):
    """Room r1 with A (drawer) and B, round 1 in progress."""
    service.join("sid-a", "r1", "A")
    service.join("sid-b", "r1", "B")
    return service.registry.get("r1")


@pytest.fixture()
def app_clock():
    return ManualClock()


@pytest.fixture()
def flask_app(app_clock):
    application, socketio = create_app(TestConfig, clock=app_clock)
    application.extensions["test_socketio"] = socketio
    yield application


@pytest.fixture()
def socketio(flask_app):
    return flask_app.extensions["test_socketio"]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
