from __future__ import annotations

from flask_socketio import SocketIO


class SocketIOGateway:
    """Outbound side of the game: emits and room-group membership.

    ``to=None`` broadcasts to every connection on the namespace. Group
    membership goes through the underlying python-socketio server so it
    also works from timer callbacks running outside a request context.
    """

    def __init__(self, socketio: SocketIO, namespace: str = "/") -> None:
        self._socketio = socketio
        self._namespace = namespace

    def emit(self, event: str, payload: dict, to: str | None = None, skip_sid: str | None = None) -> None:
        self._socketio.emit(event, payload, to=to, skip_sid=skip_sid, namespace=self._namespace)

    def enter(self, sid: str, group: str) -> None:
        self._socketio.server.enter_room(sid, group, namespace=self._namespace)

    def leave(self, sid: str, group: str) -> None:
        self._socketio.server.leave_room(sid, group, namespace=self._namespace)

    def close(self, group: str) -> None:
        self._socketio.close_room(group, namespace=self._namespace)
