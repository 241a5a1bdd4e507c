from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO

from ..game.service import GameService
from . import events


logger = logging.getLogger(__name__)


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def register_socketio_handlers(socketio: SocketIO, service: GameService) -> None:
    @socketio.on_error_default
    def on_error(exc):
        logger.exception("socket handler failed sid=%s event=%s", request.sid, request.event)

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.debug("client connected sid=%s", request.sid)
        service.send_rooms(request.sid)

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        logger.debug("client disconnected sid=%s", request.sid)
        service.disconnect(request.sid)

    @socketio.on(events.ROOMS_REQUEST)
    def rooms_request(data=None):
        service.send_rooms(request.sid)

    @socketio.on(events.ROOMS_SUBSCRIBE)
    def rooms_subscribe(data=None):
        service.subscribe_rooms(request.sid)

    @socketio.on(events.PLAYER_JOIN)
    def player_join(data=None):
        payload = _payload(data)
        service.join(request.sid, payload.get("roomId"), payload.get("name"))

    @socketio.on(events.PLAYER_LEAVE)
    def player_leave(data=None):
        payload = _payload(data)
        service.leave(request.sid, payload.get("roomId"))

    @socketio.on(events.CHAT_MESSAGE)
    def chat_message(data=None):
        payload = _payload(data)
        service.chat(request.sid, payload.get("roomId"), payload.get("message"))

    @socketio.on(events.GUESS_SUBMIT)
    def guess_submit(data=None):
        payload = _payload(data)
        service.guess(request.sid, payload.get("roomId"), payload.get("guess"))

    @socketio.on(events.DRAW_STROKE)
    def draw_stroke(data=None):
        payload = _payload(data)
        service.stroke(request.sid, payload.get("roomId"), payload.get("points"))

    @socketio.on(events.ROUND_CLEAR)
    def round_clear(data=None):
        payload = _payload(data)
        service.clear_canvas(request.sid, payload.get("roomId"))

    @socketio.on(events.ROUND_START)
    def round_start(data=None):
        payload = _payload(data)
        service.request_start(request.sid, payload.get("roomId"))

    @socketio.on(events.ROUND_SKIP)
    def round_skip(data=None):
        payload = _payload(data)
        service.skip(request.sid, payload.get("roomId"))

    @socketio.on(events.ROOM_CLOSE)
    def room_close(data=None):
        payload = _payload(data)
        service.close_room(request.sid, payload.get("roomId"))

    @socketio.on(events.GAME_RESTART)
    def game_restart(data=None):
        payload = _payload(data)
        service.restart(request.sid, payload.get("roomId"))
