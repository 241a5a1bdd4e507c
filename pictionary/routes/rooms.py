from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("rooms", __name__)


@bp.get("/rooms")
def list_rooms():
    service = current_app.extensions["pictionary"]
    return jsonify(service.rooms_payload())


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    service = current_app.extensions["pictionary"]
    room = service.registry.get(room_id)
    if not room:
        return jsonify({"error": "room_not_found"}), 404
    with room.lock:
        return jsonify(service.room_state(room))
