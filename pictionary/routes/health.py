from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    return jsonify({"ok": True})


@bp.get("/status")
def status():
    service = current_app.extensions["pictionary"]
    return jsonify(service.status())
