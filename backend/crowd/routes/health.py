from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    orchestrator = current_app.extensions["crowd"]
    return jsonify({"status": "ok", "roomCode": orchestrator.rooms.get_current_room_code()})
