from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("state", __name__)


@bp.get("/game-state")
def game_state():
    return jsonify(current_app.extensions["crowd"].get_game_state())
