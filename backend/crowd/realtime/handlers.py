from __future__ import annotations

import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..game.errors import GameError
from ..game.orchestrator import GameOrchestrator

logger = logging.getLogger(__name__)


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def register_socketio_handlers(socketio: SocketIO, orchestrator: GameOrchestrator) -> None:
    def _run(action: Callable[[], Any], error_event: str = "error") -> dict:
        try:
            action()
        except GameError as e:
            logger.info(f"[rejected] sid={request.sid} {error_event}: {e.message}")
            emit(error_event, {"message": e.message}, to=request.sid)
            return {"ok": False, "error": e.message}
        return {"ok": True}

    @socketio.on("join_as_display")
    def join_display(data=None):
        return _run(lambda: orchestrator.join_display(request.sid))

    @socketio.on("join_as_host_phone")
    def join_host_phone(data):
        payload = data or {}
        player_id = _text(payload, "playerId")
        return _run(lambda: orchestrator.join_host_phone(request.sid, player_id))

    @socketio.on("join_room")
    def join_room(data):
        payload = data or {}
        name = _text(payload, "name")
        room_code = _text(payload, "roomCode").upper()
        return _run(lambda: orchestrator.join_player(request.sid, name, room_code), error_event="join_error")

    @socketio.on("start_game")
    def start_game(data=None):
        return _run(lambda: orchestrator.start_game(request.sid))

    @socketio.on("display_start_game")
    def display_start_game(data=None):
        return _run(lambda: orchestrator.display_start_game(request.sid))

    @socketio.on("request_themes")
    def request_themes(data=None):
        return _run(lambda: orchestrator.request_themes(request.sid))

    @socketio.on("host_select_theme")
    def select_theme(data):
        payload = data or {}
        theme = _text(payload, "theme")
        return _run(lambda: orchestrator.select_theme(request.sid, theme))

    @socketio.on("submit_answer")
    def submit_answer(data):
        payload = data or {}
        answer = _text(payload, "answer")
        return _run(lambda: orchestrator.submit_answer(request.sid, answer))

    @socketio.on("request_matching_data")
    def request_matching_data(data=None):
        return _run(lambda: orchestrator.request_matching_data(request.sid))

    @socketio.on("host_submit_matches")
    def submit_matches(data):
        payload = data or {}
        matches = payload.get("matches")
        return _run(lambda: orchestrator.submit_matches(request.sid, matches))

    @socketio.on("next_round")
    def next_round(data=None):
        return _run(lambda: orchestrator.next_round(request.sid))

    @socketio.on("play_again")
    def play_again(data=None):
        return _run(lambda: orchestrator.play_again(request.sid))

    @socketio.on("reconnect_player")
    def reconnect_player(data):
        payload = data or {}
        player_id = _text(payload, "playerId")
        token = _text(payload, "sessionToken")
        ok = orchestrator.reconnect_player(request.sid, player_id, token)
        return {"ok": ok}

    @socketio.on("get_game_state")
    def get_game_state(data=None):
        emit("game_state", orchestrator.get_game_state(), to=request.sid)
        return {"ok": True}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        orchestrator.disconnect(request.sid)
