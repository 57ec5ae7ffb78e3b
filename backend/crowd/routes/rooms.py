from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from ..utils.ip import get_client_ip, get_local_ip

logger = logging.getLogger(__name__)

bp = Blueprint("rooms", __name__)


def _join_url(room_code: str) -> str:
    host = current_app.config.get("PUBLIC_HOST") or ""
    if not host:
        port = request.host.rsplit(":", 1)[1] if ":" in request.host else ""
        host = f"{get_local_ip()}:{port}" if port else get_local_ip()
    return f"{request.scheme}://{host}/?room={room_code}"


@bp.get("/room")
def current_room():
    rooms = current_app.extensions["crowd"].rooms
    code = rooms.get_current_room_code()
    if not code:
        return jsonify({"error": "room_not_found"}), 404

    logger.debug(f"[room-info] requested by {get_client_ip(request)}")
    return jsonify({"roomCode": code, "joinUrl": _join_url(code), "valid": rooms.validate_room(code)})


@bp.get("/room/<code>/validate")
def validate_room(code: str):
    rooms = current_app.extensions["crowd"].rooms
    info = rooms.get_room_info(code)
    return jsonify(
        {
            "roomCode": code.strip().upper(),
            "valid": rooms.validate_room(code),
            "status": info.status if info else None,
        }
    )
