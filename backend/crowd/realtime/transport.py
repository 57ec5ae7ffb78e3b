from __future__ import annotations

from typing import Protocol

from flask_socketio import SocketIO

DISPLAY_CHANNEL = "display"


class Transport(Protocol):
    def emit(self, event: str, payload: dict, to: str | None = None) -> None: ...

    def join(self, sid: str, channel: str) -> None: ...


class SocketIOTransport:
    """Relays orchestrator events over Flask-SocketIO. Never touches game state."""

    def __init__(self, socketio: SocketIO, namespace: str = "/") -> None:
        self._socketio = socketio
        self._namespace = namespace

    def emit(self, event: str, payload: dict, to: str | None = None) -> None:
        self._socketio.emit(event, payload, to=to, namespace=self._namespace)

    def join(self, sid: str, channel: str) -> None:
        self._socketio.server.enter_room(sid, channel, namespace=self._namespace)
