from __future__ import annotations

from threading import RLock


class SessionTable:
    """Maps transport connection ids to players (or to the display role)."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._sid_to_player: dict[str, str] = {}
        self._player_to_sid: dict[str, str] = {}
        self._displays: set[str] = set()

    def bind(self, sid: str, player_id: str) -> None:
        with self._lock:
            old_sid = self._player_to_sid.get(player_id)
            if old_sid and old_sid != sid:
                self._sid_to_player.pop(old_sid, None)
            self._sid_to_player[sid] = player_id
            self._player_to_sid[player_id] = sid

    def bind_display(self, sid: str) -> None:
        with self._lock:
            self._displays.add(sid)

    def player_id(self, sid: str) -> str | None:
        with self._lock:
            return self._sid_to_player.get(sid)

    def sid_for(self, player_id: str) -> str | None:
        with self._lock:
            return self._player_to_sid.get(player_id)

    def is_display(self, sid: str) -> bool:
        with self._lock:
            return sid in self._displays

    def unbind(self, sid: str) -> str | None:
        """Drop a connection; returns the player id it belonged to, if any."""
        with self._lock:
            self._displays.discard(sid)
            player_id = self._sid_to_player.pop(sid, None)
            if player_id and self._player_to_sid.get(player_id) == sid:
                del self._player_to_sid[player_id]
            return player_id
