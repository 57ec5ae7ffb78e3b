from __future__ import annotations

import logging
import random
import time
from threading import RLock

from .errors import CapacityError
from .models import Room

logger = logging.getLogger(__name__)

# I and O are left out so codes survive being read off a TV across the room.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 4


class RoomRegistry:
    """Tracks the single active room plus recently used codes."""

    def __init__(
        self,
        max_attempts: int = 50,
        retention_hours: float = 24,
        rng: random.Random | None = None,
        clock=time.time,
    ) -> None:
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._current: Room | None = None
        self._max_attempts = max_attempts
        self._retention_sec = retention_hours * 3600
        self._rng = rng or random.Random()
        self._clock = clock

    def _generate_code(self) -> str:
        return "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))

    def create_room(self) -> str:
        with self._lock:
            for _ in range(self._max_attempts):
                code = self._generate_code()
                if code not in self._rooms:
                    break
            else:
                raise CapacityError("Cannot allocate room code")

            room = Room(code=code, created_at=self._clock())
            self._rooms[code] = room
            self._current = room
            logger.info(f"[room-create] code={code}")
            return code

    def get_current_room_code(self) -> str | None:
        with self._lock:
            return self._current.code if self._current else None

    def validate_room(self, code) -> bool:
        if not isinstance(code, str):
            return False
        normalized = code.strip().upper()
        if not normalized:
            return False

        with self._lock:
            room = self._current
            return room is not None and room.code == normalized and room.status == "active"

    def get_room_info(self, code: str) -> Room | None:
        with self._lock:
            return self._rooms.get((code or "").strip().upper())

    def complete_room(self, code: str) -> bool:
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return False
            room.status = "completed"
            logger.info(f"[room-complete] code={code}")
            return True

    def reopen_room(self, code: str) -> bool:
        """Put a completed current room back into play. Closed rooms stay closed."""
        with self._lock:
            room = self._rooms.get(code)
            if room is None or room is not self._current or room.status != "completed":
                return False
            room.status = "active"
            logger.info(f"[room-reopen] code={code}")
            return True

    def close_room(self, code: str) -> bool:
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return False
            room.status = "closed"
            room.closed_at = self._clock()
            if self._current is room:
                self._current = None
            logger.info(f"[room-close] code={code}")
            return True

    def purge_stale_rooms(self, now: float | None = None) -> int:
        """Forget rooms older than the retention window. Returns how many."""
        with self._lock:
            cutoff = (now if now is not None else self._clock()) - self._retention_sec
            stale = [
                code
                for code, room in self._rooms.items()
                if room.created_at < cutoff and room is not self._current
            ]
            for code in stale:
                del self._rooms[code]
            if stale:
                logger.info(f"[room-purge] removed={len(stale)}")
            return len(stale)
