"""Game history recording.

Recording is best effort: the orchestrator calls these through a guard that
logs and swallows failures, so nothing here can stall a live game.
"""

from __future__ import annotations

import time
import uuid
from threading import RLock
from typing import Any, Protocol

from .errors import PersistenceError


class GameRecorder(Protocol):
    def create_game(self, room_code: str) -> str | None: ...

    def update_game(self, game_id: str, **updates: Any) -> None: ...

    def add_player(self, game_id: str, player: dict) -> None: ...

    def create_round(self, game_id: str, round_number: int, host_id: str) -> str | None: ...

    def update_round(self, round_id: str, **updates: Any) -> None: ...

    def save_answers(self, round_id: str, answers: list[dict]) -> None: ...

    def save_matches(self, round_id: str, matches: list[dict]) -> None: ...

    def update_scores(self, game_id: str, scores: dict[str, int]) -> None: ...

    def complete_round(self, round_id: str) -> None: ...

    def save_history(self, game_id: str, winner: dict, player_count: int, rounds_played: int) -> None: ...

    def cleanup(self, max_age_days: float = 7) -> int: ...


class NullRecorder:
    def create_game(self, room_code):
        return None

    def update_game(self, game_id, **updates):
        pass

    def add_player(self, game_id, player):
        pass

    def create_round(self, game_id, round_number, host_id):
        return None

    def update_round(self, round_id, **updates):
        pass

    def save_answers(self, round_id, answers):
        pass

    def save_matches(self, round_id, matches):
        pass

    def update_scores(self, game_id, scores):
        pass

    def complete_round(self, round_id):
        pass

    def save_history(self, game_id, winner, player_count, rounds_played):
        pass

    def cleanup(self, max_age_days=7):
        return 0


class MemoryRecorder:
    """Keeps game records in process memory."""

    def __init__(self, clock=time.time) -> None:
        self._lock = RLock()
        self._clock = clock
        self.games: dict[str, dict] = {}
        self.rounds: dict[str, dict] = {}
        self.history: list[dict] = []

    def create_game(self, room_code: str) -> str:
        with self._lock:
            game_id = uuid.uuid4().hex
            self.games[game_id] = {
                "id": game_id,
                "room_code": room_code,
                "status": "lobby",
                "created_at": self._clock(),
                "players": {},
                "round_ids": [],
            }
            return game_id

    def update_game(self, game_id: str, **updates: Any) -> None:
        with self._lock:
            game = self.games.get(game_id)
            if game is None:
                return
            game.update(updates)
            if updates.get("status") == "completed":
                game["completed_at"] = self._clock()

    def add_player(self, game_id: str, player: dict) -> None:
        with self._lock:
            game = self.games.get(game_id)
            if game is not None:
                game["players"][player["id"]] = dict(player)

    def create_round(self, game_id: str, round_number: int, host_id: str) -> str | None:
        with self._lock:
            game = self.games.get(game_id)
            if game is None:
                raise PersistenceError(f"Unknown game {game_id}")
            round_id = uuid.uuid4().hex
            self.rounds[round_id] = {
                "id": round_id,
                "game_id": game_id,
                "round_number": round_number,
                "host_id": host_id,
                "phase": "theme_select",
                "theme": None,
                "answers": [],
                "matches": [],
                "started_at": self._clock(),
            }
            game["round_ids"].append(round_id)
            return round_id

    def update_round(self, round_id: str, **updates: Any) -> None:
        with self._lock:
            rnd = self.rounds.get(round_id)
            if rnd is not None:
                rnd.update(updates)

    def save_answers(self, round_id: str, answers: list[dict]) -> None:
        with self._lock:
            rnd = self.rounds.get(round_id)
            if rnd is not None:
                rnd["answers"] = [dict(a) for a in answers]

    def save_matches(self, round_id: str, matches: list[dict]) -> None:
        with self._lock:
            rnd = self.rounds.get(round_id)
            if rnd is not None:
                rnd["matches"] = [dict(m) for m in matches]

    def update_scores(self, game_id: str, scores: dict[str, int]) -> None:
        with self._lock:
            game = self.games.get(game_id)
            if game is None:
                return
            for player_id, score in scores.items():
                if player_id in game["players"]:
                    game["players"][player_id]["score"] = score

    def complete_round(self, round_id: str) -> None:
        with self._lock:
            rnd = self.rounds.get(round_id)
            if rnd is not None:
                rnd["phase"] = "complete"
                rnd["completed_at"] = self._clock()

    def save_history(self, game_id: str, winner: dict, player_count: int, rounds_played: int) -> None:
        with self._lock:
            self.history.append(
                {
                    "game_id": game_id,
                    "winner_id": winner.get("id"),
                    "winner_name": winner.get("name"),
                    "winner_score": winner.get("score"),
                    "player_count": player_count,
                    "rounds_played": rounds_played,
                    "completed_at": self._clock(),
                }
            )

    def cleanup(self, max_age_days: float = 7) -> int:
        """Drop games (and their rounds) created more than ``max_age_days`` ago."""
        with self._lock:
            cutoff = self._clock() - max_age_days * 86400
            stale = [gid for gid, g in self.games.items() if g["created_at"] < cutoff]
            for gid in stale:
                for rid in self.games[gid]["round_ids"]:
                    self.rounds.pop(rid, None)
                del self.games[gid]
            return len(stale)
