from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal


Phase = Literal[
    "lobby",
    "theme_select",
    "answering",
    "matching",
    "reveal",
    "round_end",
    "sudden_death",
    "game_over",
]

RoomStatus = Literal["active", "completed", "closed"]

NO_ANSWER_TEXT = "[No Answer]"


@dataclass
class Player:
    id: str
    name: str
    join_order: int
    session_token: str = ""
    score: int = 0
    is_host: bool = False
    is_connected: bool = True
    is_tied_player: bool = False

    def ref(self) -> dict:
        return {"id": self.id, "name": self.name}

    def public(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "score": self.score,
            "isHost": self.is_host,
            "isConnected": self.is_connected,
        }

    def private(self) -> dict:
        # Only ever sent to the owning connection.
        payload = self.public()
        payload["joinOrder"] = self.join_order
        payload["sessionToken"] = self.session_token
        return payload


@dataclass
class Answer:
    player_id: str
    text: str
    timestamp: float
    penalty: bool = False


@dataclass
class ShuffledAnswer:
    index: int
    text: str
    player_id: str

    def client_view(self) -> dict:
        return {"index": self.index, "answer": self.text}


@dataclass
class Match:
    answer_index: int
    player_id: str

    def to_dict(self) -> dict:
        return {"answerIndex": self.answer_index, "playerId": self.player_id}


@dataclass
class RoundResult:
    guessed_player: dict
    actual_player: dict
    answer: str
    is_correct: bool

    def to_dict(self) -> dict:
        return {
            "guessedPlayer": self.guessed_player,
            "actualPlayer": self.actual_player,
            "answer": self.answer,
            "isCorrect": self.is_correct,
        }


@dataclass
class HostScore:
    score: int
    correct_matches: int
    total_matches: int
    is_perfect: bool

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "correctMatches": self.correct_matches,
            "totalMatches": self.total_matches,
            "isPerfect": self.is_perfect,
        }


@dataclass
class Room:
    code: str
    created_at: float
    status: RoomStatus = "active"
    closed_at: float | None = None


@dataclass
class GameState:
    room_code: str | None = None
    phase: Phase = "lobby"
    players: list[Player] = field(default_factory=list)
    current_round: int = 0
    total_rounds: int = 0
    current_host_index: int = 0
    host_rotation_count: int = 0
    themes: list[str] = field(default_factory=list)
    selected_theme: str | None = None
    answers: list[Answer] = field(default_factory=list)
    shuffled_answers: list[ShuffledAnswer] = field(default_factory=list)
    matches: list[Match] = field(default_factory=list)
    round_results: list[RoundResult] = field(default_factory=list)
    host_score: HostScore | None = None
    reveal_index: int = 0
    # Sudden death
    is_sudden_death: bool = False
    sudden_death_round: int = 0
    tied_player_ids: list[str] = field(default_factory=list)
    tied_player_host_index: int = 0

    def find_player(self, player_id: str | None) -> Player | None:
        if not player_id:
            return None
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def current_host(self) -> Player | None:
        if not self.players:
            return None
        return self.players[self.current_host_index % len(self.players)]

    def non_host_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_host]

    def answer_for(self, player_id: str) -> Answer | None:
        for a in self.answers:
            if a.player_id == player_id:
                return a
        return None

    def tied_players(self) -> list[Player]:
        return [p for p in self.players if p.is_tied_player]


@dataclass(frozen=True)
class GameSettings:
    min_players: int = 3
    max_players: int = 10
    rotations: int = 1
    theme_count: int = 3
    answer_max_length: int = 100
    name_max_length: int = 20
    no_submission_penalty: int = -1
    perfect_round_bonus: int = 3
    max_sudden_death_rounds: int = 5
    theme_selection_sec: float = 30
    answering_sec: float = 60
    matching_sec: float = 90
    round_end_sec: float = 10
    reveal_step_sec: float = 3
    reveal_preroll_sec: float = 5
    sudden_death_intro_sec: float = 5
    host_grace_period_sec: float = 15

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "GameSettings":
        def pick(key: str, default: Any) -> Any:
            value = config.get(key)
            return default if value is None else value

        defaults = cls()
        return cls(
            min_players=int(pick("MIN_PLAYERS", defaults.min_players)),
            max_players=int(pick("MAX_PLAYERS", defaults.max_players)),
            rotations=int(pick("ROTATIONS", defaults.rotations)),
            theme_count=int(pick("THEME_COUNT", defaults.theme_count)),
            answer_max_length=int(pick("ANSWER_MAX_LENGTH", defaults.answer_max_length)),
            name_max_length=int(pick("NAME_MAX_LENGTH", defaults.name_max_length)),
            no_submission_penalty=int(pick("NO_SUBMISSION_PENALTY", defaults.no_submission_penalty)),
            perfect_round_bonus=int(pick("PERFECT_ROUND_BONUS", defaults.perfect_round_bonus)),
            max_sudden_death_rounds=int(pick("MAX_SUDDEN_DEATH_ROUNDS", defaults.max_sudden_death_rounds)),
            theme_selection_sec=float(pick("THEME_SELECTION_SEC", defaults.theme_selection_sec)),
            answering_sec=float(pick("ANSWERING_SEC", defaults.answering_sec)),
            matching_sec=float(pick("MATCHING_SEC", defaults.matching_sec)),
            round_end_sec=float(pick("ROUND_END_SEC", defaults.round_end_sec)),
            reveal_step_sec=float(pick("REVEAL_STEP_SEC", defaults.reveal_step_sec)),
            reveal_preroll_sec=float(pick("REVEAL_PREROLL_SEC", defaults.reveal_preroll_sec)),
            sudden_death_intro_sec=float(pick("SUDDEN_DEATH_INTRO_SEC", defaults.sudden_death_intro_sec)),
            host_grace_period_sec=float(pick("HOST_GRACE_PERIOD_SEC", defaults.host_grace_period_sec)),
        )
