"""Game phase state machine.

One orchestrator owns one room's ``GameState``. Every public method runs under
a single re-entrant lock, and timer and theme-provider callbacks take the same
lock, so all mutations are serialized.

Phases::

    lobby -> theme_select -> answering -> matching -> reveal -> round_end
          -> theme_select | sudden_death | game_over
"""

from __future__ import annotations

import logging
import random
import secrets
import time
import uuid
from threading import RLock
from typing import Any

from ..realtime.transport import DISPLAY_CHANNEL, Transport
from .errors import CapacityError, ProviderError, ValidationError
from .models import (
    NO_ANSWER_TEXT,
    Answer,
    GameSettings,
    GameState,
    Match,
    Phase,
    Player,
    ShuffledAnswer,
)
from .recorder import GameRecorder, NullRecorder
from .rooms import RoomRegistry
from .scoring import (
    build_scoreboard,
    calculate_host_score,
    calculate_round_results,
    find_leaders,
)
from .sessions import SessionTable
from .themes import ThemeProvider
from .timers import PhaseTimers, Scheduler

logger = logging.getLogger(__name__)

HOST_PHONE_CHANNEL = "host_phone"

# Phases in which a missing host stalls the round.
HOST_DRIVEN_PHASES = ("theme_select", "matching")


class GameOrchestrator:
    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        rooms: RoomRegistry,
        themes: ThemeProvider,
        settings: GameSettings | None = None,
        recorder: GameRecorder | None = None,
        rng: random.Random | None = None,
        clock=time.time,
    ) -> None:
        self._lock = RLock()
        self._transport = transport
        self._scheduler = scheduler
        self._rooms = rooms
        self._themes = themes
        self.settings = settings or GameSettings()
        self._recorder = recorder or NullRecorder()
        self._rng = rng or random.Random()
        self._clock = clock

        self.state = GameState(room_code=rooms.get_current_room_code())
        self.sessions = SessionTable()
        self.timers = PhaseTimers(scheduler, on_tick=self._broadcast_timer, lock=self._lock)

        self._join_counter = 0
        # Bumped on every theme_select so late provider results can be recognised.
        self._round_token = 0
        self._game_id: str | None = None
        self._round_id: str | None = None

    # ------------------------------------------------------------------ room

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    def open_room(self) -> str:
        with self._lock:
            self._rooms.purge_stale_rooms()
            self._record("cleanup")
            code = self._rooms.create_room()
            self.state = GameState(room_code=code)
            self._join_counter = 0
            self._game_id = self._record("create_game", code)
            return code

    def close(self) -> None:
        with self._lock:
            self.timers.clear_all()
            if self.state.room_code:
                self._rooms.close_room(self.state.room_code)
            logger.info(f"[room-shutdown] code={self.state.room_code}")

    # ------------------------------------------------------------- helpers

    def _broadcast(self, event: str, payload: dict) -> None:
        self._transport.emit(event, payload, to=self.state.room_code)

    def _send(self, sid: str, event: str, payload: dict) -> None:
        self._transport.emit(event, payload, to=sid)

    def _send_to_player(self, player_id: str, event: str, payload: dict) -> bool:
        sid = self.sessions.sid_for(player_id)
        if not sid:
            return False
        self._send(sid, event, payload)
        return True

    def _update_display(self) -> None:
        self._transport.emit("game_state", self.get_game_state(), to=DISPLAY_CHANNEL)

    def _broadcast_timer(self, name: str, remaining: int, total: int) -> None:
        self._broadcast("timer_update", {"phase": name, "remaining": remaining, "totalSeconds": total})

    def _record(self, action: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._recorder, action)(*args, **kwargs)
        except Exception:
            logger.warning(f"[record-failed] action={action}", exc_info=True)
            return None

    def _record_game(self, action: str, *args: Any, **kwargs: Any) -> None:
        if self._game_id:
            self._record(action, self._game_id, *args, **kwargs)

    def _record_round(self, action: str, *args: Any, **kwargs: Any) -> None:
        if self._round_id:
            self._record(action, self._round_id, *args, **kwargs)

    def _record_scores(self) -> None:
        self._record_game("update_scores", {p.id: p.score for p in self.state.players})

    def _require_player(self, sid: str) -> Player:
        player = self.state.find_player(self.sessions.player_id(sid))
        if player is None:
            raise ValidationError("Player not found")
        return player

    def _require_host(self, sid: str, message: str) -> Player:
        player = self.state.find_player(self.sessions.player_id(sid))
        if player is None or not player.is_host:
            raise ValidationError(message)
        return player

    def _require_phase(self, phase: Phase, message: str) -> None:
        if self.state.phase != phase:
            raise ValidationError(message)

    def _enter_phase(self, phase: Phase) -> None:
        # No timer outlives the phase that started it.
        self.timers.clear_all()
        logger.info(f"[phase] {self.state.phase} -> {phase} round={self.state.current_round}")
        self.state.phase = phase

    def _roster(self) -> list[dict]:
        return [p.public() for p in self.state.players]

    def _matching_payload(self) -> dict:
        return {
            "answers": [s.client_view() for s in self.state.shuffled_answers],
            "players": [p.ref() for p in self.state.non_host_players()],
        }

    def _fallback_themes(self) -> list[str]:
        return list(self._themes.get_fallback_themes())[: self.settings.theme_count]

    # ------------------------------------------------------------ snapshot

    def get_game_state(self) -> dict:
        with self._lock:
            s = self.state
            host = s.current_host() if s.phase not in ("lobby", "game_over") else None
            submitted = {a.player_id for a in s.answers}
            return {
                "roomCode": s.room_code,
                "phase": s.phase,
                "currentRound": s.current_round,
                "totalRounds": s.total_rounds,
                "currentHost": host.ref() if host else None,
                "hostRotationCount": s.host_rotation_count,
                "players": [dict(p.public(), hasSubmitted=p.id in submitted) for p in s.players],
                "themes": list(s.themes),
                "selectedTheme": s.selected_theme,
                "shuffledAnswers": [a.client_view() for a in s.shuffled_answers],
                "matchingPlayers": [p.ref() for p in s.non_host_players()],
                "revealIndex": s.reveal_index,
                "isSuddenDeath": s.is_sudden_death,
                "suddenDeathRound": s.sudden_death_round,
                "tiedPlayerIds": list(s.tied_player_ids),
                "canStart": len(s.players) >= self.settings.min_players,
            }

    # ---------------------------------------------------------------- joins

    def join_display(self, sid: str) -> None:
        with self._lock:
            self.sessions.bind_display(sid)
            self._transport.join(sid, DISPLAY_CHANNEL)
            if self.state.room_code:
                self._transport.join(sid, self.state.room_code)
            self._send(sid, "game_state", self.get_game_state())

    def join_host_phone(self, sid: str, player_id: str) -> None:
        with self._lock:
            player = self.state.find_player(player_id)
            if player is None or not player.is_host:
                raise ValidationError("You are not the current host")
            self._transport.join(sid, HOST_PHONE_CHANNEL)
            self._send(sid, "host_confirmed", {"player": player.public(), "gameState": self.get_game_state()})

    def join_player(self, sid: str, name: str, room_code: str) -> Player:
        with self._lock:
            s = self.state
            if not self._rooms.validate_room(room_code):
                raise ValidationError("Invalid room code")
            if s.phase != "lobby":
                raise ValidationError("Game already in progress")
            if len(s.players) >= self.settings.max_players:
                raise CapacityError("Room is full")
            if s.find_player(self.sessions.player_id(sid)) is not None:
                raise ValidationError("Already joined")

            limit = self.settings.name_max_length
            base = str(name or "").strip()[:limit]
            if not base:
                raise ValidationError("Name is required")

            taken = {p.name.lower() for p in s.players}
            player_name = base
            counter = 1
            while player_name.lower() in taken:
                counter += 1
                suffix = f"({counter})"
                player_name = base[: limit - len(suffix)].rstrip() + suffix

            player = Player(
                id=uuid.uuid4().hex,
                name=player_name,
                join_order=self._join_counter,
                session_token=uuid.uuid4().hex,
                is_host=not s.players,
            )
            self._join_counter += 1
            s.players.append(player)

            self.sessions.bind(sid, player.id)
            self._transport.join(sid, s.room_code)
            self._record_game("add_player", {"id": player.id, "name": player.name, "score": 0, "join_order": player.join_order})
            logger.info(f"[join] room={s.room_code} player={player.name} count={len(s.players)}")

            self._send(sid, "room_joined", {"player": player.private(), "players": self._roster(), "roomCode": s.room_code})
            self._broadcast(
                "player_joined",
                {
                    "player": player.public(),
                    "players": self._roster(),
                    "canStart": len(s.players) >= self.settings.min_players,
                },
            )
            self._update_display()
            return player

    # ---------------------------------------------------------------- start

    def start_game(self, sid: str) -> None:
        with self._lock:
            self._require_host(sid, "Only the host can start the game")
            self._begin_game()

    def display_start_game(self, sid: str) -> None:
        with self._lock:
            if not self.sessions.is_display(sid):
                raise ValidationError("Only the main display can start the game")
            if self.state.room_code:
                self._transport.join(sid, self.state.room_code)
            self._begin_game()

    def _begin_game(self) -> None:
        s = self.state
        self._require_phase("lobby", "Game already started")
        if len(s.players) < self.settings.min_players:
            raise CapacityError(f"Need at least {self.settings.min_players} players to start")

        s.total_rounds = len(s.players) * self.settings.rotations
        s.current_round = 1
        s.current_host_index = 0
        s.host_rotation_count = 0
        self._record_game("update_game", status="in_progress", total_rounds=s.total_rounds, current_round=1)
        logger.info(f"[start] room={s.room_code} players={len(s.players)} rounds={s.total_rounds}")

        self._broadcast("game_started", {"totalRounds": s.total_rounds, "currentRound": s.current_round})
        self._start_theme_selection()

    # --------------------------------------------------------- theme select

    def _start_theme_selection(self) -> None:
        s = self.state
        self._enter_phase("theme_select")
        s.themes = []
        s.selected_theme = None
        s.answers = []
        s.shuffled_answers = []
        s.matches = []
        s.round_results = []
        s.host_score = None
        s.reveal_index = 0
        self._round_token += 1

        host = s.current_host()
        for p in s.players:
            p.is_host = p.id == host.id

        self._round_id = None
        if self._game_id:
            self._round_id = self._record("create_round", self._game_id, s.current_round, host.id)
        self._record_game("update_game", current_round=s.current_round, current_host_id=host.id)

        self._broadcast(
            "phase_changed",
            {
                "phase": "theme_select",
                "currentHost": host.ref(),
                "currentRound": s.current_round,
                "totalRounds": s.total_rounds,
                "isSuddenDeath": s.is_sudden_death,
                "suddenDeathRound": s.sudden_death_round,
            },
        )
        self._update_display()

        self.timers.start("themeSelection", self.settings.theme_selection_sec, self._on_theme_timeout)
        self._arm_host_grace_if_absent()
        self._scheduler.spawn(self._fetch_themes, self._round_token)

    def _generate_themes(self) -> list[str]:
        try:
            return [t for t in self._themes.generate_themes() if t]
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Theme provider failed: {e}") from e

    def _fetch_themes(self, token: int) -> None:
        # Runs outside the lock; the phase timer keeps running meanwhile.
        try:
            themes = self._generate_themes()
        except ProviderError as e:
            logger.warning(f"[themes] {e.message}, using fallback", exc_info=True)
            themes = []

        with self._lock:
            s = self.state
            if token != self._round_token or s.phase != "theme_select" or s.selected_theme:
                logger.info(f"[themes] discarding late provider result token={token}")
                return
            s.themes = themes[: self.settings.theme_count] or self._fallback_themes()
            host = s.current_host()
            self._send_to_player(host.id, "themes_generated", {"themes": list(s.themes)})
            self._update_display()

    def _on_theme_timeout(self) -> None:
        s = self.state
        if s.phase != "theme_select":
            return
        if not s.themes:
            s.themes = self._fallback_themes()
        logger.info(f"[timeout] theme auto-selected round={s.current_round}")
        self._select_theme(s.themes[0])

    def request_themes(self, sid: str) -> None:
        with self._lock:
            if self.state.themes:
                self._send(sid, "themes_generated", {"themes": list(self.state.themes)})

    def select_theme(self, sid: str, theme: str) -> None:
        with self._lock:
            self._require_host(sid, "Only the host can select a theme")
            self._require_phase("theme_select", "Not in theme selection phase")
            chosen = str(theme or "").strip()[: self.settings.answer_max_length]
            if not chosen:
                raise ValidationError("Theme is required")
            self._select_theme(chosen)

    def _select_theme(self, theme: str) -> None:
        s = self.state
        self.timers.clear("themeSelection")
        s.selected_theme = theme
        self._record_round("update_round", theme=theme)
        self._broadcast("theme_selected", {"theme": theme, "hostName": s.current_host().name})
        self._start_answering()

    # ------------------------------------------------------------ answering

    def _start_answering(self) -> None:
        s = self.state
        self._enter_phase("answering")
        s.answers = []
        self._record_round("update_round", phase="answering")

        self._broadcast(
            "phase_changed",
            {
                "phase": "answering",
                "theme": s.selected_theme,
                "timeLimit": self.settings.answering_sec,
                "currentHost": s.current_host().ref(),
            },
        )
        self._update_display()

        if not s.non_host_players():
            self._end_answering()
            return
        self.timers.start("answering", self.settings.answering_sec, self._end_answering)

    def submit_answer(self, sid: str, answer: str) -> None:
        with self._lock:
            s = self.state
            player = self._require_player(sid)
            self._require_phase("answering", "Not in answering phase")
            if player.is_host:
                raise ValidationError("Host does not submit an answer")
            if s.answer_for(player.id) is not None:
                raise ValidationError("Already submitted")

            text = str(answer or "").strip()[: self.settings.answer_max_length]
            if not text:
                raise ValidationError("Answer cannot be empty")

            s.answers.append(Answer(player_id=player.id, text=text, timestamp=self._clock()))
            self._send(sid, "answer_submitted", {"answer": text})

            required = len(s.non_host_players())
            self._broadcast("submission_progress", {"submitted": len(s.answers), "total": required})
            self._update_display()

            if len(s.answers) >= required:
                self.timers.clear("answering")
                self._end_answering()

    def _end_answering(self) -> None:
        s = self.state
        if s.phase != "answering":
            return

        penalty = self.settings.no_submission_penalty
        for player in s.non_host_players():
            if s.answer_for(player.id) is not None:
                continue
            player.score += penalty
            s.answers.append(
                Answer(player_id=player.id, text=NO_ANSWER_TEXT, timestamp=self._clock(), penalty=True)
            )
            self._send_to_player(player.id, "penalty_applied", {"penalty": penalty, "reason": "No answer submitted"})
            logger.info(f"[penalty] player={player.name} penalty={penalty}")

        self._record_round(
            "save_answers",
            [{"player_id": a.player_id, "answer": a.text, "penalty": a.penalty} for a in s.answers],
        )
        self._record_scores()
        self._start_matching()

    # ------------------------------------------------------------- matching

    def _start_matching(self) -> None:
        s = self.state
        self._enter_phase("matching")
        self._record_round("update_round", phase="matching")

        order = list(s.answers)
        self._rng.shuffle(order)
        s.shuffled_answers = [
            ShuffledAnswer(index=idx, text=a.text, player_id=a.player_id) for idx, a in enumerate(order)
        ]

        host = s.current_host()
        payload = self._matching_payload()
        self._broadcast(
            "phase_changed",
            {
                "phase": "matching",
                "answers": payload["answers"],
                "players": payload["players"],
                "timeLimit": self.settings.matching_sec,
                "currentHost": host.ref(),
            },
        )
        self._transport.emit("matching_phase_start", payload, to=DISPLAY_CHANNEL)
        if not self._send_to_player(host.id, "matching_phase_start", payload):
            logger.warning(f"[matching] host {host.name} has no connection, broadcasting payload")
            self._broadcast("matching_phase_start", payload)

        self.timers.start("matching", self.settings.matching_sec, self._auto_submit_matches)
        self._arm_host_grace_if_absent()

    def request_matching_data(self, sid: str) -> None:
        with self._lock:
            self._require_phase("matching", "Not in matching phase")
            self._require_host(sid, "Only the host can request matching data")
            self._send(sid, "matching_phase_start", self._matching_payload())

    def submit_matches(self, sid: str, matches: list) -> None:
        with self._lock:
            self._require_host(sid, "Only the host can submit matches")
            self._require_phase("matching", "Not in matching phase")
            if not isinstance(matches, list):
                raise ValidationError("Matches must be a list")

            answer_count = len(self.state.shuffled_answers)
            parsed: list[Match] = []
            seen: set[int] = set()
            for raw in matches:
                try:
                    index = int(raw.get("answerIndex"))
                    player_id = raw.get("playerId")
                except (AttributeError, TypeError, ValueError):
                    continue
                # One guess per answer position; the first one wins.
                if not 0 <= index < answer_count or index in seen:
                    continue
                if isinstance(player_id, str) and player_id:
                    seen.add(index)
                    parsed.append(Match(answer_index=index, player_id=player_id))

            if len(parsed) < len(matches):
                logger.info(f"[matches] dropped {len(matches) - len(parsed)} invalid or repeated guesses")
            # Incomplete guess sets are accepted; unmatched answers just score nothing.
            self.timers.clear("matching")
            self.state.matches = parsed
            self._record_round("save_matches", [m.to_dict() for m in parsed])
            self._start_reveal()

    def _auto_submit_matches(self) -> None:
        s = self.state
        if s.phase != "matching":
            return
        count = len(s.shuffled_answers)
        s.matches = (
            [Match(answer_index=idx % count, player_id=p.id) for idx, p in enumerate(s.non_host_players())]
            if count
            else []
        )
        logger.info(f"[timeout] matches auto-submitted round={s.current_round}")
        self._record_round("save_matches", [m.to_dict() for m in s.matches])
        self._start_reveal()

    # --------------------------------------------------------------- reveal

    def _start_reveal(self) -> None:
        s = self.state
        self._enter_phase("reveal")
        s.reveal_index = 0
        self._record_round("update_round", phase="reveal")

        s.round_results = calculate_round_results(s.matches, s.shuffled_answers, s.players)
        s.host_score = calculate_host_score(s.round_results, self.settings.perfect_round_bonus)
        host = s.current_host()
        host.score += s.host_score.score
        self._record_scores()
        logger.info(
            f"[score] host={host.name} correct={s.host_score.correct_matches}/{s.host_score.total_matches} "
            f"awarded={s.host_score.score}"
        )

        self._broadcast(
            "matches_submitted",
            {
                "matches": [
                    {"answer": r.answer, "guessedPlayer": r.guessed_player, "actualPlayer": r.actual_player}
                    for r in s.round_results
                ],
                "host": host.ref(),
            },
        )
        self._broadcast(
            "phase_changed",
            {"phase": "reveal", "totalReveals": len(s.round_results), "currentHost": host.ref()},
        )
        self.timers.delay("reveal", self.settings.reveal_preroll_sec, self._reveal_next)

    def _reveal_next(self) -> None:
        s = self.state
        if s.phase != "reveal":
            return
        if s.reveal_index >= len(s.round_results):
            self._start_round_end()
            return

        result = s.round_results[s.reveal_index]
        self._broadcast(
            "reveal_result",
            dict(result.to_dict(), index=s.reveal_index, total=len(s.round_results)),
        )
        s.reveal_index += 1
        self.timers.delay("reveal", self.settings.reveal_step_sec, self._reveal_next)

    # ------------------------------------------------------------ round end

    def _peek_next_host(self) -> Player | None:
        s = self.state
        if s.is_sudden_death:
            tied = s.tied_players()
            if not tied:
                return None
            return tied[(s.tied_player_host_index + 1) % len(tied)]
        if s.current_round >= s.total_rounds:
            return None
        return s.players[(s.current_host_index + 1) % len(s.players)]

    def _start_round_end(self) -> None:
        s = self.state
        self._enter_phase("round_end")
        self._record_round("complete_round")

        host = s.current_host()
        next_host = self._peek_next_host()
        self._broadcast(
            "round_end",
            {
                "scoreboard": build_scoreboard(s.players),
                "currentHost": host.ref(),
                "hostScore": s.host_score.to_dict() if s.host_score else None,
                "nextHost": next_host.ref() if next_host else None,
                "currentRound": s.current_round,
                "totalRounds": s.total_rounds,
            },
        )
        self._update_display()
        self.timers.start("roundEnd", self.settings.round_end_sec, self._advance_round)

    def next_round(self, sid: str) -> None:
        with self._lock:
            if self.sessions.player_id(sid) is None and not self.sessions.is_display(sid):
                raise ValidationError("Unknown connection")
            self._require_phase("round_end", "Not at the end of a round")
            self._advance_round()

    def _advance_round(self) -> None:
        s = self.state
        if s.phase != "round_end":
            return
        self.timers.clear("roundEnd")

        if s.is_sudden_death:
            self._advance_sudden_death()
            return

        if s.current_round >= s.total_rounds:
            self._check_game_end()
            return

        s.current_host_index = (s.current_host_index + 1) % len(s.players)
        if s.current_host_index == 0:
            s.host_rotation_count += 1
        s.current_round += 1
        self._start_theme_selection()

    def _check_game_end(self) -> None:
        leaders = find_leaders(self.state.players)
        if len(leaders) > 1 and not self.state.is_sudden_death:
            self._start_sudden_death(leaders)
            return
        self._finish_game(leaders[0])

    # --------------------------------------------------------- sudden death

    def _start_sudden_death(self, tied: list[Player]) -> None:
        s = self.state
        self._enter_phase("sudden_death")
        s.is_sudden_death = True
        s.sudden_death_round = 0
        s.tied_player_ids = [p.id for p in tied]
        for p in s.players:
            p.is_tied_player = p.id in s.tied_player_ids
        s.current_host_index = s.players.index(tied[0])
        s.tied_player_host_index = 0
        logger.info(f"[sudden-death] tied={[p.name for p in tied]} score={tied[0].score}")

        self._broadcast(
            "sudden_death_start",
            {
                "tiedPlayers": [{"id": p.id, "name": p.name, "score": p.score} for p in tied],
                "message": f"{len(tied)} players tied at {tied[0].score} points!",
                "round": s.sudden_death_round,
            },
        )
        self._update_display()
        self.timers.delay("suddenDeathIntro", self.settings.sudden_death_intro_sec, self._begin_sudden_death)

    def _begin_sudden_death(self) -> None:
        if self.state.phase != "sudden_death":
            return
        self.state.current_round += 1
        self._start_theme_selection()

    def _advance_sudden_death(self) -> None:
        s = self.state
        tied = s.tied_players()
        s.tied_player_host_index += 1

        if s.tied_player_host_index >= len(tied):
            # Every tied player has hosted once.
            s.sudden_death_round += 1
            s.tied_player_host_index = 0
            leaders = find_leaders(tied)
            if len(leaders) == 1:
                self._finish_game(leaders[0])
                return
            if s.sudden_death_round >= self.settings.max_sudden_death_rounds:
                winner = self._rng.choice(leaders)
                logger.warning(
                    f"[sudden-death] still tied after {s.sudden_death_round} rounds "
                    f"({[p.name for p in leaders]}), picking {winner.name} at random"
                )
                self._finish_game(winner, tie_broken_randomly=True)
                return
            logger.info(f"[sudden-death] round {s.sudden_death_round} still tied: {[p.name for p in leaders]}")

        s.current_host_index = s.players.index(tied[s.tied_player_host_index])
        s.current_round += 1
        self._start_theme_selection()

    # ------------------------------------------------------------ game over

    def _finish_game(self, winner: Player, tie_broken_randomly: bool = False) -> None:
        s = self.state
        self._enter_phase("game_over")
        scoreboard = build_scoreboard(s.players)
        winner_entry = {"id": winner.id, "name": winner.name, "score": winner.score}

        self._rooms.complete_room(s.room_code)
        self._record_game("update_game", status="completed")
        self._record_game("save_history", winner_entry, len(s.players), s.current_round)
        logger.info(f"[game-over] winner={winner.name} score={winner.score} sudden_death={s.is_sudden_death}")

        self._broadcast(
            "game_over",
            {
                "winner": winner_entry,
                "scoreboard": scoreboard,
                "wasSuddenDeath": s.is_sudden_death,
                "suddenDeathRounds": s.sudden_death_round,
                "tieBrokenRandomly": tie_broken_randomly,
            },
        )
        self._update_display()

    def play_again(self, sid: str) -> None:
        with self._lock:
            if self.sessions.player_id(sid) is None and not self.sessions.is_display(sid):
                raise ValidationError("Unknown connection")
            self._require_phase("game_over", "Game is not over")

            players = self.state.players
            for idx, p in enumerate(players):
                p.score = 0
                p.is_host = idx == 0
                p.is_tied_player = False

            self.timers.clear_all()
            self._rooms.reopen_room(self.state.room_code)
            self.state = GameState(room_code=self.state.room_code, players=players)
            self._round_id = None
            self._themes.reset_session()

            self._game_id = self._record("create_game", self.state.room_code)
            for p in players:
                self._record_game("add_player", {"id": p.id, "name": p.name, "score": 0, "join_order": p.join_order})
            logger.info(f"[reset] room={self.state.room_code} players={len(players)}")

            self._broadcast("game_reset", {"players": self._roster()})
            self._update_display()

    # ----------------------------------------------------- connection churn

    def _arm_host_grace(self, host: Player) -> None:
        phase = self.state.phase
        token = self._round_token
        logger.info(f"[grace] host={host.name} phase={phase} waiting {self.settings.host_grace_period_sec}s")
        self.timers.delay(
            "hostGrace",
            self.settings.host_grace_period_sec,
            lambda: self._on_host_grace_expired(host.id, phase, token),
        )

    def _arm_host_grace_if_absent(self) -> None:
        host = self.state.current_host()
        if host is not None and not host.is_connected:
            self._arm_host_grace(host)

    def _on_host_grace_expired(self, player_id: str, phase: Phase, token: int) -> None:
        s = self.state
        player = s.find_player(player_id)
        if player is None or player.is_connected:
            return
        if s.phase != phase or token != self._round_token:
            return

        logger.info(f"[grace] host={player.name} did not return, auto-advancing {phase}")
        if phase == "theme_select":
            self._on_theme_timeout()
        elif phase == "matching":
            self._auto_submit_matches()

    def disconnect(self, sid: str) -> None:
        with self._lock:
            player_id = self.sessions.unbind(sid)
            player = self.state.find_player(player_id)
            if player is None:
                return

            player.is_connected = False
            logger.info(f"[disconnect] player={player.name} phase={self.state.phase}")
            self._broadcast(
                "player_disconnected",
                {"playerId": player.id, "playerName": player.name, "mayReconnect": True},
            )
            if player.is_host and self.state.phase in HOST_DRIVEN_PHASES:
                self._arm_host_grace(player)
            self._update_display()

    def reconnect_player(self, sid: str, player_id: str, session_token: str) -> bool:
        with self._lock:
            s = self.state
            player = s.find_player(player_id)
            if (
                player is None
                or not isinstance(session_token, str)
                or not secrets.compare_digest(player.session_token, session_token)
            ):
                self._send(sid, "reconnect_failed", {"message": "Session expired"})
                return False

            if player.is_host and self.timers.is_active("hostGrace"):
                self.timers.clear("hostGrace")
                logger.info(f"[grace] host={player.name} reconnected in time")

            player.is_connected = True
            self.sessions.bind(sid, player.id)
            self._transport.join(sid, s.room_code)

            answer = s.answer_for(player.id)
            self._send(
                sid,
                "reconnected",
                {
                    "player": player.private(),
                    "gameState": self.get_game_state(),
                    "submittedAnswer": answer.text if answer else None,
                    "themes": list(s.themes) if player.is_host else None,
                },
            )
            if player.is_host and s.phase == "matching":
                self._send(sid, "matching_phase_start", self._matching_payload())

            self._broadcast("player_reconnected", {"playerId": player.id, "playerName": player.name})
            self._update_display()
            return True
