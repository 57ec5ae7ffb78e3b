"""Round scoring.

Pure functions: they read players and guesses and return derived values,
never touching game state.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import HostScore, Match, Player, RoundResult, ShuffledAnswer


def calculate_round_results(
    matches: Iterable[Match],
    shuffled_answers: Sequence[ShuffledAnswer],
    players: Sequence[Player],
) -> list[RoundResult]:
    """Resolve the host's guesses against the shuffle the host was shown.

    ``answer_index`` is a position in ``shuffled_answers``, never an index into
    submission order. Matches pointing past the shuffle or naming an unknown
    player are dropped.
    """
    by_id = {p.id: p for p in players}
    results: list[RoundResult] = []

    for match in matches:
        guessed = by_id.get(match.player_id)
        if guessed is None:
            continue
        if match.answer_index < 0 or match.answer_index >= len(shuffled_answers):
            continue

        entry = shuffled_answers[match.answer_index]
        actual = by_id.get(entry.player_id)
        results.append(
            RoundResult(
                guessed_player=guessed.ref(),
                actual_player=actual.ref() if actual else {"id": entry.player_id, "name": None},
                answer=entry.text,
                is_correct=match.player_id == entry.player_id,
            )
        )

    return results


def calculate_host_score(results: Sequence[RoundResult], perfect_bonus: int = 3) -> HostScore:
    correct = sum(1 for r in results if r.is_correct)
    total = len(results)
    # An empty guess set is never perfect.
    is_perfect = total > 0 and correct == total

    score = correct
    if is_perfect:
        score += perfect_bonus

    return HostScore(
        score=score,
        correct_matches=correct,
        total_matches=total,
        is_perfect=is_perfect,
    )


def build_scoreboard(players: Sequence[Player]) -> list[dict]:
    ordered = sorted(players, key=lambda p: (-p.score, p.join_order))
    return [
        {"id": p.id, "name": p.name, "score": p.score, "rank": idx + 1}
        for idx, p in enumerate(ordered)
    ]


def find_leaders(players: Sequence[Player]) -> list[Player]:
    """All players sharing the top score, in join order."""
    if not players:
        return []
    top = max(p.score for p in players)
    return sorted((p for p in players if p.score == top), key=lambda p: p.join_order)
