"""Theme prompts.

The orchestrator only depends on the provider interface: ``generate_themes``
may raise, ``get_fallback_themes`` must not.
"""

from __future__ import annotations

import logging
import random
from threading import RLock
from typing import Protocol

logger = logging.getLogger(__name__)


TEMPLATES = [
    "Favorite {category}",
    "Worst {category}",
    "Best {category}",
    "Most embarrassing {category}",
    "Dream {category}",
    "Guilty pleasure {category}",
    "Go-to {category}",
    "Secret {category}",
    "Weirdest {category}",
    "Most overrated {category}",
    "Most underrated {category}",
    "Unpopular {category} opinion",
    "Last time you {action}",
    "First time you {action}",
    "Your most {adjective} possession",
    "Your most {adjective} habit",
    "Your most {adjective} talent",
    "If you could {hypothetical}",
]

CATEGORIES = [
    "song", "movie", "book", "TV show", "food", "snack", "drink",
    "vacation spot", "childhood memory", "app", "celebrity", "hobby",
    "ice cream flavor", "pizza topping", "emoji", "meme", "restaurant",
    "late night snack", "weekend activity", "superpower", "decade",
]

ACTIONS = [
    "cried in public", "stayed up all night", "lied to get out of plans",
    "pretended to know a song", "faked being sick", "laughed at the wrong moment",
    "texted the wrong person", "got starstruck", "impulse bought something",
    "broke something valuable", "got lost",
]

ADJECTIVES = [
    "prized", "embarrassing", "useless", "expensive", "weird", "random",
    "nostalgic", "controversial", "hidden", "bizarre", "irrational",
]

HYPOTHETICALS = [
    "have dinner with any celebrity", "live in any era", "have any superpower",
    "master any skill instantly", "relive one day", "meet your future self",
    "talk to animals", "teleport anywhere", "become invisible",
]

STANDALONES = [
    "Childhood nickname", "Celebrity look-alike", "Hidden talent",
    "Biggest ick", "Red flag you ignore", "Green flag you love",
    "Toxic trait", "Love language", "Comfort show", "Comfort food",
    "Karaoke song", "Walk-up song", "Spirit animal", "Last thing you Googled",
    "Most used emoji", "Netflix shame watch", "YouTube rabbit hole",
    "Group chat nickname", "Phone wallpaper meaning", "Autocorrect fail",
    "Phrase you overuse", "Fun fact about yourself", "Party trick",
    "Useless skill", "Weird flex", "Unpopular opinion",
]

_SLOTS = {
    "{category}": CATEGORIES,
    "{action}": ACTIONS,
    "{adjective}": ADJECTIVES,
    "{hypothetical}": HYPOTHETICALS,
}


class ThemeProvider(Protocol):
    def generate_themes(self) -> list[str]: ...

    def get_fallback_themes(self) -> list[str]: ...

    def reset_session(self) -> None: ...


def build_theme_pool() -> list[str]:
    pool: list[str] = list(STANDALONES)
    seen = set(pool)
    for template in TEMPLATES:
        for slot, values in _SLOTS.items():
            if slot not in template:
                continue
            for value in values:
                theme = template.replace(slot, value)
                if theme not in seen:
                    seen.add(theme)
                    pool.append(theme)
    return pool


class ThemeGenerator:
    """Hands out themes without repeats until the pool runs dry."""

    def __init__(self, rng: random.Random | None = None, pool: list[str] | None = None) -> None:
        self._rng = rng or random.Random()
        self._pool = list(pool) if pool is not None else build_theme_pool()
        self._used: set[str] = set()
        self._lock = RLock()

    @property
    def pool_size(self) -> int:
        return len(self._pool)

    @property
    def used_count(self) -> int:
        return len(self._used)

    def take(self, count: int = 3) -> list[str]:
        with self._lock:
            available = [t for t in self._pool if t not in self._used]
            if len(available) < count:
                self._used.clear()
                available = list(self._pool)

            selected = self._rng.sample(available, min(count, len(available)))
            self._used.update(selected)
            return selected

    def reset(self) -> None:
        with self._lock:
            self._used.clear()


class TemplateThemeProvider:
    def __init__(self, count: int = 3, rng: random.Random | None = None) -> None:
        self.count = count
        self._generator = ThemeGenerator(rng=rng)

    def generate_themes(self) -> list[str]:
        return self._generator.take(self.count)

    def get_fallback_themes(self) -> list[str]:
        return self._generator.take(self.count)

    def reset_session(self) -> None:
        self._generator.reset()
        logger.info("[themes] session reset")
