import random

from crowd.game.recorder import MemoryRecorder, NullRecorder
from crowd.game.themes import STANDALONES, TemplateThemeProvider, ThemeGenerator, build_theme_pool


def test_pool_fills_every_template():
    pool = build_theme_pool()

    assert len(pool) == len(set(pool))
    assert 'Favorite song' in pool
    assert 'Last time you got lost' in pool
    assert not any('{' in theme for theme in pool)
    assert set(STANDALONES) <= set(pool)


def test_generator_does_not_repeat_until_exhausted():
    gen = ThemeGenerator(rng=random.Random(5), pool=['a', 'b', 'c', 'd', 'e', 'f', 'g'])
    assert gen.pool_size == 7

    first = gen.take(3)
    second = gen.take(3)
    assert not set(first) & set(second)
    assert gen.used_count == 6

    third = gen.take(3)
    assert len(third) == 3
    assert gen.used_count == 3


def test_reset_forgets_used_themes():
    gen = ThemeGenerator(rng=random.Random(5), pool=['a', 'b', 'c'])
    gen.take(3)
    gen.reset()
    assert gen.used_count == 0
    assert sorted(gen.take(3)) == ['a', 'b', 'c']


def test_template_provider():
    provider = TemplateThemeProvider(count=3, rng=random.Random(11))

    themes = provider.generate_themes()
    fallback = provider.get_fallback_themes()

    assert len(themes) == 3
    assert len(fallback) == 3
    assert not set(themes) & set(fallback)
    provider.reset_session()


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_memory_recorder_cleanup():
    clock = FakeClock()
    recorder = MemoryRecorder(clock=clock)
    old = recorder.create_game('ABCD')
    recorder.create_round(old, 1, 'p1')
    clock.now += 10 * 86400
    fresh = recorder.create_game('EFGH')

    assert recorder.cleanup(max_age_days=7) == 1
    assert list(recorder.games) == [fresh]
    assert recorder.rounds == {}


def test_null_recorder_accepts_everything():
    recorder = NullRecorder()
    assert recorder.create_game('ABCD') is None
    assert recorder.create_round(None, 1, 'p1') is None
    assert recorder.cleanup() == 0
