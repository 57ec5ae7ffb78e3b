import heapq
import itertools
import os
import random
import sys
from collections import defaultdict

import pytest

# Ensure the backend root (containing the `crowd` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from crowd.config import Config
from crowd.game.errors import ProviderError
from crowd.game.models import GameSettings
from crowd.game.orchestrator import GameOrchestrator
from crowd.game.recorder import MemoryRecorder
from crowd.game.rooms import RoomRegistry
from crowd.game.timers import ScheduledCall
from crowd.server import create_app


class ManualScheduler:
    """Fake clock: nothing runs until the test advances time."""

    def __init__(self):
        self.clock = 0.0
        self._queue = []
        self._seq = itertools.count()

    def now(self):
        return self.clock

    def call_later(self, delay, fn):
        call = ScheduledCall()
        heapq.heappush(self._queue, (self.clock + delay, next(self._seq), call, fn))
        return call

    def spawn(self, fn, *args):
        self.call_later(0, lambda: fn(*args))

    def advance(self, seconds):
        target = self.clock + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, call, fn = heapq.heappop(self._queue)
            self.clock = max(self.clock, due)
            if not call.cancelled:
                fn()
        self.clock = target

    def run_pending(self):
        self.advance(0)


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.channels = defaultdict(set)

    def emit(self, event, payload, to=None):
        self.sent.append((event, payload, to))

    def join(self, sid, channel):
        self.channels[channel].add(sid)

    def events(self, name, to=None):
        return [p for e, p, t in self.sent if e == name and (to is None or t == to)]

    def last(self, name, to=None):
        found = self.events(name, to)
        return found[-1] if found else None

    def received_by(self, sid, name):
        return [p for e, p, t in self.sent if e == name and (t == sid or sid in self.channels.get(t, ()))]

    def clear(self):
        self.sent.clear()


class ScriptedThemeProvider:
    def __init__(self, themes=None, fallback=None, fail=False):
        self.themes = themes or ['Favorite song', 'Worst movie', 'Hidden talent']
        self.fallback = fallback or ['Comfort food', 'Party trick', 'Spirit animal']
        self.fail = fail
        self.calls = 0
        self.resets = 0

    def generate_themes(self):
        self.calls += 1
        if self.fail:
            raise ProviderError('provider down')
        return list(self.themes)

    def get_fallback_themes(self):
        return list(self.fallback)

    def reset_session(self):
        self.resets += 1


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SOCKETIO_ASYNC_MODE = 'threading'
    TRUST_PROXY_HEADERS = False
    PUBLIC_HOST = 'crowd.test:3000'


FAST_SETTINGS = GameSettings(
    theme_selection_sec=30,
    answering_sec=60,
    matching_sec=90,
    round_end_sec=10,
    reveal_step_sec=3,
    reveal_preroll_sec=5,
    sudden_death_intro_sec=5,
    host_grace_period_sec=15,
)


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def provider():
    return ScriptedThemeProvider()


@pytest.fixture()
def recorder():
    return MemoryRecorder()


@pytest.fixture()
def make_orchestrator(scheduler, transport, provider, recorder):
    def _make(settings=FAST_SETTINGS, seed=1234):
        rooms = RoomRegistry(rng=random.Random(seed))
        orch = GameOrchestrator(
            transport=transport,
            scheduler=scheduler,
            rooms=rooms,
            themes=provider,
            settings=settings,
            recorder=recorder,
            rng=random.Random(seed),
        )
        orch.open_room()
        return orch

    return _make


@pytest.fixture()
def orch(make_orchestrator):
    return make_orchestrator()


@pytest.fixture()
def seat_players():
    """Join players as sid-0, sid-1, ... and return their sids."""

    def _seat(orchestrator, names):
        sids = []
        for idx, name in enumerate(names):
            sid = f'sid-{idx}'
            orchestrator.join_player(sid, name, orchestrator.state.room_code)
            sids.append(sid)
        return sids

    return _seat


@pytest.fixture()
def flask_app(scheduler, provider):
    application, _ = create_app(TestConfig, scheduler=scheduler, theme_provider=provider)
    yield application
    application.extensions['crowd'].close()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def socketio(flask_app):
    return flask_app.extensions['socketio']


@pytest.fixture()
def sio_client(flask_app, socketio):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
