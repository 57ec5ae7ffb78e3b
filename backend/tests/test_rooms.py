import random

import pytest

from crowd.game.errors import CapacityError
from crowd.game.rooms import ROOM_CODE_ALPHABET, RoomRegistry


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_create_room_code_shape():
    rooms = RoomRegistry(rng=random.Random(3))
    code = rooms.create_room()

    assert len(code) == 4
    assert all(ch in ROOM_CODE_ALPHABET for ch in code)
    assert 'I' not in ROOM_CODE_ALPHABET and 'O' not in ROOM_CODE_ALPHABET
    assert rooms.get_current_room_code() == code


def test_validate_room_is_case_insensitive_and_trims():
    rooms = RoomRegistry(rng=random.Random(3))
    code = rooms.create_room()

    assert rooms.validate_room(code)
    assert rooms.validate_room(f'  {code.lower()} ')
    assert not rooms.validate_room('')
    assert not rooms.validate_room(None)
    assert not rooms.validate_room(1234)
    assert not rooms.validate_room('ZZZZ' if code != 'ZZZZ' else 'YYYY')


def test_only_current_room_validates():
    rooms = RoomRegistry(rng=random.Random(3))
    first = rooms.create_room()
    second = rooms.create_room()

    assert first != second
    assert not rooms.validate_room(first)
    assert rooms.validate_room(second)


def test_completed_and_closed_rooms_do_not_validate():
    rooms = RoomRegistry(rng=random.Random(3))
    code = rooms.create_room()

    assert rooms.complete_room(code)
    assert rooms.get_room_info(code).status == 'completed'
    assert not rooms.validate_room(code)

    assert rooms.close_room(code)
    assert rooms.get_current_room_code() is None
    assert rooms.get_room_info(code.lower()).closed_at is not None
    assert not rooms.complete_room('NOPE')
    assert not rooms.close_room('NOPE')


def test_code_collisions_exhaust_attempts():
    class Stuck(random.Random):
        def choice(self, seq):
            return seq[0]

    rooms = RoomRegistry(max_attempts=5, rng=Stuck())
    assert rooms.create_room() == 'AAAA'
    with pytest.raises(CapacityError):
        rooms.create_room()


def test_purge_stale_rooms_keeps_current():
    clock = FakeClock()
    rooms = RoomRegistry(retention_hours=1, rng=random.Random(9), clock=clock)
    old = rooms.create_room()
    clock.now += 7200
    current = rooms.create_room()
    clock.now += 7200

    assert rooms.purge_stale_rooms() == 1
    assert rooms.get_room_info(old) is None
    assert rooms.get_room_info(current) is not None


def test_reopen_only_applies_to_completed_current_room():
    rooms = RoomRegistry(rng=random.Random(3))
    first = rooms.create_room()
    rooms.complete_room(first)
    second = rooms.create_room()

    assert not rooms.reopen_room(first)
    assert not rooms.reopen_room(second)

    rooms.complete_room(second)
    assert rooms.reopen_room(second)
    assert rooms.validate_room(second)

    rooms.close_room(second)
    assert not rooms.reopen_room(second)
