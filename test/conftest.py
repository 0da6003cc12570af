"""
Shared fixtures.
DATABASE_URL must point at a scratch database before backend.api is imported.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="truth_or_dare_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest

from backend.api.database import init_db, make_engine, make_session_factory
from backend.api.rooms import RoomService
from backend.api.store import RoomStore
from backend.engine.registry import new_room


@pytest.fixture
def store():
    """A RoomStore on its own in-memory database."""
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    yield RoomStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def service(store):
    return RoomService(store)


def make_room(creator="Alice", others=(), room_id="room-1", **kwargs):
    """Room created by `creator` with `others` already joined, in order."""
    room, _ = new_room(room_id, kwargs.pop("name", "Party"), creator, **kwargs)
    for p in others:
        room.players.append(p)
        room.score[p] = 0
    return room
