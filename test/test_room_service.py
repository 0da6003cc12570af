"""
RoomService: creation, deletion and dispatch through the store,
including retries after a concurrent write.
"""

import pytest

from backend.api.rooms import RoomService
from backend.engine.actions import (
    add_reaction,
    join_room,
    leave_room,
    send_challenge,
    vote_kick,
)
from backend.engine.errors import AuthError, NotFoundError, StaleWriteError, ValidationError
from backend.engine.events import ROOM_DELETED


def test_create_and_list(service):
    room, events = service.create_room("Party", "Alice")
    assert room.version == 1
    assert room.created_at > 0
    assert events[0].type == "room_created"
    rooms = service.list_rooms()
    assert list(rooms) == [room.id]
    assert rooms[room.id].players == ["Alice"]


def test_create_rejects_bad_input_without_writing(service):
    with pytest.raises(ValidationError):
        service.create_room("ab", "Alice")
    with pytest.raises(ValidationError):
        service.create_room("Secret", "Eve", is_private=True)
    assert service.list_rooms() == {}


def test_dispatch_persists_new_version(service):
    room, _ = service.create_room("Party", "Alice")
    updated, _ = service.dispatch(room.id, join_room("Bob"))
    assert updated.version == 2
    stored = service.get_room(room.id)
    assert stored.players == ["Alice", "Bob"]
    assert stored == updated


def test_no_op_action_does_not_write(service):
    room, _ = service.create_room("Party", "Alice")
    service.dispatch(room.id, join_room("Bob"))
    same, events = service.dispatch(room.id, join_room("Bob"))
    assert events == []
    assert same.version == 2


def test_rejected_action_does_not_write(service):
    room, _ = service.create_room("Party", "Alice")
    with pytest.raises(ValidationError):
        service.dispatch(room.id, send_challenge("Alice", "dare", "jump"))  # nobody to dare
    assert service.get_room(room.id).version == 1


def test_last_player_leaving_deletes_room(service, store):
    room, _ = service.create_room("Party", "Alice")
    result, events = service.dispatch(room.id, leave_room("Alice"))
    assert result is None
    assert events[-1].type == ROOM_DELETED
    assert store.get(room.id) is None
    with pytest.raises(NotFoundError):
        service.dispatch(room.id, join_room("Bob"))


def test_only_owner_deletes(service):
    room, _ = service.create_room("Party", "Alice")
    service.dispatch(room.id, join_room("Bob"))
    with pytest.raises(AuthError):
        service.delete_room(room.id, "Bob")
    events = service.delete_room(room.id, "Alice")
    assert events[0].payload == {"room_id": room.id, "reason": "owner"}
    assert service.list_rooms() == {}


class RacingStore:
    """Wraps a store and lets another client write just before each of our writes."""

    def __init__(self, store, service, competing_actions):
        self._store = store
        self._other = RoomService(store)
        self._competing = list(competing_actions)
        self.writes = 0

    def __getattr__(self, name):
        return getattr(self._store, name)

    def write(self, room_id, document, expected_version, events=None):
        self.writes += 1
        if self._competing:
            self._other.dispatch(room_id, self._competing.pop(0))
        return self._store.write(room_id, document, expected_version, events)


def test_concurrent_reactions_are_both_kept(store, service):
    room, _ = service.create_room("Party", "Alice")
    for p in ("Bob", "Carol"):
        service.dispatch(room.id, join_room(p))
    service.dispatch(room.id, send_challenge("Alice", "dare", "jump", to_player="Bob"))

    racing = RacingStore(store, service, [add_reaction("Carol", "🔥")])
    updated, _ = RoomService(racing).dispatch(room.id, add_reaction("Alice", "😂"))
    assert racing.writes == 2
    assert updated.current_challenge.reactions == {"Carol": "🔥", "Alice": "😂"}


def test_concurrent_kick_votes_reach_threshold(store, service):
    room, _ = service.create_room("Party", "Alice")
    for p in ("Bob", "Carol", "Dave", "Erin"):
        service.dispatch(room.id, join_room(p))
    service.dispatch(room.id, vote_kick("Alice", "Carol"))

    racing = RacingStore(store, service, [vote_kick("Bob", "Carol")])
    updated, _ = RoomService(racing).dispatch(room.id, vote_kick("Dave", "Carol"))
    assert "Carol" not in updated.players
    assert service.get_room(room.id).kick_votes == {}


def test_gives_up_after_max_retries(store, service):
    room, _ = service.create_room("Party", "Alice")
    racing = RacingStore(store, service, [join_room(f"P{i}") for i in range(5)])
    with pytest.raises(StaleWriteError):
        RoomService(racing, max_retries=3).dispatch(room.id, join_room("Bob"))
    assert racing.writes == 3
