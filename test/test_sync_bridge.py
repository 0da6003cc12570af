"""
SyncBridge: snapshot replacement, deletion/kick detection and optimistic submits.
"""

import pytest

from backend.engine.actions import (
    join_room,
    leave_room,
    resolve_challenge,
    send_challenge,
    submit_response,
    vote_kick,
)
from backend.engine.errors import ExternalStoreError, NotFoundError, ValidationError
from backend.sync.bridge import (
    NOTICE_GAME_WON,
    NOTICE_KICKED,
    NOTICE_ROOM_DELETED,
    NOTICE_STORE_ERROR,
    SyncBridge,
)
from backend.sync.local_cache import LocalIdentityCache


def joined_bridge(store, service, room_id, identity):
    service.dispatch(room_id, join_room(identity))
    bridge = SyncBridge(store, identity)
    bridge.connect()
    bridge.enter_room(room_id)
    return bridge


def test_lobby_follows_store(store, service):
    bridge = SyncBridge(store, "Bob")
    bridge.connect()
    assert bridge.rooms == {}
    room, _ = service.create_room("Party", "Alice")
    assert list(bridge.rooms) == [room.id]
    assert bridge.rooms[room.id].players == ["Alice"]


def test_snapshot_is_replaced_on_every_write(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    assert bridge.current_room.players == ["Alice", "Bob"]
    service.dispatch(room.id, join_room("Carol"))
    assert bridge.current_room.players == ["Alice", "Bob", "Carol"]
    assert bridge.current_room.version == 3


def test_owner_deleting_room_notifies_once(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    service.delete_room(room.id, "Alice")
    assert [n.kind for n in bridge.notices] == [NOTICE_ROOM_DELETED]
    assert bridge.current_room_id is None
    assert bridge.current_room is None


def test_kicked_player_is_told(store, service):
    room, _ = service.create_room("Party", "Alice")
    for p in ("Carol", "Dave"):
        service.dispatch(room.id, join_room(p))
    bridge = joined_bridge(store, service, room.id, "Bob")

    service.dispatch(room.id, vote_kick("Alice", "Bob"))
    assert bridge.notices == []
    service.dispatch(room.id, vote_kick("Carol", "Bob"))
    assert [n.kind for n in bridge.notices] == [NOTICE_KICKED]
    assert bridge.current_room_id is None


def test_voluntary_leave_is_silent(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    result, _ = bridge.submit(leave_room("Bob"), service.dispatch)
    assert result.players == ["Alice"]
    assert bridge.notices == []
    assert bridge.current_room_id is None


def test_last_player_leaving_is_silent(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = SyncBridge(store, "Alice")
    bridge.connect()
    bridge.enter_room(room.id)
    result, _ = bridge.submit(leave_room("Alice"), service.dispatch)
    assert result is None
    assert bridge.notices == []
    assert bridge.rooms == {}


def test_spectator_is_not_reported_as_kicked(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = SyncBridge(store, "Zed")
    bridge.enter_room(room.id)
    service.dispatch(room.id, join_room("Bob"))
    assert bridge.notices == []
    assert bridge.current_room.players == ["Alice", "Bob"]


def test_entering_missing_room(store):
    bridge = SyncBridge(store, "Bob")
    bridge.enter_room("gone")
    assert [n.kind for n in bridge.notices] == [NOTICE_ROOM_DELETED]
    assert bridge.current_room_id is None


def test_game_won_notice(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    current = service.get_room(room.id)
    current.score["Bob"] = 14
    store.write(room.id, current.to_dict(), expected_version=current.version)

    service.dispatch(room.id, send_challenge("Alice", "truth", "why?", to_player="Bob"))
    bridge.submit(submit_response("Bob", "because"), service.dispatch)
    service.dispatch(room.id, resolve_challenge("Alice", True))

    won = [n for n in bridge.notices if n.kind == NOTICE_GAME_WON]
    assert len(won) == 1
    assert won[0].payload["winner"] == "Bob"
    assert bridge.current_room.score == {"Alice": 0, "Bob": 0}


def test_invalid_action_is_never_sent(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    calls = []
    with pytest.raises(ValidationError):
        bridge.submit(submit_response("Bob", "nothing to answer"), lambda rid, a: calls.append(a))
    assert calls == []


def test_store_failure_rolls_back(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    before = bridge.current_room
    seen_during_write = []

    def failing_writer(room_id, action):
        seen_during_write.append(bridge.current_room)
        raise ExternalStoreError("disk full")

    assert bridge.submit(leave_room("Bob"), failing_writer) is None
    assert seen_during_write[0].players == ["Alice"]
    assert bridge.current_room == before
    assert bridge.current_room_id == room.id
    assert [n.kind for n in bridge.notices] == [NOTICE_STORE_ERROR]


def test_room_vanishing_during_submit(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")

    def gone(room_id, action):
        raise NotFoundError("Room no longer exists")

    assert bridge.submit(join_room("Bob"), gone) is None
    assert [n.kind for n in bridge.notices] == [NOTICE_ROOM_DELETED]


def test_submit_outside_room(store):
    with pytest.raises(NotFoundError):
        SyncBridge(store, "Bob").submit(join_room("Bob"), lambda rid, a: None)


def test_close_stops_updates(store, service):
    room, _ = service.create_room("Party", "Alice")
    bridge = joined_bridge(store, service, room.id, "Bob")
    bridge.close()
    service.dispatch(room.id, join_room("Carol"))
    assert bridge.current_room is None
    assert list(bridge.rooms) == [room.id]
    assert bridge.rooms[room.id].players == ["Alice", "Bob"]


def test_local_identity_cache(tmp_path):
    cache = LocalIdentityCache(str(tmp_path / "nested" / "identity.json"))
    assert cache.get_display_name() is None
    cache.set_display_name("  Bob ")
    assert LocalIdentityCache(cache.path).get_display_name() == "Bob"
    cache.clear()
    assert cache.get_display_name() is None


def test_unreadable_cache_is_ignored(tmp_path):
    path = tmp_path / "identity.json"
    path.write_text("{not json")
    assert LocalIdentityCache(str(path)).load() == {}
