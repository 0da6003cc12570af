"""
Document store: version-checked writes and path subscriptions.
"""

import threading

import pytest

from backend.api.database import resolve_database_url
from backend.api.store import ROOMS_PATH, RoomStore, room_path
from backend.engine.actions import join_room
from backend.engine.errors import NotFoundError, StaleWriteError


def test_create_then_read(store):
    assert store.read(ROOMS_PATH) == {}
    version = store.create("r1", {"name": "Party", "players": ["Alice"]})
    assert version == 1
    doc = store.read(room_path("r1"))
    assert doc["name"] == "Party"
    assert doc["id"] == "r1"
    assert doc["version"] == 1
    assert list(store.read(ROOMS_PATH)) == ["r1"]


def test_create_existing_room_conflicts(store):
    store.create("r1", {"name": "Party"})
    with pytest.raises(StaleWriteError):
        store.create("r1", {"name": "Other"})


def test_write_bumps_version(store):
    store.create("r1", {"name": "Party"})
    assert store.write("r1", {"name": "Renamed"}, expected_version=1) == 2
    assert store.get("r1")["name"] == "Renamed"
    assert store.get("r1")["version"] == 2


def test_stale_write_is_rejected(store):
    store.create("r1", {"name": "Party"})
    store.write("r1", {"name": "First"}, expected_version=1)
    with pytest.raises(StaleWriteError):
        store.write("r1", {"name": "Second"}, expected_version=1)
    assert store.get("r1")["name"] == "First"


def test_write_or_delete_missing_room(store):
    with pytest.raises(NotFoundError):
        store.write("nope", {"name": "x"}, expected_version=1)
    with pytest.raises(NotFoundError):
        store.delete("nope")


def test_delete_checks_version_when_given(store):
    store.create("r1", {"name": "Party"})
    store.write("r1", {"name": "Party"}, expected_version=1)
    with pytest.raises(StaleWriteError):
        store.delete("r1", expected_version=1)
    store.delete("r1", expected_version=2)
    assert store.get("r1") is None


def test_unknown_path(store):
    with pytest.raises(NotFoundError):
        store.read("players")


def test_subscribe_delivers_current_value_then_changes(store):
    store.create("r1", {"name": "Party"})
    seen = []
    unsubscribe = store.subscribe(room_path("r1"), seen.append)
    assert seen[0].value["name"] == "Party"

    store.write("r1", {"name": "Party"}, expected_version=1, events=[{"type": "x", "payload": {}}])
    assert seen[1].value["version"] == 2
    assert seen[1].events == [{"type": "x", "payload": {}}]

    store.delete("r1")
    assert seen[2].value is None

    unsubscribe()
    store.create("r1", {"name": "Again"})
    assert len(seen) == 3


def test_registry_subscribers_see_every_room_change(store):
    seen = []
    store.subscribe(ROOMS_PATH, seen.append)
    store.create("r1", {"name": "Party"})
    store.create("r2", {"name": "Other"})
    store.delete("r1")
    assert [sorted(n.value) for n in seen] == [[], ["r1"], ["r1", "r2"], ["r2"]]


def test_broken_subscriber_does_not_fail_write(store):
    def broken(note):
        raise RuntimeError("boom")

    seen = []
    store.create("r1", {"name": "Party"})
    store.subscribe(room_path("r1"), broken, send_initial=False)
    store.subscribe(room_path("r1"), seen.append, send_initial=False)
    store.write("r1", {"name": "Party"}, expected_version=1)
    assert len(seen) == 1
    assert store.get("r1")["version"] == 2


def test_listing_does_not_shadow_builtin_list(store):
    # Annotations such as list[dict] are evaluated in the class body.
    assert "list" not in vars(RoomStore)
    store.create("r1", {"name": "Party"})
    assert list(store.list_rooms()) == ["r1"]


def test_room_subscribers_see_versions_in_order(store, service):
    room, _ = service.create_room("Party", "Alice")
    seen = []
    racers = []

    def slow_listener(note):
        if note.value is None:
            return
        seen.append(note.value["version"])
        if note.value["version"] == 2 and not racers:
            # Another client writes while v2 is still being delivered.
            racer = threading.Thread(target=service.dispatch, args=(room.id, join_room("Carol")))
            racers.append(racer)
            racer.start()
            racer.join(timeout=0.3)

    store.subscribe(room_path(room.id), slow_listener, send_initial=False)
    service.dispatch(room.id, join_room("Bob"))
    racers[0].join(timeout=5)

    assert seen == [2, 3]
    assert store.get(room.id)["version"] == 3
    assert store.get(room.id)["players"] == ["Alice", "Bob", "Carol"]


def test_database_url_resolution():
    assert resolve_database_url("postgres://u:p@db/rooms") == "postgresql://u:p@db/rooms"
    assert resolve_database_url("postgresql://u:p@db/rooms") == "postgresql://u:p@db/rooms"
    assert resolve_database_url(None).startswith("sqlite:///")
    assert resolve_database_url(None).endswith("rooms.db")
