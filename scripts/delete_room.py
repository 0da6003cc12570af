#!/usr/bin/env python3
"""
Delete a room by id, e.g. one abandoned by players who closed the tab without leaving.
Usage: python scripts/delete_room.py <room_id>
From repo root with PYTHONPATH=. or from backend: python -m scripts.delete_room <room_id>
"""
import sys
import os

# Allow running from repo root or backend
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from backend.api.store import RoomStore
from backend.engine.errors import RoomError
from backend.engine.events import room_deleted


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python scripts/delete_room.py <room_id>", file=sys.stderr)
        sys.exit(1)
    room_id = sys.argv[1].strip()
    if not room_id:
        print("Error: provide a room id.", file=sys.stderr)
        sys.exit(1)

    store = RoomStore()
    doc = store.get(room_id)
    if doc is None:
        print(f"No room found with id: {room_id!r}")
        return
    try:
        store.delete(room_id, events=[room_deleted(room_id, "admin").to_dict()])
    except RoomError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Deleted room {doc.get('name')!r} ({room_id}) with players {doc.get('players') or []}.")


if __name__ == "__main__":
    main()
