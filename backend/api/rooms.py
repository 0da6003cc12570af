"""
Room registry and action dispatch on top of the document store.

Every action is applied by the pure reducer to the latest stored room and the
result is written back with the version it was computed from. When another
client wrote in between, the room is re-read and the action re-applied, so
concurrent votes, reactions and score changes are never lost.
"""

import logging
import uuid

from backend.config import ROOM_WRITE_RETRIES
from backend.engine.actions import Action
from backend.engine.errors import NotFoundError, StaleWriteError
from backend.engine.events import RoomEvent, room_deleted
from backend.engine.reducer import apply_action
from backend.engine.registry import check_can_delete, new_room
from backend.engine.state import Room
from backend.engine.utils import now_ms
from .store import RoomStore

logger = logging.getLogger(__name__)


class RoomService:
    def __init__(self, store: RoomStore, max_retries: int = ROOM_WRITE_RETRIES):
        self.store = store
        self.max_retries = max(1, max_retries)

    # ===== Registry =====

    def list_rooms(self) -> dict[str, Room]:
        return {rid: Room.from_dict(doc, rid) for rid, doc in self.store.list_rooms().items()}

    def get_room(self, room_id: str) -> Room:
        doc = self.store.get(room_id)
        if doc is None:
            raise NotFoundError("Room no longer exists")
        return Room.from_dict(doc, room_id)

    def create_room(
        self,
        name: str,
        creator: str,
        is_private: bool = False,
        password: str | None = None,
    ) -> tuple[Room, list[RoomEvent]]:
        room_id = uuid.uuid4().hex
        room, events = new_room(
            room_id,
            name,
            creator,
            is_private=is_private,
            password=password,
            created_at=now_ms(),
        )
        room.version = self.store.create(room_id, room.to_dict(), [e.to_dict() for e in events])
        logger.info("Room %s (%r) created by %s", room_id, room.name, creator)
        return room, events

    def delete_room(self, room_id: str, requester: str) -> list[RoomEvent]:
        room = self.get_room(room_id)
        check_can_delete(room, requester)
        events = [room_deleted(room_id, "owner")]
        # Unconditional: the owner's delete wins over any concurrent write.
        self.store.delete(room_id, events=[e.to_dict() for e in events])
        logger.info("Room %s deleted by its owner %s", room_id, requester)
        return events

    # ===== State machine =====

    def dispatch(self, room_id: str, action: Action) -> tuple[Room | None, list[RoomEvent]]:
        """
        Apply `action` to the room and persist the result.
        Returns (room, events); room is None when the action emptied and deleted it.
        """
        attempt = 0
        while True:
            attempt += 1
            room = self.get_room(room_id)
            new_state, events = apply_action(room, action)
            payload = [e.to_dict() for e in events]
            try:
                if new_state is None:
                    self.store.delete(room_id, expected_version=room.version, events=payload)
                    logger.info("Room %s deleted: last player left", room_id)
                    return None, events
                if not events and new_state == room:
                    # No-op (reconnect, duplicate reaction): nothing to write.
                    return room, events
                new_state.version = self.store.write(
                    room_id, new_state.to_dict(), expected_version=room.version, events=payload
                )
                return new_state, events
            except StaleWriteError:
                if attempt >= self.max_retries:
                    logger.warning(
                        "Giving up on %s for room %s after %d conflicting writes",
                        action.type, room_id, attempt,
                    )
                    raise
                logger.info("Version conflict on room %s (%s), retrying", room_id, action.type)
