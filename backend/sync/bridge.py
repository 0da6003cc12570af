"""
Client-side projection of the shared room store.

The bridge keeps the latest observed value of the lobby (`rooms`) and of the
joined room (`rooms/<id>`), replacing its snapshot wholesale on every
notification. It notices when the joined room disappears or when the local
player is no longer among its players, and reports both as notices.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from backend.api.store import ROOMS_PATH, StoreNotification, room_path
from backend.engine.actions import Action, LEAVE_ROOM
from backend.engine.errors import ExternalStoreError, NotFoundError, RoomError
from backend.engine.events import GAME_WON
from backend.engine.reducer import apply_action
from backend.engine.state import Room

logger = logging.getLogger(__name__)

# Notice kinds
NOTICE_ROOM_DELETED = "room_deleted"
NOTICE_KICKED = "kicked"
NOTICE_GAME_WON = "game_won"
NOTICE_STORE_ERROR = "store_error"


@dataclass
class Notice:
    kind: str
    message: str
    payload: dict[str, Any] = field(default_factory=dict)


# writer(room_id, action) persists the action and returns whatever the caller wants back
Writer = Callable[[str, Action], Any]


class SyncBridge:
    def __init__(self, store, identity: str, on_notice: Callable[[Notice], None] | None = None):
        self.store = store
        self.identity = identity
        self.rooms: dict[str, Room] = {}
        self.current_room_id: str | None = None
        self.current_room: Room | None = None
        self.notices: list[Notice] = []
        self._on_notice = on_notice
        self._unsubscribe_registry: Callable[[], None] | None = None
        self._unsubscribe_room: Callable[[], None] | None = None
        # Set once we have seen ourselves in the room; only then is disappearing a kick.
        self._was_member = False
        self._leaving = False

    # ===== Subscriptions =====

    def connect(self) -> None:
        """Start following the lobby."""
        if self._unsubscribe_registry is None:
            self._unsubscribe_registry = self.store.subscribe(ROOMS_PATH, self._on_registry)

    def enter_room(self, room_id: str) -> None:
        """Follow one room in addition to the lobby."""
        self.exit_room()
        self.current_room_id = room_id
        self.current_room = self.rooms.get(room_id)
        unsubscribe = self.store.subscribe(room_path(room_id), self._on_room)
        if self.current_room_id != room_id:
            # The initial value already showed the room is gone.
            unsubscribe()
            return
        self._unsubscribe_room = unsubscribe

    def exit_room(self) -> None:
        if self._unsubscribe_room is not None:
            self._unsubscribe_room()
        self._unsubscribe_room = None
        self.current_room_id = None
        self.current_room = None
        self._was_member = False
        self._leaving = False

    def close(self) -> None:
        self.exit_room()
        if self._unsubscribe_registry is not None:
            self._unsubscribe_registry()
        self._unsubscribe_registry = None

    # ===== Notifications =====

    def _on_registry(self, note: StoreNotification) -> None:
        self.rooms = {rid: Room.from_dict(doc, rid) for rid, doc in (note.value or {}).items()}
        if self.current_room_id is None:
            return
        room = self.rooms.get(self.current_room_id)
        if room is None:
            self._lose_room(NOTICE_ROOM_DELETED, "This room no longer exists")
        else:
            self._adopt(room)

    def _on_room(self, note: StoreNotification) -> None:
        if self.current_room_id is None:
            return
        if note.value is None:
            self._lose_room(NOTICE_ROOM_DELETED, "This room no longer exists")
            return
        self._adopt(Room.from_dict(note.value, self.current_room_id))
        for event in note.events:
            if event.get("type") == GAME_WON:
                winner = event.get("payload", {}).get("winner")
                self._notify(NOTICE_GAME_WON, f"{winner} won the game!", event.get("payload", {}))

    def _adopt(self, room: Room) -> None:
        self.current_room = room
        if room.has_player(self.identity):
            self._was_member = True
        elif self._was_member:
            self._lose_room(NOTICE_KICKED, "You were removed from the room")

    def _lose_room(self, kind: str, message: str) -> None:
        room_id = self.current_room_id
        leaving = self._leaving
        self.exit_room()
        if not leaving:
            self._notify(kind, message, {"room_id": room_id})

    def _notify(self, kind: str, message: str, payload: dict[str, Any] | None = None) -> None:
        notice = Notice(kind, message, payload or {})
        self.notices.append(notice)
        logger.info("Notice for %s: %s", self.identity, message)
        if self._on_notice is not None:
            self._on_notice(notice)

    # ===== Local actions =====

    def submit(self, action: Action, writer: Writer) -> Any:
        """
        Apply `action` to the joined room: check it locally, show the result
        optimistically, then persist it through `writer`.

        A failed local check raises and nothing is sent. A store failure rolls
        the optimistic snapshot back and surfaces a store_error notice.
        """
        if self.current_room_id is None or self.current_room is None:
            raise NotFoundError("You are not in a room")

        previous = self.current_room
        optimistic, _ = apply_action(previous, action)
        self.current_room = optimistic
        if action.type == LEAVE_ROOM:
            self._leaving = True

        try:
            result = writer(self.current_room_id, action)
        except NotFoundError:
            self._leaving = False
            self._lose_room(NOTICE_ROOM_DELETED, "This room no longer exists")
            return None
        except ExternalStoreError as e:
            self._rollback(previous, optimistic)
            self._notify(NOTICE_STORE_ERROR, f"Something went wrong, please try again ({e})")
            return None
        except RoomError:
            self._rollback(previous, optimistic)
            raise

        if action.type == LEAVE_ROOM:
            self.exit_room()
        return result

    def _rollback(self, previous: Room, optimistic: Room | None) -> None:
        # A notification may already have replaced the optimistic value; keep the newer one.
        if self.current_room is optimistic:
            self.current_room = previous
        self._leaving = False
