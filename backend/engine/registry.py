"""
Room creation and deletion rules for the lobby.
The store-backed registry (listing, persistence) lives in backend.api.rooms;
this module only decides what a new room looks like and who may delete one.
"""

from backend.config import MAX_ROOM_NAME_LENGTH, MIN_ROOM_NAME_LENGTH
from backend.engine.errors import AuthError, ValidationError
from backend.engine.events import RoomEvent, room_created
from backend.engine.state import Room


def new_room(
    room_id: str,
    name: str,
    creator: str,
    is_private: bool = False,
    password: str | None = None,
    created_at: int = 0,
) -> tuple[Room, list[RoomEvent]]:
    """
    Build the initial room document.
    The creator is the only player, holds the turn and owns the room.
    """
    name = (name or "").strip()
    creator = (creator or "").strip()
    if not creator:
        raise ValidationError("Please enter your name first")
    if not name:
        raise ValidationError("Please enter a room name")
    if len(name) < MIN_ROOM_NAME_LENGTH:
        raise ValidationError(f"Room name must be at least {MIN_ROOM_NAME_LENGTH} characters")
    if len(name) > MAX_ROOM_NAME_LENGTH:
        raise ValidationError(f"Room name must be at most {MAX_ROOM_NAME_LENGTH} characters")
    if is_private and not password:
        raise ValidationError("Private rooms need a password")

    room = Room(
        id=room_id,
        name=name,
        owner=creator,
        players=[creator],
        current_turn=creator,
        is_private=bool(is_private),
        password=password if is_private else None,
        score={creator: 0},
        created_at=created_at,
    )
    return room, [room_created(room_id, name, creator)]


def check_can_delete(room: Room, requester: str) -> None:
    """Only the room's owner may delete it outright."""
    if requester != room.owner:
        raise AuthError("Only the room owner can delete this room")
