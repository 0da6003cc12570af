"""
Read-only queries over a room.
Used by the API to decorate responses and by clients to decide what to show.
"""

from dataclasses import dataclass
from typing import Any

from backend.config import TYPING_WINDOW_MS
from backend.engine.actions import Action
from backend.engine.errors import RoomError
from backend.engine.reducer import apply_action
from backend.engine.state import Room
from backend.engine.utils import kick_votes_required


# Room phases, derived from the current challenge
PHASE_LOBBY = "lobby"
PHASE_CHALLENGE_PENDING = "challenge_pending"
PHASE_RESPONSE_SUBMITTED = "response_submitted"


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None
    error_kind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error, "error_kind": self.error_kind}


# ===== Action Validation =====

def validate_action(room: Room, action: Action) -> ValidationResult:
    """
    Validate an action without applying it.
    Runs the reducer on a copy, so the rules live in exactly one place.
    """
    try:
        apply_action(room, action)
    except RoomError as e:
        return ValidationResult(False, str(e), e.kind)
    return ValidationResult(True)


def room_phase(room: Room) -> str:
    ch = room.current_challenge
    if ch is None or ch.completed:
        return PHASE_LOBBY
    if ch.response is None:
        return PHASE_CHALLENGE_PENDING
    return PHASE_RESPONSE_SUBMITTED


def can_send_challenge(room: Room, player: str) -> bool:
    return (
        room.current_turn == player
        and room_phase(room) == PHASE_LOBBY
        and len(room.players) > 1
    )


def active_typists(room: Room, now: int, exclude: str | None = None) -> list[str]:
    """Players whose typing ping is younger than the typing window, in seat order."""
    return [
        p for p in room.players
        if p != exclude
        and p in room.typing
        and now - room.typing[p] < TYPING_WINDOW_MS
    ]


def get_kick_status(room: Room, target: str) -> dict[str, Any]:
    voters = room.kick_votes.get(target, [])
    return {
        "target": target,
        "votes": len(voters),
        "voters": list(voters),
        "required": kick_votes_required(len(room.players)),
    }


def get_room_summary(room: Room) -> dict[str, Any]:
    """Lobby row: enough to pick a room, without the password or chat."""
    return {
        "id": room.id,
        "name": room.name,
        "owner": room.owner,
        "player_count": len(room.players),
        "players": list(room.players),
        "is_private": room.is_private,
        "phase": room_phase(room),
        "created_at": room.created_at,
    }


def public_room_view(room: Room, now: int, viewer: str | None = None) -> dict[str, Any]:
    """Full room for its players, minus the password, plus derived fields."""
    out = room.to_dict(include_password=False)
    out["phase"] = room_phase(room)
    out["typing_players"] = active_typists(room, now, exclude=viewer)
    out["kick_votes_required"] = kick_votes_required(len(room.players))
    return out
