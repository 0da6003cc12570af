"""
Room events for UI hooks and logging.
Events describe what happened while an action was processed; they travel
alongside the room snapshot but are never stored in it.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class RoomEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoomEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Membership events
ROOM_CREATED = "room_created"
ROOM_DELETED = "room_deleted"
PLAYER_JOINED = "player_joined"
PLAYER_LEFT = "player_left"
PLAYER_KICKED = "player_kicked"
OWNER_CHANGED = "owner_changed"
TURN_CHANGED = "turn_changed"

# Challenge events
CHALLENGE_SENT = "challenge_sent"
CHALLENGE_DISCARDED = "challenge_discarded"
RESPONSE_SUBMITTED = "response_submitted"
REACTION_ADDED = "reaction_added"
CHALLENGE_RESOLVED = "challenge_resolved"

# Score events
SCORE_CHANGED = "score_changed"
GAME_WON = "game_won"

# Kick events
KICK_VOTE_CAST = "kick_vote_cast"

# Chat events
CHAT_MESSAGE_POSTED = "chat_message_posted"
TYPING_CHANGED = "typing_changed"


# ===== Event Factory Functions =====

def room_created(room_id: str, name: str, owner: str) -> RoomEvent:
    return RoomEvent(ROOM_CREATED, {"room_id": room_id, "name": name, "owner": owner})


def room_deleted(room_id: str, reason: str) -> RoomEvent:
    """reason: "empty" (last player left), "owner" (deleted by its owner) or "admin" (maintenance script)."""
    return RoomEvent(ROOM_DELETED, {"room_id": room_id, "reason": reason})


def player_joined(player: str) -> RoomEvent:
    return RoomEvent(PLAYER_JOINED, {"player": player})


def player_left(player: str) -> RoomEvent:
    return RoomEvent(PLAYER_LEFT, {"player": player})


def player_kicked(player: str, voters: list[str]) -> RoomEvent:
    return RoomEvent(PLAYER_KICKED, {"player": player, "voters": voters})


def owner_changed(old_owner: str, new_owner: str) -> RoomEvent:
    return RoomEvent(OWNER_CHANGED, {"old_owner": old_owner, "new_owner": new_owner})


def turn_changed(old_player: str, new_player: str) -> RoomEvent:
    return RoomEvent(TURN_CHANGED, {"old_player": old_player, "new_player": new_player})


def challenge_sent(challenge_type: str, question: str, from_player: str, to_player: str) -> RoomEvent:
    return RoomEvent(CHALLENGE_SENT, {
        "type": challenge_type,
        "question": question,
        "from": from_player,
        "to": to_player,
    })


def challenge_discarded(from_player: str, to_player: str, reason: str) -> RoomEvent:
    """Emitted when a participant of a pending challenge leaves or is kicked."""
    return RoomEvent(CHALLENGE_DISCARDED, {"from": from_player, "to": to_player, "reason": reason})


def response_submitted(player: str, text: str) -> RoomEvent:
    return RoomEvent(RESPONSE_SUBMITTED, {"player": player, "response": text})


def reaction_added(player: str, text: str) -> RoomEvent:
    return RoomEvent(REACTION_ADDED, {"player": player, "reaction": text})


def challenge_resolved(from_player: str, to_player: str, accepted: bool) -> RoomEvent:
    return RoomEvent(CHALLENGE_RESOLVED, {"from": from_player, "to": to_player, "accepted": accepted})


def score_changed(player: str, old_value: int, new_value: int) -> RoomEvent:
    return RoomEvent(SCORE_CHANGED, {
        "player": player,
        "old_value": old_value,
        "new_value": new_value,
    })


def game_won(player: str, final_score: dict[str, int]) -> RoomEvent:
    """Emitted when a player reaches the winning score; scores are reset in the same transition."""
    return RoomEvent(GAME_WON, {"winner": player, "final_score": final_score})


def kick_vote_cast(voter: str, target: str, votes: int, required: int) -> RoomEvent:
    return RoomEvent(KICK_VOTE_CAST, {
        "voter": voter,
        "target": target,
        "votes": votes,
        "required": required,
    })


def chat_message_posted(message_id: str, sender: str) -> RoomEvent:
    return RoomEvent(CHAT_MESSAGE_POSTED, {"id": message_id, "sender": sender})


def typing_changed(player: str, is_typing: bool) -> RoomEvent:
    return RoomEvent(TYPING_CHANGED, {"player": player, "is_typing": is_typing})
