"""
Action definitions for a room.
Actions are immutable, deterministic instructions: anything random or
time-dependent (message ids, timestamps) is fixed when the action is built,
so the reducer stays pure.
"""

import uuid
from dataclasses import dataclass

from backend.engine.utils import now_ms


# ===== Action Type Constants =====

JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
SEND_CHALLENGE = "send_challenge"
SUBMIT_RESPONSE = "submit_response"
ADD_REACTION = "add_reaction"
RESOLVE_CHALLENGE = "resolve_challenge"
VOTE_KICK = "vote_kick"
POST_CHAT_MESSAGE = "post_chat_message"
SET_TYPING = "set_typing"


@dataclass(frozen=True)
class Action:
    """Base action class. All actions have a type, the acting player, and a payload."""
    type: str
    player: str  # identity of the participant performing the action
    payload: dict

    def to_dict(self) -> dict:
        return {"type": self.type, "player": self.player, "payload": dict(self.payload)}

    @classmethod
    def from_dict(cls, data: dict) -> "Action":
        return cls(
            type=str(data.get("type") or ""),
            player=str(data.get("player") or ""),
            payload=dict(data.get("payload") or {}),
        )


def join_room(player: str, password: str | None = None) -> Action:
    """Join a room. Private rooms need the matching password; re-joining is a no-op."""
    return Action(type=JOIN_ROOM, player=player, payload={"password": password})


def leave_room(player: str) -> Action:
    """Leave a room. The last player leaving deletes it."""
    return Action(type=LEAVE_ROOM, player=player, payload={})


def send_challenge(
    player: str,
    challenge_type: str,  # "truth" | "dare"
    question: str,
    to_player: str | None = None,  # None = next player in rotation
) -> Action:
    """
    Issue a truth or dare. Only the player holding the turn may send one,
    and only when no challenge is pending.

    Example: send_challenge("Alice", "dare", "sing a song", to_player="Bob")
    """
    return Action(
        type=SEND_CHALLENGE,
        player=player,
        payload={"type": challenge_type, "question": question, "to": to_player},
    )


def submit_response(player: str, text: str) -> Action:
    """Answer the pending challenge. Only its recipient may respond, once."""
    return Action(type=SUBMIT_RESPONSE, player=player, payload={"text": text})


def add_reaction(player: str, text: str) -> Action:
    """React to the current challenge (e.g. an emoji). One reaction per player."""
    return Action(type=ADD_REACTION, player=player, payload={"text": text})


def resolve_challenge(player: str, accepted: bool) -> Action:
    """
    Accept or reject the submitted response. Only the challenger may resolve.
    Accepting scores a point for the responder; the responder takes the next turn either way.
    """
    return Action(type=RESOLVE_CHALLENGE, player=player, payload={"accepted": bool(accepted)})


def vote_kick(player: str, target: str) -> Action:
    """Vote to remove `target`. Removal happens once enough distinct players voted."""
    return Action(type=VOTE_KICK, player=player, payload={"target": target})


def post_chat_message(
    player: str,
    text: str,
    message_id: str | None = None,
    timestamp: int | None = None,
) -> Action:
    return Action(
        type=POST_CHAT_MESSAGE,
        player=player,
        payload={
            "id": message_id or uuid.uuid4().hex,
            "text": text,
            "timestamp": timestamp if timestamp is not None else now_ms(),
        },
    )


def set_typing(player: str, is_typing: bool, timestamp: int | None = None) -> Action:
    return Action(
        type=SET_TYPING,
        player=player,
        payload={
            "is_typing": bool(is_typing),
            "timestamp": timestamp if timestamp is not None else now_ms(),
        },
    )
