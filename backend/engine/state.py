"""
Room state representation.
Every field is always present; "absent" is an empty collection or None.
Includes JSON serialization for the document store, accepting the older camelCase document shape on read.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Return the first present key's value (new snake_case name first, legacy names after)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _ensure_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        # Firebase-style arrays can come back as {"0": "a", "1": "b"}
        value = [value[k] for k in sorted(value, key=lambda k: int(k) if str(k).isdigit() else 0)]
    if isinstance(value, list):
        return [str(x) for x in value if x is not None]
    return []


def _ensure_unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _ensure_int_map(value: Any) -> dict[str, int]:
    if not isinstance(value, dict):
        return {}
    out = {}
    for k, v in value.items():
        try:
            out[str(k)] = max(0, int(v))
        except (TypeError, ValueError):
            out[str(k)] = 0
    return out


def _ensure_kick_votes(value: Any) -> dict[str, list[str]]:
    """Parse kick_votes; drops empty ballots and duplicate voters."""
    if not isinstance(value, dict):
        return {}
    out = {}
    for target, voters in value.items():
        voters = _ensure_unique(_ensure_str_list(voters))
        if voters:
            out[str(target)] = voters
    return out


@dataclass
class Challenge:
    """The single in-flight truth or dare of a room."""
    type: str  # "truth" | "dare"
    question: str
    from_player: str
    to_player: str
    completed: bool = False
    response: str | None = None
    # player -> reaction text, one per player
    reactions: dict[str, str] = field(default_factory=dict)

    @property
    def pending(self) -> bool:
        return not self.completed

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "question": self.question,
            "from_player": self.from_player,
            "to_player": self.to_player,
            "completed": self.completed,
            "response": self.response,
            "reactions": dict(self.reactions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Challenge":
        if not isinstance(data, dict):
            data = {}
        reactions = data.get("reactions")
        if not isinstance(reactions, dict):
            reactions = {}
        response = data.get("response")
        return cls(
            type=str(data.get("type") or "truth"),
            question=str(data.get("question") or ""),
            from_player=str(_first(data, "from_player", "from") or ""),
            to_player=str(_first(data, "to_player", "to") or ""),
            completed=bool(data.get("completed", False)),
            response=str(response) if response is not None else None,
            reactions={str(k): str(v) for k, v in reactions.items()},
        )


@dataclass
class ChatMessage:
    id: str
    sender: str
    message: str
    timestamp: int  # ms since epoch

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        if not isinstance(data, dict):
            data = {}
        try:
            timestamp = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            timestamp = 0
        return cls(
            id=str(data.get("id") or ""),
            sender=str(data.get("sender") or ""),
            message=str(data.get("message") or ""),
            timestamp=timestamp,
        )


@dataclass
class Room:
    """Complete shared state of one game room."""
    id: str
    name: str
    owner: str
    players: list[str]  # insertion order = turn rotation
    current_turn: str
    is_private: bool = False
    password: str | None = None  # plaintext; never sent to other clients
    current_challenge: Challenge | None = None
    # player -> points; keys are exactly `players`
    score: dict[str, int] = field(default_factory=dict)
    # target -> voters who want the target removed
    kick_votes: dict[str, list[str]] = field(default_factory=dict)
    messages: list[ChatMessage] = field(default_factory=list)
    # player -> ms timestamp of their last "is typing" ping
    typing: dict[str, int] = field(default_factory=dict)
    created_at: int = 0
    # Bumped by the store on every write; writes carry the version they were computed from.
    version: int = 0

    def copy(self) -> "Room":
        """Return a deep copy of this room."""
        return deepcopy(self)

    def has_player(self, player: str) -> bool:
        return player in self.players

    # ===== Serialization Methods =====

    def to_dict(self, include_password: bool = True) -> dict[str, Any]:
        """Convert Room to a dictionary for JSON serialization."""
        out = {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "players": list(self.players),
            "current_turn": self.current_turn,
            "is_private": self.is_private,
            "current_challenge": self.current_challenge.to_dict() if self.current_challenge else None,
            "score": dict(self.score),
            "kick_votes": {t: list(v) for t, v in self.kick_votes.items()},
            "messages": [m.to_dict() for m in self.messages],
            "typing": dict(self.typing),
            "created_at": self.created_at,
            "version": self.version,
        }
        if include_password:
            out["password"] = self.password
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any], room_id: str | None = None) -> "Room":
        """
        Create Room from a stored document.
        Handles the legacy shape (camelCase keys, `chat` instead of `messages`,
        missing score/kickVotes) and repairs the turn/score invariants.
        """
        if not isinstance(data, dict):
            data = {}
        players = _ensure_unique(_ensure_str_list(data.get("players")))
        owner = str(data.get("owner") or (players[0] if players else ""))
        current_turn = str(_first(data, "current_turn", "currentTurn") or "")
        if players and current_turn not in players:
            current_turn = players[0]

        raw_score = _ensure_int_map(data.get("score"))
        score = {p: raw_score.get(p, 0) for p in players}

        challenge_data = _first(data, "current_challenge", "currentChallenge")
        raw_messages = _first(data, "messages", "chat") or []
        if isinstance(raw_messages, dict):
            raw_messages = list(raw_messages.values())
        messages = [ChatMessage.from_dict(m) for m in raw_messages if isinstance(m, dict)]
        messages.sort(key=lambda m: m.timestamp)

        password = data.get("password")
        try:
            created_at = int(_first(data, "created_at", "createdAt") or 0)
            version = int(data.get("version") or 0)
        except (TypeError, ValueError):
            created_at, version = 0, 0
        return cls(
            id=str(room_id or data.get("id") or ""),
            name=str(data.get("name") or ""),
            owner=owner,
            players=players,
            current_turn=current_turn,
            is_private=bool(_first(data, "is_private", "isPrivate") or False),
            password=str(password) if password else None,
            current_challenge=Challenge.from_dict(challenge_data)
            if isinstance(challenge_data, dict) else None,
            score=score,
            kick_votes=_ensure_kick_votes(_first(data, "kick_votes", "kickVotes")),
            messages=messages,
            typing=_ensure_int_map(data.get("typing")),
            created_at=created_at,
            version=version,
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize Room to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "Room":
        """Deserialize Room from a JSON string."""
        return cls.from_dict(json.loads(json_str))
