"""
Small helpers shared by the engine and the service layer.
"""

import time

from backend.config import KICK_VOTE_STEPS, KICK_VOTES_LARGE_ROOM
from backend.engine.state import Room


def now_ms() -> int:
    return int(time.time() * 1000)


def kick_votes_required(player_count: int) -> int:
    """Votes needed to remove a player: 2 up to 4 players, 3 up to 7, 4 beyond."""
    for max_players, votes in KICK_VOTE_STEPS:
        if player_count <= max_players:
            return votes
    return KICK_VOTES_LARGE_ROOM


def next_player_after(players: list[str], player: str) -> str | None:
    """Next player in rotation after `player` (wrapping). None if nobody else is there."""
    if player not in players or len(players) < 2:
        return None
    idx = players.index(player)
    return players[(idx + 1) % len(players)]


def print_room(room: Room | None) -> None:
    """Print a readable summary of a room (for demos and debugging)."""
    if room is None:
        print("  (room deleted)")
        return
    print(f"  Room {room.name!r} [{room.id}] v{room.version} owner={room.owner}"
          f"{' (private)' if room.is_private else ''}")
    print(f"  Players: {', '.join(room.players)}  | turn: {room.current_turn}")
    print(f"  Score: {room.score}")
    ch = room.current_challenge
    if ch:
        status = "completed" if ch.completed else ("answered" if ch.response is not None else "pending")
        print(f"  Challenge: {ch.type} {ch.from_player} -> {ch.to_player}: {ch.question!r} [{status}]")
        if ch.response is not None:
            print(f"    Response: {ch.response!r}")
        if ch.reactions:
            print(f"    Reactions: {ch.reactions}")
    if room.kick_votes:
        print(f"  Kick votes: {room.kick_votes}")
    for m in room.messages[-5:]:
        print(f"  [{m.timestamp}] {m.sender}: {m.message}")
