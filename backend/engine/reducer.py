"""
Main room reducer.
Applies actions to a room, enforcing the rules and producing a new room.
Returns (new_room, events) where new_room is None when the room was emptied
and must be deleted, and events describe what happened.
The input room is never mutated; a rejected action raises before anything changes.
"""

from backend.config import WINNING_SCORE
from backend.engine import CHALLENGE_TYPES
from backend.engine.actions import (
    Action,
    JOIN_ROOM,
    LEAVE_ROOM,
    SEND_CHALLENGE,
    SUBMIT_RESPONSE,
    ADD_REACTION,
    RESOLVE_CHALLENGE,
    VOTE_KICK,
    POST_CHAT_MESSAGE,
    SET_TYPING,
)
from backend.engine.errors import AuthError, ValidationError
from backend.engine.events import (
    RoomEvent,
    room_deleted,
    player_joined,
    player_left,
    player_kicked,
    owner_changed,
    turn_changed,
    challenge_sent,
    challenge_discarded,
    response_submitted,
    reaction_added,
    challenge_resolved,
    score_changed,
    game_won,
    kick_vote_cast,
    chat_message_posted,
    typing_changed,
)
from backend.engine.state import Room, Challenge, ChatMessage
from backend.engine.utils import kick_votes_required, next_player_after


def apply_action(room: Room, action: Action) -> tuple[Room | None, list[RoomEvent]]:
    """
    Apply a single action to the current room, returning the new room and events.

    Args:
        room: Current authoritative room snapshot
        action: Action to apply

    Returns:
        Tuple of (new_room, events). new_room is None when the last player left.

    Raises:
        ValidationError: a precondition of the action does not hold
        AuthError: wrong password on join
    """
    if not action.player:
        raise ValidationError("Missing player identity")

    handler = _HANDLERS.get(action.type)
    if handler is None:
        raise ValidationError(f"Unknown action type: {action.type}")

    new_room = room.copy()
    return handler(new_room, action)


# ===== Membership =====

def _handle_join_room(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    player = action.player
    if room.is_private and not room.has_player(player):
        if action.payload.get("password") != room.password:
            raise AuthError("Incorrect room password")

    # Already in the room: reconnect, adopt the current snapshot.
    if room.has_player(player):
        return room, []

    room.players.append(player)
    room.score[player] = 0
    return room, [player_joined(player)]


def _handle_leave_room(room: Room, action: Action) -> tuple[Room | None, list[RoomEvent]]:
    player = action.player
    if not room.has_player(player):
        raise ValidationError(f"{player} is not in this room")

    events = [player_left(player)]
    room, removal_events = _remove_player(room, player, reason="left")
    events.extend(removal_events)
    return room, events


def _remove_player(room: Room, player: str, reason: str) -> tuple[Room | None, list[RoomEvent]]:
    """
    Remove a player and repair every invariant that referenced them.
    Shared by leave and a successful kick vote.
    """
    events: list[RoomEvent] = []
    idx = room.players.index(player)
    room.players.remove(player)
    room.score.pop(player, None)
    room.typing.pop(player, None)

    if not room.players:
        events.append(room_deleted(room.id, "empty"))
        return None, events

    if room.owner == player:
        room.owner = room.players[0]
        events.append(owner_changed(player, room.owner))

    # Turn passes to whoever now sits at the leaver's seat (next in rotation).
    if room.current_turn == player:
        room.current_turn = room.players[idx % len(room.players)]
        events.append(turn_changed(player, room.current_turn))

    ch = room.current_challenge
    if ch and ch.pending and player in (ch.from_player, ch.to_player):
        room.current_challenge = None
        events.append(challenge_discarded(ch.from_player, ch.to_player, reason))

    room.kick_votes.pop(player, None)
    for target in list(room.kick_votes):
        voters = [v for v in room.kick_votes[target] if v != player]
        if voters:
            room.kick_votes[target] = voters
        else:
            del room.kick_votes[target]

    return room, events


# ===== Challenges =====

def _handle_send_challenge(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    """
    Validates:
    - Sender is in the room and holds the turn
    - No challenge is pending
    - Type is truth or dare, question is not empty
    - Recipient is another player in the room (defaults to the next player in rotation)
    """
    sender = action.player
    challenge_type = action.payload.get("type")
    question = (action.payload.get("question") or "").strip()
    recipient = action.payload.get("to")

    if not room.has_player(sender):
        raise ValidationError(f"{sender} is not in this room")
    if room.current_turn != sender:
        raise ValidationError(f"Not your turn. Current turn: {room.current_turn}")
    if room.current_challenge is not None and room.current_challenge.pending:
        raise ValidationError("A challenge is already in progress")
    if challenge_type not in CHALLENGE_TYPES:
        raise ValidationError(f"Challenge type must be one of: {', '.join(CHALLENGE_TYPES)}")
    if not question:
        raise ValidationError("Please enter a challenge")

    if recipient is None:
        recipient = next_player_after(room.players, sender)
        if recipient is None:
            raise ValidationError("Nobody else is in the room to challenge")
    if recipient == sender:
        raise ValidationError("You cannot challenge yourself")
    if not room.has_player(recipient):
        raise ValidationError(f"{recipient} is not in this room")

    room.current_challenge = Challenge(
        type=challenge_type,
        question=question,
        from_player=sender,
        to_player=recipient,
    )
    events = [challenge_sent(challenge_type, question, sender, recipient)]
    if room.current_turn != recipient:
        events.append(turn_changed(room.current_turn, recipient))
        room.current_turn = recipient
    return room, events


def _require_pending_challenge(room: Room) -> Challenge:
    ch = room.current_challenge
    if ch is None:
        raise ValidationError("There is no active challenge")
    if ch.completed:
        raise ValidationError("The challenge is already completed")
    return ch


def _handle_submit_response(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    ch = _require_pending_challenge(room)
    text = (action.payload.get("text") or "").strip()
    if action.player != ch.to_player:
        raise ValidationError("Only the challenged player can respond")
    if ch.response is not None:
        raise ValidationError("A response was already submitted")
    if not text:
        raise ValidationError("Please enter a response")

    ch.response = text
    return room, [response_submitted(action.player, text)]


def _handle_add_reaction(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    ch = room.current_challenge
    text = (action.payload.get("text") or "").strip()
    if ch is None:
        raise ValidationError("There is no challenge to react to")
    if not room.has_player(action.player):
        raise ValidationError(f"{action.player} is not in this room")
    if not text:
        raise ValidationError("Reaction cannot be empty")

    # One reaction per player per challenge; later ones are ignored.
    if action.player in ch.reactions:
        return room, []

    ch.reactions[action.player] = text
    return room, [reaction_added(action.player, text)]


def _handle_resolve_challenge(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    """
    Validates:
    - A challenge is pending and has a response
    - Requester is the challenger

    Accepting scores a point for the responder. Reaching WINNING_SCORE resets
    every score to 0 in the same transition. The responder takes the next turn.
    """
    ch = _require_pending_challenge(room)
    accepted = bool(action.payload.get("accepted"))
    if action.player != ch.from_player:
        raise ValidationError("Only the player who sent the challenge can resolve it")
    if ch.response is None:
        raise ValidationError("Waiting for a response")

    events: list[RoomEvent] = []
    ch.completed = True
    events.append(challenge_resolved(ch.from_player, ch.to_player, accepted))

    if accepted and ch.to_player in room.score:
        old_value = room.score[ch.to_player]
        room.score[ch.to_player] = old_value + 1
        events.append(score_changed(ch.to_player, old_value, old_value + 1))
        if room.score[ch.to_player] >= WINNING_SCORE:
            events.append(game_won(ch.to_player, dict(room.score)))
            room.score = {p: 0 for p in room.players}

    if ch.to_player in room.players and room.current_turn != ch.to_player:
        events.append(turn_changed(room.current_turn, ch.to_player))
        room.current_turn = ch.to_player
    return room, events


# ===== Kick votes =====

def _handle_vote_kick(room: Room, action: Action) -> tuple[Room | None, list[RoomEvent]]:
    voter = action.player
    target = action.payload.get("target") or ""
    if not room.has_player(voter):
        raise ValidationError(f"{voter} is not in this room")
    if not room.has_player(target):
        raise ValidationError(f"{target} is not in this room")
    if voter == target:
        raise ValidationError("You cannot vote to kick yourself")
    voters = room.kick_votes.get(target, [])
    if voter in voters:
        raise ValidationError(f"You already voted to kick {target}")

    voters = voters + [voter]
    room.kick_votes[target] = voters
    required = kick_votes_required(len(room.players))
    events = [kick_vote_cast(voter, target, len(voters), required)]

    if len(voters) >= required:
        events.append(player_kicked(target, voters))
        room, removal_events = _remove_player(room, target, reason="kicked")
        events.extend(removal_events)
    return room, events


# ===== Chat =====

def _handle_post_chat_message(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    sender = action.player
    text = (action.payload.get("text") or "").strip()
    if not room.has_player(sender):
        raise ValidationError(f"{sender} is not in this room")
    if not text:
        raise ValidationError("Message cannot be empty")

    message = ChatMessage(
        id=str(action.payload.get("id") or ""),
        sender=sender,
        message=text,
        timestamp=int(action.payload.get("timestamp") or 0),
    )
    room.messages.append(message)
    room.typing.pop(sender, None)
    return room, [chat_message_posted(message.id, sender)]


def _handle_set_typing(room: Room, action: Action) -> tuple[Room, list[RoomEvent]]:
    player = action.player
    if not room.has_player(player):
        raise ValidationError(f"{player} is not in this room")

    is_typing = bool(action.payload.get("is_typing"))
    was_typing = player in room.typing
    if is_typing:
        room.typing[player] = int(action.payload.get("timestamp") or 0)
    else:
        room.typing.pop(player, None)
    if was_typing == is_typing:
        return room, []
    return room, [typing_changed(player, is_typing)]


_HANDLERS = {
    JOIN_ROOM: _handle_join_room,
    LEAVE_ROOM: _handle_leave_room,
    SEND_CHALLENGE: _handle_send_challenge,
    SUBMIT_RESPONSE: _handle_submit_response,
    ADD_REACTION: _handle_add_reaction,
    RESOLVE_CHALLENGE: _handle_resolve_challenge,
    VOTE_KICK: _handle_vote_kick,
    POST_CHAT_MESSAGE: _handle_post_chat_message,
    SET_TYPING: _handle_set_typing,
}


def replay_from_actions(
    initial_room: Room,
    actions: list[Action],
) -> tuple[Room | None, list[RoomEvent]]:
    """
    Replay a series of actions from an initial room.
    Stops early if the room gets deleted along the way.

    Returns:
        Tuple of (final_room, all_events) after all actions applied
    """
    current_room: Room | None = initial_room.copy()
    all_events: list[RoomEvent] = []

    for action in actions:
        if current_room is None:
            break
        current_room, events = apply_action(current_room, action)
        all_events.extend(events)

    return current_room, all_events
