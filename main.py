"""
Demo entry point for the Truth or Dare room engine.
Plays a few short scenarios against the pure reducer, no server or database needed.
"""

from backend.engine.actions import (
    join_room,
    leave_room,
    send_challenge,
    submit_response,
    add_reaction,
    resolve_challenge,
    vote_kick,
    post_chat_message,
)
from backend.engine.errors import AuthError, ValidationError
from backend.engine.reducer import apply_action, replay_from_actions
from backend.engine.registry import new_room
from backend.engine.utils import print_room


def main():
    print("Truth or Dare - room engine demo")
    print("=" * 60)

    # ===== SCENARIO 1: One full challenge round =====
    print("\n[SCENARIO 1: Alice dares Bob]")
    room, events = new_room("demo-party", "Party", "Alice")
    print(f"  Events: {[e.type for e in events]}")

    room, events = apply_action(room, join_room("Bob"))
    room, events = apply_action(room, send_challenge("Alice", "dare", "sing a song", to_player="Bob"))
    print(f"✓ Challenge sent. Events: {[e.type for e in events]}")
    room, _ = apply_action(room, submit_response("Bob", "la la la"))
    room, _ = apply_action(room, add_reaction("Alice", "👏"))
    room, events = apply_action(room, resolve_challenge("Alice", accepted=True))
    print(f"✓ Challenge resolved. Events: {[e.type for e in events]}")
    print_room(room)

    # ===== SCENARIO 2: Rejected actions leave the room untouched =====
    print("\n[SCENARIO 2: Invalid actions]")
    for action in (
        send_challenge("Alice", "truth", "favourite food?"),  # not Alice's turn any more
        submit_response("Alice", "pizza"),  # no pending challenge
        post_chat_message("Bob", "   "),  # blank message
    ):
        try:
            apply_action(room, action)
            print(f"✗ {action.type} unexpectedly succeeded")
        except ValidationError as e:
            print(f"✓ {action.type} rejected: {e}")

    # ===== SCENARIO 3: Private room =====
    print("\n[SCENARIO 3: Private room]")
    secret, _ = new_room("demo-secret", "Secret", "Eve", is_private=True, password="swordfish")
    try:
        apply_action(secret, join_room("Dana", "wrong"))
    except AuthError as e:
        print(f"✓ Dana rejected: {e}")
    secret, _ = apply_action(secret, join_room("Dana", "swordfish"))
    print(f"✓ Dana joined with the right password: {secret.players}")

    # ===== SCENARIO 4: Kick vote in a five-player room =====
    print("\n[SCENARIO 4: Kicking Carol]")
    big, _ = new_room("demo-big", "Big room", "Alice")
    big, events = replay_from_actions(big, [
        join_room("Bob"),
        join_room("Carol"),
        join_room("Dave"),
        join_room("Erin"),
        vote_kick("Alice", "Carol"),
        vote_kick("Bob", "Carol"),
        vote_kick("Dave", "Carol"),
    ])
    print(f"  Events: {[e.type for e in events]}")
    print_room(big)

    # ===== SCENARIO 5: Everyone leaves =====
    print("\n[SCENARIO 5: Last player leaves]")
    room, _ = apply_action(room, leave_room("Alice"))
    print(f"  Owner is now {room.owner}, turn is {room.current_turn}")
    room, events = apply_action(room, leave_room("Bob"))
    print(f"  Events: {[e.type for e in events]}")
    print_room(room)

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
