"""
Room document parsing, including the older camelCase shape.
"""

from backend.engine.actions import Action, post_chat_message, send_challenge
from backend.engine.queries import public_room_view
from backend.engine.state import Challenge, Room

from conftest import make_room


def test_legacy_document_is_read():
    doc = {
        "name": "Party",
        "owner": "Alice",
        "players": ["Alice", "Bob"],
        "currentTurn": "Bob",
        "isPrivate": True,
        "password": "pw",
        "currentChallenge": {
            "type": "truth",
            "question": "why?",
            "from": "Alice",
            "to": "Bob",
            "completed": False,
        },
        "kickVotes": {"Bob": ["Alice", "Alice"], "Alice": []},
        "chat": {
            "b": {"id": "2", "sender": "Bob", "message": "second", "timestamp": 20},
            "a": {"id": "1", "sender": "Alice", "message": "first", "timestamp": 10},
        },
    }
    room = Room.from_dict(doc, "legacy")
    assert room.id == "legacy"
    assert room.current_turn == "Bob"
    assert room.is_private is True
    assert room.current_challenge == Challenge("truth", "why?", "Alice", "Bob")
    assert room.kick_votes == {"Bob": ["Alice"]}
    assert [m.message for m in room.messages] == ["first", "second"]
    # Missing score map: every player starts at zero.
    assert room.score == {"Alice": 0, "Bob": 0}


def test_from_dict_repairs_turn_and_score():
    room = Room.from_dict({
        "name": "Party",
        "players": ["Alice", "Bob"],
        "current_turn": "Ghost",
        "score": {"Alice": 3, "Ghost": 9, "Bob": "x"},
    })
    assert room.owner == "Alice"
    assert room.current_turn == "Alice"
    assert room.score == {"Alice": 3, "Bob": 0}


def test_json_round_trip_keeps_everything():
    room = make_room(others=["Bob"])
    room.current_challenge = Challenge("dare", "jump", "Alice", "Bob", reactions={"Bob": "😅"})
    assert Room.from_json(room.to_json()) == room


def test_public_view_hides_password_and_adds_derived_fields():
    room = make_room(creator="Eve", others=["Dana"], is_private=True, password="swordfish")
    room.typing = {"Dana": 1_000, "Eve": 1_000}
    view = public_room_view(room, now=2_000, viewer="Eve")
    assert "password" not in view
    assert view["phase"] == "lobby"
    assert view["typing_players"] == ["Dana"]
    assert view["kick_votes_required"] == 2


def test_actions_serialize():
    action = send_challenge("Alice", "dare", "jump", to_player="Bob")
    assert Action.from_dict(action.to_dict()) == action
    chat = post_chat_message("Alice", "hi")
    assert chat.payload["id"]
    assert chat.payload["timestamp"] > 0
