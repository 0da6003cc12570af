"""
FastAPI backend for Truth or Dare.
REST endpoints for accounts, the room lobby and room actions, plus WebSocket
streams that push every stored room change to connected clients.
"""

import asyncio
import logging
import traceback
import uuid
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .database import get_db, init_db
from .models import User
from .auth import (
    create_access_token,
    get_current_identity,
    get_current_identity_optional,
    get_current_user,
    hash_password,
    validate_username,
    verify_password,
)
from .rooms import RoomService
from .store import ROOMS_PATH, RoomStore, StoreNotification, room_path

from backend.config import CORS_ORIGINS
from backend.engine.actions import (
    add_reaction,
    join_room,
    leave_room,
    post_chat_message,
    resolve_challenge,
    send_challenge,
    set_typing,
    submit_response,
    vote_kick,
)
from backend.engine.errors import (
    AuthError,
    ExternalStoreError,
    NotFoundError,
    RoomError,
    StaleWriteError,
    ValidationError,
)
from backend.engine.events import RoomEvent
from backend.engine.queries import get_kick_status, get_room_summary, public_room_view
from backend.engine.state import Room
from backend.engine.utils import now_ms

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Truth or Dare API",
    description="Backend API for Truth or Dare - a multiplayer party game",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = RoomStore()
rooms = RoomService(store)

# Per-connection backlog of undelivered notifications.
STREAM_QUEUE_SIZE = 32

# Most specific first: StaleWriteError is an ExternalStoreError.
ERROR_STATUS_CODES: list[tuple[type[RoomError], int]] = [
    (ValidationError, 400),
    (AuthError, 403),
    (NotFoundError, 404),
    (StaleWriteError, 409),
    (ExternalStoreError, 503),
]


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[%d] %s %s", response.status_code, request.method, request.url.path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", request.method, request.url.path)
        raise


@app.exception_handler(RoomError)
async def room_error_handler(request, exc: RoomError):
    status_code = next((code for cls, code in ERROR_STATUS_CODES if isinstance(exc, cls)), 400)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.kind},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with the traceback so the frontend can show the error."""
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("Unhandled error on %s %s\n%s", request.method, request.url.path, tb)
    return JSONResponse(status_code=500, content={"detail": str(exc), "traceback": tb})


# ===== Pydantic Models =====

class RegisterRequest(BaseModel):
    email: str
    username: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateRoomRequest(BaseModel):
    name: str
    is_private: bool = False
    password: str | None = None


class JoinRoomRequest(BaseModel):
    password: str | None = None


class ChallengeRequest(BaseModel):
    type: str  # "truth" | "dare"
    question: str
    to: str | None = None  # omitted = next player in rotation


class ResponseRequest(BaseModel):
    text: str


class ReactionRequest(BaseModel):
    text: str


class ResolveRequest(BaseModel):
    accepted: bool


class KickVoteRequest(BaseModel):
    target: str


class ChatRequest(BaseModel):
    message: str


class TypingRequest(BaseModel):
    is_typing: bool


# ===== Helper Functions =====

def room_response(room: Room | None, events: list[RoomEvent], viewer: str | None = None) -> dict[str, Any]:
    return {
        "room": public_room_view(room, now_ms(), viewer) if room is not None else None,
        "events": [e.to_dict() for e in events],
    }


@app.on_event("startup")
def on_startup():
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Truth or Dare API", "version": "1.0.0"}


# ----- Auth -----

@app.post("/auth/register")
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Register with email, username (unique, no spaces/special), and password. The username is the room identity."""
    if not validate_username(request.username):
        raise HTTPException(
            status_code=400,
            detail="Username must be 2–32 characters, letters numbers and underscore only",
        )
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if db.query(User).filter(User.username == request.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    try:
        user_id = str(uuid.uuid4())
        user = User(
            id=user_id,
            email=request.email,
            username=request.username,
            password_hash=hash_password(request.password),
        )
        db.add(user)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Registration failed for %s", request.email)
        raise HTTPException(status_code=500, detail=f"Registration failed: {str(e)}")
    token = create_access_token(user_id)
    return {"access_token": token, "user": {"id": user_id, "email": user.email, "username": user.username}}


@app.post("/auth/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token(user.id)
    return {"access_token": token, "user": {"id": user.id, "email": user.email, "username": user.username}}


@app.get("/auth/me")
def auth_me(user: User = Depends(get_current_user)):
    return {"id": user.id, "email": user.email, "username": user.username}


# ----- Lobby -----

@app.get("/rooms")
def list_rooms(viewer: str | None = Depends(get_current_identity_optional)):
    """All open rooms keyed by id (passwords stripped)."""
    now = now_ms()
    return {"rooms": {rid: public_room_view(r, now, viewer) for rid, r in rooms.list_rooms().items()}}


@app.get("/lobby")
def lobby():
    """Compact lobby rows (no chat, no password), oldest room first."""
    return {"rooms": [get_room_summary(r) for r in rooms.list_rooms().values()]}


@app.post("/rooms")
def create_room(request: CreateRoomRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.create_room(
        request.name,
        identity,
        is_private=request.is_private,
        password=request.password,
    )
    return room_response(room, events, identity)


@app.get("/rooms/{room_id}")
def get_room(room_id: str, viewer: str | None = Depends(get_current_identity_optional)):
    return {"room": public_room_view(rooms.get_room(room_id), now_ms(), viewer)}


@app.delete("/rooms/{room_id}")
def delete_room(room_id: str, identity: str = Depends(get_current_identity)):
    """Delete a room outright. Only its owner may do this."""
    events = rooms.delete_room(room_id, identity)
    return {"message": f"Room {room_id} deleted", "events": [e.to_dict() for e in events]}


@app.get("/rooms/{room_id}/kick-votes/{target}")
def get_kick_votes(room_id: str, target: str):
    """Current votes against `target` and how many are required."""
    return get_kick_status(rooms.get_room(room_id), target)


# ----- Room actions -----

@app.post("/rooms/{room_id}/join")
def do_join(room_id: str, request: JoinRoomRequest | None = None, identity: str = Depends(get_current_identity)):
    password = request.password if request else None
    room, events = rooms.dispatch(room_id, join_room(identity, password))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/leave")
def do_leave(room_id: str, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, leave_room(identity))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/challenge")
def do_send_challenge(room_id: str, request: ChallengeRequest, identity: str = Depends(get_current_identity)):
    action = send_challenge(identity, request.type, request.question, to_player=request.to)
    room, events = rooms.dispatch(room_id, action)
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/response")
def do_submit_response(room_id: str, request: ResponseRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, submit_response(identity, request.text))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/reactions")
def do_add_reaction(room_id: str, request: ReactionRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, add_reaction(identity, request.text))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/resolve")
def do_resolve_challenge(room_id: str, request: ResolveRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, resolve_challenge(identity, request.accepted))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/kick-votes")
def do_vote_kick(room_id: str, request: KickVoteRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, vote_kick(identity, request.target))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/chat")
def do_post_chat_message(room_id: str, request: ChatRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, post_chat_message(identity, request.message))
    return room_response(room, events, identity)


@app.post("/rooms/{room_id}/typing")
def do_set_typing(room_id: str, request: TypingRequest, identity: str = Depends(get_current_identity)):
    room, events = rooms.dispatch(room_id, set_typing(identity, request.is_typing))
    return room_response(room, events, identity)


# ===== Live updates =====

def _render_rooms(note: StoreNotification) -> dict[str, Any]:
    now = now_ms()
    data = {rid: public_room_view(Room.from_dict(doc, rid), now) for rid, doc in (note.value or {}).items()}
    return {"type": "rooms", "data": data}


def _render_room(note: StoreNotification) -> dict[str, Any]:
    data = public_room_view(Room.from_dict(note.value), now_ms()) if note.value is not None else None
    return {"type": "room", "data": data, "events": note.events}


async def _wait_for_disconnect(ws: WebSocket) -> None:
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        return


def _offer(queue: asyncio.Queue, note: StoreNotification) -> None:
    """Queue `note`; a client that fell STREAM_QUEUE_SIZE notifications behind loses the oldest."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(note)


async def _stream(ws: WebSocket, path: str, render: Callable[[StoreNotification], dict[str, Any]]) -> None:
    """Forward every notification on `path` to `ws` until the client goes away."""
    await ws.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)

    def _listener(note: StoreNotification) -> None:
        # Store writes happen on worker threads; hand off to this connection's loop.
        loop.call_soon_threadsafe(_offer, queue, note)

    unsubscribe = await run_in_threadpool(store.subscribe, path, _listener)
    receiver = asyncio.create_task(_wait_for_disconnect(ws))
    getter = None
    try:
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                break
            await ws.send_json(render(getter.result()))
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        receiver.cancel()
        if getter is not None:
            getter.cancel()


@app.websocket("/ws/rooms")
async def rooms_ws(ws: WebSocket):
    """Lobby stream: the full set of open rooms after every change."""
    await _stream(ws, ROOMS_PATH, _render_rooms)


@app.websocket("/ws/rooms/{room_id}")
async def room_ws(ws: WebSocket, room_id: str):
    """Room stream: the room after every change (data is null once it is deleted)."""
    await _stream(ws, room_path(room_id), _render_room)
