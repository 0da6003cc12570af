"""
Path-addressable room document store.

Paths:
    rooms            -> {room_id: document} for every open room
    rooms/<room_id>  -> the room document, or None once deleted

Writes replace the whole document and are version-checked: a write computed
from version N only lands if the row is still at version N. Every committed
change is pushed to the subscribers of both paths, the writer included, in
the order the changes were committed.
"""

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.engine.errors import ExternalStoreError, NotFoundError, StaleWriteError
from .database import SessionLocal
from .models import RoomRecord

logger = logging.getLogger(__name__)

ROOMS_PATH = "rooms"


def room_path(room_id: str) -> str:
    return f"{ROOMS_PATH}/{room_id}"


@dataclass
class StoreNotification:
    """Latest full value at `path`, plus the events of the write that produced it."""
    path: str
    value: Any
    events: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "value": self.value, "events": self.events}


Listener = Callable[[StoreNotification], None]


def _load_document(row: RoomRecord) -> dict[str, Any]:
    try:
        doc = json.loads(row.document) if isinstance(row.document, str) else dict(row.document or {})
    except (TypeError, json.JSONDecodeError):
        logger.warning("Room %s has a corrupt document; serving it empty", row.id)
        doc = {}
    if not isinstance(doc, dict):
        doc = {}
    # The row is authoritative for identity and version.
    doc["id"] = row.id
    doc["version"] = row.version
    return doc


class RoomStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()
        # Held from commit through delivery so subscribers see versions in commit order.
        self._commit_lock = threading.RLock()

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Room store operation failed")
            raise ExternalStoreError(f"Room store failure: {e}") from e
        finally:
            db.close()

    # ===== Reads =====

    def get(self, room_id: str) -> dict[str, Any] | None:
        with self._session() as db:
            row = db.query(RoomRecord).filter(RoomRecord.id == room_id).first()
            return _load_document(row) if row else None

    def list_rooms(self) -> dict[str, dict[str, Any]]:
        with self._session() as db:
            rows = db.query(RoomRecord).order_by(RoomRecord.created_at, RoomRecord.id).all()
            return {row.id: _load_document(row) for row in rows}

    def read(self, path: str) -> Any:
        if path == ROOMS_PATH:
            return self.list_rooms()
        if path.startswith(ROOMS_PATH + "/"):
            return self.get(path[len(ROOMS_PATH) + 1:])
        raise NotFoundError(f"Unknown store path: {path}")

    # ===== Writes =====

    def create(self, room_id: str, document: dict[str, Any], events: list[dict] | None = None) -> int:
        """Insert a new room at version 1. Returns the version."""
        doc = dict(document, id=room_id, version=1)
        with self._commit_lock:
            with self._session() as db:
                db.add(RoomRecord(
                    id=room_id,
                    name=str(doc.get("name") or ""),
                    version=1,
                    document=json.dumps(doc),
                ))
                try:
                    db.commit()
                except IntegrityError as e:
                    db.rollback()
                    raise StaleWriteError(f"Room {room_id} already exists") from e
            self._publish(room_id, doc, events)
        return 1

    def write(
        self,
        room_id: str,
        document: dict[str, Any],
        expected_version: int,
        events: list[dict] | None = None,
    ) -> int:
        """
        Replace the whole room document if it is still at `expected_version`.
        Returns the new version.

        Raises:
            StaleWriteError: another write landed first
            NotFoundError: the room is gone
        """
        new_version = expected_version + 1
        doc = dict(document, id=room_id, version=new_version)
        with self._commit_lock:
            with self._session() as db:
                updated = (
                    db.query(RoomRecord)
                    .filter(RoomRecord.id == room_id, RoomRecord.version == expected_version)
                    .update(
                        {
                            RoomRecord.version: new_version,
                            RoomRecord.name: str(doc.get("name") or ""),
                            RoomRecord.document: json.dumps(doc),
                            RoomRecord.updated_at: datetime.utcnow(),
                        },
                        synchronize_session=False,
                    )
                )
                db.commit()
                if not updated:
                    self._raise_missed(db, room_id, expected_version)
            self._publish(room_id, doc, events)
        return new_version

    def delete(
        self,
        room_id: str,
        expected_version: int | None = None,
        events: list[dict] | None = None,
    ) -> None:
        """Remove a room. With `expected_version`, only if nobody wrote to it since."""
        with self._commit_lock:
            with self._session() as db:
                query = db.query(RoomRecord).filter(RoomRecord.id == room_id)
                if expected_version is not None:
                    query = query.filter(RoomRecord.version == expected_version)
                deleted = query.delete(synchronize_session=False)
                db.commit()
                if not deleted:
                    self._raise_missed(db, room_id, expected_version)
            self._publish(room_id, None, events)

    @staticmethod
    def _raise_missed(db, room_id: str, expected_version: int | None) -> None:
        row = db.query(RoomRecord.version).filter(RoomRecord.id == room_id).first()
        if row is None:
            raise NotFoundError("Room no longer exists")
        raise StaleWriteError(
            f"Room {room_id} changed (expected version {expected_version}, found {row[0]})"
        )

    # ===== Subscriptions =====

    def subscribe(self, path: str, listener: Listener, send_initial: bool = True) -> Callable[[], None]:
        """
        Register `listener` for `path`. The current value is delivered right away
        (unless send_initial is False), then every change. Returns an unsubscribe function.
        """
        # No write may land between the initial read and the first delivery.
        with self._commit_lock:
            with self._lock:
                self._listeners.setdefault(path, []).append(listener)
            if send_initial:
                self._deliver(listener, StoreNotification(path, self.read(path)))

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(path, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(path, None)

        return unsubscribe

    def _listeners_for(self, path: str) -> list[Listener]:
        with self._lock:
            return list(self._listeners.get(path, []))

    def _publish(self, room_id: str, document: dict[str, Any] | None, events: list[dict] | None) -> None:
        events = list(events or [])
        path = room_path(room_id)
        for listener in self._listeners_for(path):
            self._deliver(listener, StoreNotification(path, document, events))

        registry_listeners = self._listeners_for(ROOMS_PATH)
        if registry_listeners:
            rooms = self.list_rooms()
            for listener in registry_listeners:
                self._deliver(listener, StoreNotification(ROOMS_PATH, rooms, events))

    @staticmethod
    def _deliver(listener: Listener, notification: StoreNotification) -> None:
        try:
            listener(notification)
        except Exception:
            # One broken subscriber must not fail the write that already committed.
            logger.exception("Subscriber for %s failed", notification.path)
