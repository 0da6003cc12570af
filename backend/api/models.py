"""
SQLAlchemy models for accounts and room documents.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text

from backend.config import MAX_ROOM_NAME_LENGTH
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # uuid
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)  # room identity, no spaces/special
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RoomRecord(Base):
    """One row per room; `document` is the whole room as JSON, written wholesale."""
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True)  # uuid hex
    name = Column(String(MAX_ROOM_NAME_LENGTH), nullable=False)
    version = Column(Integer, nullable=False, default=1)  # bumped on every write
    document = Column(Text, nullable=False)  # JSON string of the full Room
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
