"""
Auth helpers: password hashing, JWT, and resolving who is acting in a room.
Bcrypt accepts at most 72 bytes; we truncate manually before hashing.

A room identity is either a registered account's username (Bearer token) or,
for guests, a free display name sent in the X-Display-Name header.
"""

import bcrypt
import os
import re
from datetime import datetime, timedelta, timezone
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

# Username: alphanumeric and underscore only, 2–32 chars
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{2,32}$")
DISPLAY_NAME_MAX_LENGTH = 32

SECRET_KEY = os.environ.get("JWT_SECRET", "change-me-in-production-use-env")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 30

BCRYPT_MAX_BYTES = 72
# Lower rounds = faster register/login; 10 is still strong and ~instant
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))
security = HTTPBearer(auto_error=False)


def _truncate_password(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    pwd_bytes = _truncate_password(password)
    return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    pwd_bytes = _truncate_password(plain)
    return bcrypt.checkpw(pwd_bytes, hashed.encode("ascii"))


def create_access_token(user_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> str | None:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload.get("sub")
    except JWTError:
        return None


def validate_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


def normalize_display_name(name: str | None) -> str | None:
    """Stripped guest name, or None if it is empty, too long, or contains markup/control characters."""
    n = (name or "").strip()
    if not n or len(n) > DISPLAY_NAME_MAX_LENGTH:
        return None
    if "<" in n or ">" in n:
        return None
    if any(ord(ch) < 32 for ch in n):
        return None
    return n


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User | None:
    if not credentials:
        return None
    user_id = decode_token(credentials.credentials)
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_identity(
    user: User | None = Depends(get_current_user_optional),
    x_display_name: str | None = Header(default=None),
) -> str:
    """Room identity of the caller: account username if signed in, else the guest display name."""
    if user is not None:
        return user.username
    if x_display_name is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in or send X-Display-Name",
            headers={"WWW-Authenticate": "Bearer"},
        )
    name = normalize_display_name(x_display_name)
    if name is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Display name must be 1–{DISPLAY_NAME_MAX_LENGTH} characters without < > or control characters",
        )
    return name


def get_current_identity_optional(
    user: User | None = Depends(get_current_user_optional),
    x_display_name: str | None = Header(default=None),
) -> str | None:
    if user is not None:
        return user.username
    return normalize_display_name(x_display_name)
