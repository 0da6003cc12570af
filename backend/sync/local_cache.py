"""
Device-local cache for the player's chosen display name.
Nothing else about the game is kept locally; the store is the source of truth.
"""

import json
import logging
import os

from backend.config import LOCAL_CACHE_PATH

logger = logging.getLogger(__name__)


class LocalIdentityCache:
    def __init__(self, path: str = LOCAL_CACHE_PATH):
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable identity cache at %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(json.dumps(data, indent=2))

    def get_display_name(self) -> str | None:
        name = self.load().get("display_name")
        return name if isinstance(name, str) and name.strip() else None

    def set_display_name(self, name: str) -> None:
        data = self.load()
        data["display_name"] = name.strip()
        self.save(data)

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
