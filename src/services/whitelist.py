"""
GardenGuard - Whitelist Store
=============================

Users exempt from every scam check, persisted to a JSON file.

File format:
    {"users": [{"id", "username", "display_name", "added_by", "added_at", "reason"}]}

DESIGN:
    The file is the source of truth and is rewritten atomically (temp
    file then replace) on every change. Lookups hit an in-memory index
    loaded once at startup.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from src.core.config import NY_TZ
from src.core.logger import logger


class WhitelistStore:
    """JSON-backed whitelist keyed by user id."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._users: Dict[int, Dict[str, Any]] = {}
        self.load()

    def __len__(self) -> int:
        return len(self._users)

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Read the file, creating an empty one when it does not exist."""
        if not self.path.exists():
            self._users = {}
            self._save()
            return

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Whitelist Load Failed", [
                ("Path", str(self.path)),
                ("Error", str(e)[:100]),
            ])
            self._users = {}
            return

        self._users = {}
        for entry in data.get("users", []):
            try:
                self._users[int(entry["id"])] = entry
            except (KeyError, TypeError, ValueError):
                logger.warning("Whitelist Entry Skipped", [("Entry", str(entry)[:80])])

        logger.tree("Whitelist Loaded", [
            ("Path", str(self.path)),
            ("Users", str(len(self._users))),
        ], emoji="📋")

    def _save(self) -> bool:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump({"users": list(self._users.values())}, f, indent=2)
            os.replace(tmp, self.path)
            return True
        except OSError as e:
            logger.error("Whitelist Save Failed", [
                ("Path", str(self.path)),
                ("Error", str(e)[:100]),
            ])
            return False

    # =========================================================================
    # Operations
    # =========================================================================

    def is_whitelisted(self, user_id: int) -> bool:
        return user_id in self._users

    def get_info(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self._users.get(user_id)

    def list_all(self) -> List[Dict[str, Any]]:
        return list(self._users.values())

    def add(
        self,
        user_id: int,
        username: str = "",
        display_name: str = "",
        added_by: Optional[int] = None,
        reason: str = "Manual whitelist",
    ) -> Tuple[bool, str]:
        if user_id in self._users:
            return False, "User is already whitelisted"

        self._users[user_id] = {
            "id": str(user_id),
            "username": username,
            "display_name": display_name or username,
            "added_by": str(added_by) if added_by is not None else None,
            "added_at": datetime.now(NY_TZ).isoformat(),
            "reason": reason,
        }
        if not self._save():
            del self._users[user_id]
            return False, "Failed to save whitelist"

        logger.tree("Whitelist Add", [
            ("User", f"{username or 'Unknown'} ({user_id})"),
            ("Added By", str(added_by)),
            ("Reason", reason[:50]),
        ], emoji="✅")
        return True, "User added to whitelist"

    def remove(self, user_id: int) -> Tuple[bool, str]:
        entry = self._users.pop(user_id, None)
        if entry is None:
            return False, "User is not in the whitelist"
        if not self._save():
            self._users[user_id] = entry
            return False, "Failed to save whitelist"

        logger.tree("Whitelist Remove", [("User", f"{entry.get('username') or 'Unknown'} ({user_id})")], emoji="🗑️")
        return True, "User removed from whitelist"


__all__ = ["WhitelistStore"]
