"""
bot/auth.py - Whitelist of authorized users.

Access control for the bot when WHITELIST_ENABLED is on. Only user ids
in the whitelist, plus the admin, may use the bot. The admin is the
only one allowed to change the list.

How it works:
    1. The whitelist starts from TELEGRAM_USER_WHITELIST
    2. The admin uses /adduser and /removeuser to change it
    3. If WHITELIST_FILE is set, changes are saved to that JSON file and
       reloaded on the next start (otherwise they live in memory only)

Invariant:
    The admin is always authorized, whether or not their id is in the
    explicit set, and can never be removed.

Usage:
    from bot.auth import WhitelistStore

    whitelist = WhitelistStore({111, 222}, admin_id=999)
    whitelist.is_authorized(999)   # True
"""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class WhitelistStore:
    """Thread-safe set of authorized user ids plus one admin id."""

    def __init__(
        self,
        users=(),
        admin_id: int | None = None,
        path: Path | str | None = None,
    ):
        self._admin_id = admin_id
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._users: set[int] = set(users)
        if self._path is not None:
            self._users |= self._load()

    @property
    def admin_id(self) -> int | None:
        return self._admin_id

    def is_admin(self, user_id: int | None) -> bool:
        return user_id is not None and self._admin_id is not None and user_id == self._admin_id

    def is_authorized(self, user_id: int | None) -> bool:
        """Admin or explicit member."""
        if user_id is None:
            return False
        if self.is_admin(user_id):
            return True
        with self._lock:
            return user_id in self._users

    def add(self, user_id: int) -> bool:
        """Adds a user. Returns False if the user was already a member."""
        with self._lock:
            if user_id in self._users:
                return False
            self._users.add(user_id)
            snapshot = set(self._users)
        self._save(snapshot)
        return True

    def remove(self, user_id: int) -> bool:
        """
        Removes a user from the whitelist.

        Returns:
            True if the user was a member and was removed. Always False
            for the admin id, leaving the set unchanged.
        """
        if self.is_admin(user_id):
            logger.warning("[AUTH] Refusing to remove the admin from the whitelist")
            return False
        with self._lock:
            if user_id not in self._users:
                return False
            self._users.discard(user_id)
            snapshot = set(self._users)
        self._save(snapshot)
        return True

    def members(self) -> list[int]:
        with self._lock:
            return sorted(self._users)

    def __contains__(self, user_id: int) -> bool:
        return self.is_authorized(user_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    # ------------------------------------------------------------
    # Persistence (optional)
    # ------------------------------------------------------------

    def _load(self) -> set[int]:
        """
        Loads the whitelisted ids from the JSON file.

        Returns:
            set[int]: Stored ids. Empty set if the file does not exist
                      or cannot be read.
        """
        if not self._path.exists():
            return set()

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return {int(user_id) for user_id in data.get("authorized_users", [])}
        except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"[AUTH] Failed to read whitelist file {self._path}: {e}")
            return set()

    def _save(self, users: set[int]) -> None:
        if self._path is None:
            return

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump({"authorized_users": sorted(users)}, f, indent=2)
            logger.info(f"[AUTH] Whitelist saved: {len(users)} user(s)")
        except OSError as e:
            logger.error(f"[AUTH] Failed to save whitelist file {self._path}: {e}")
