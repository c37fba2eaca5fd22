"""
bot/session.py - Per-user language preferences.

In-memory only: preferences are created on the first /language call and
lost on restart. Users without a preference get the configured default.
"""

import logging
import threading

from bot.languages import is_valid_language, resolve_language

logger = logging.getLogger(__name__)


class LanguageStore:
    """Thread-safe mapping user id → language code."""

    def __init__(self, default_language: str = "en"):
        self._default = resolve_language(default_language)
        self._preferences: dict[int, str] = {}
        self._lock = threading.Lock()

    @property
    def default_language(self) -> str:
        return self._default

    def get(self, user_id: int | None) -> str:
        if user_id is None:
            return self._default
        with self._lock:
            return self._preferences.get(user_id, self._default)

    def set(self, user_id: int, language: str | None) -> bool:
        """
        Stores the preference.

        Returns:
            False (and changes nothing) if `language` is not supported.
        """
        code = (language or "").strip().lower()
        if not is_valid_language(code):
            return False
        with self._lock:
            self._preferences[user_id] = code
        return True

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._preferences.pop(user_id, None)
