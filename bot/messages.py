"""
bot/messages.py - Localized message catalog.

Messages live in bot/locales/<language>/messages.json. Lookup order:

    1. key in the requested language's catalog
    2. key in the default language's catalog
    3. key in the English catalog (the only complete one)
    4. the raw key itself

A missing or unreadable catalog behaves like an empty one, so lookups
never fail.

Usage:
    from bot.messages import MessageCatalog

    catalog = MessageCatalog(default_language="en")
    catalog.get("language_set", "sv", language="🇸🇪 Svenska")
"""

import json
import logging
import threading
from pathlib import Path

from bot.languages import RTL, get_text_direction

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
FALLBACK_LANGUAGE = "en"

# Unicode right-to-left embedding / pop directional formatting
_RTL_START = "\u202b"
_RTL_END = "\u202c"


class MessageCatalog:
    def __init__(self, locales_dir: Path | str = LOCALES_DIR, default_language: str = "en"):
        self._locales_dir = Path(locales_dir)
        self._default_language = default_language
        self._cache: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    @property
    def default_language(self) -> str:
        return self._default_language

    def _load(self, language: str) -> dict[str, str]:
        with self._lock:
            if language in self._cache:
                return self._cache[language]

        path = self._locales_dir / language / "messages.json"
        try:
            with open(path, "r", encoding="utf-8") as f:
                messages = json.load(f)
            if not isinstance(messages, dict):
                raise ValueError("catalog root must be an object")
        except FileNotFoundError:
            logger.debug(f"[I18N] No catalog for '{language}' at {path}")
            messages = {}
        except (OSError, ValueError) as e:
            logger.error(f"[I18N] Failed to load catalog for '{language}': {e}")
            messages = {}

        with self._lock:
            self._cache[language] = messages
        return messages

    def get(self, key: str, language: str | None = None, **params) -> str:
        """
        Returns the message for `key` in `language` with {param} placeholders filled.

        Args:
            key: Message key (e.g. "welcome").
            language: Language code; defaults to the catalog default.
            **params: Values substituted for {name} placeholders.
        """
        language = language or self._default_language
        message = None
        for code in dict.fromkeys((language, self._default_language, FALLBACK_LANGUAGE)):
            message = self._load(code).get(key)
            if message is not None:
                break
        if message is None:
            message = key

        for name, value in params.items():
            message = message.replace(f"{{{name}}}", str(value))
        return message

    def format(self, key: str, language: str | None = None, **params) -> str:
        """Like get(), wrapped in RTL embedding marks for RTL languages."""
        return format_text(self.get(key, language, **params), language)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


def format_text(text: str, language: str | None) -> str:
    if get_text_direction(language) == RTL:
        return f"{_RTL_START}{text}{_RTL_END}"
    return text
