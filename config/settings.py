"""
config/settings.py - Centralized bot configuration.

Loads environment variables from the .env file (local development)
or from the system environment (production).

All settings are validated at startup: if something required is
missing, the bot exits immediately with a clear message instead of
failing silently later on.

Usage:
    from config.settings import load_settings
    settings = load_settings()
    print(settings.TELEGRAM_BOT_TOKEN)
"""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_SUPPORTED_AUDIO_FORMATS: tuple[str, ...] = (
    "audio/ogg",
    "audio/mpeg",
    "audio/wav",
    "audio/mp3",
)

DEFAULT_GROUP_COMMANDS: tuple[str, ...] = ("help", "language", "proofread")

SPEECH_BACKENDS: tuple[str, ...] = ("google", "whisper")


@dataclass(frozen=True)
class Settings:
    """
    Immutable bot settings.

    Attributes:
        TELEGRAM_BOT_TOKEN: Bot token obtained from @BotFather.
        SPEECH_BACKEND: "google" (Cloud Speech-to-Text) or "whisper" (OpenAI).
        GOOGLE_APPLICATION_CREDENTIALS: Path to the Google service account JSON.
        OPENAI_API_KEY: OpenAI key (Whisper backend and/or proofreading).
        WHITELIST_ENABLED: When True only whitelisted users may talk to the bot.
        WHITELIST_USERS: Initially authorized Telegram user ids.
        ADMIN_USER_ID: The only user allowed to manage the whitelist.
        WHITELIST_FILE: Optional JSON file where whitelist changes are persisted.
        GROUP_COMMANDS_ONLY: In groups, only react to allowed commands.
        GROUP_ALLOWED_COMMANDS: Commands accepted in group chats.
        GROUP_IGNORE_NON_COMMANDS: Silently drop non-command group messages.
        MAX_AUDIO_SIZE_MB: Maximum audio size in MB (default: 20).
        SUPPORTED_AUDIO_FORMATS: Accepted MIME types for audio attachments.
        DEFAULT_LANGUAGE: Language used when the user has not picked one.
        PROOFREADING_ENABLED: Enables the external (OpenAI) proofreading stage.
        PROOFREADING_MODEL: Chat model used for proofreading.
        WHISPER_TEMPERATURE: Whisper temperature (0 = maximum precision).
        TEMP_DIR: Scratch directory for audio files.
        LOG_DIR: Directory for the daily log files ("" disables file logging).
        DEBUG_MODE: Start with verbose (DEBUG) logging.
        DOWNLOAD_TIMEOUT: Timeout in seconds for audio downloads.
    """

    TELEGRAM_BOT_TOKEN: str
    SPEECH_BACKEND: str = "google"
    GOOGLE_APPLICATION_CREDENTIALS: str = ""
    OPENAI_API_KEY: str = ""
    WHITELIST_ENABLED: bool = False
    WHITELIST_USERS: frozenset[int] = frozenset()
    ADMIN_USER_ID: int | None = None
    WHITELIST_FILE: str = ""
    GROUP_COMMANDS_ONLY: bool = True
    GROUP_ALLOWED_COMMANDS: tuple[str, ...] = DEFAULT_GROUP_COMMANDS
    GROUP_IGNORE_NON_COMMANDS: bool = True
    MAX_AUDIO_SIZE_MB: int = 20
    SUPPORTED_AUDIO_FORMATS: tuple[str, ...] = DEFAULT_SUPPORTED_AUDIO_FORMATS
    DEFAULT_LANGUAGE: str = "en"
    PROOFREADING_ENABLED: bool = False
    PROOFREADING_MODEL: str = "gpt-4o-mini"
    WHISPER_TEMPERATURE: float = 0.0
    TEMP_DIR: str = "temp"
    LOG_DIR: str = "logs"
    DEBUG_MODE: bool = False
    DOWNLOAD_TIMEOUT: float = 60.0

    @property
    def max_audio_size_bytes(self) -> int:
        """Maximum size in bytes (for direct comparison)."""
        return self.MAX_AUDIO_SIZE_MB * 1024 * 1024


class ConfigurationError(ValueError):
    """A configuration value is missing or malformed."""


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None or not value.strip():
        return default
    items = (item.strip() for item in value.split(","))
    return tuple(item for item in items if item)


def _parse_id_list(value: str | None) -> frozenset[int]:
    """Parses "123, 456" into {123, 456}."""
    ids = set()
    for item in _parse_list(value, ()):
        try:
            ids.add(int(item))
        except ValueError as e:
            raise ConfigurationError(f"invalid user id in TELEGRAM_USER_WHITELIST: {item!r}") from e
    return frozenset(ids)


def _parse_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def build_settings(env: Mapping[str, str]) -> Settings:
    """
    Builds and validates Settings from a mapping of environment variables.

    Raises:
        ConfigurationError: If a required variable is missing or malformed.
    """
    token = env.get("TELEGRAM_BOT_TOKEN", "").strip()
    missing = []
    if not token:
        missing.append("TELEGRAM_BOT_TOKEN")

    speech_backend = env.get("SPEECH_BACKEND", "google").strip().lower() or "google"
    if speech_backend not in SPEECH_BACKENDS:
        raise ConfigurationError(
            f"SPEECH_BACKEND must be one of {', '.join(SPEECH_BACKENDS)}, got {speech_backend!r}"
        )

    google_credentials = env.get("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    openai_key = env.get("OPENAI_API_KEY", "").strip()
    proofreading_enabled = _parse_bool(env.get("PROOFREADING_ENABLED"), default=bool(openai_key))

    if speech_backend == "google" and not google_credentials:
        missing.append("GOOGLE_APPLICATION_CREDENTIALS")
    if (speech_backend == "whisper" or proofreading_enabled) and not openai_key:
        missing.append("OPENAI_API_KEY")

    whitelist_enabled = _parse_bool(env.get("WHITELIST_ENABLED"))
    admin_id = _parse_number(env, "ADMIN_USER_ID", None, int)
    if whitelist_enabled and admin_id is None:
        missing.append("ADMIN_USER_ID")

    if missing:
        raise ConfigurationError(f"required environment variables not set: {', '.join(missing)}")

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        SPEECH_BACKEND=speech_backend,
        GOOGLE_APPLICATION_CREDENTIALS=google_credentials,
        OPENAI_API_KEY=openai_key,
        WHITELIST_ENABLED=whitelist_enabled,
        WHITELIST_USERS=_parse_id_list(env.get("TELEGRAM_USER_WHITELIST")),
        ADMIN_USER_ID=admin_id,
        WHITELIST_FILE=env.get("WHITELIST_FILE", "").strip(),
        GROUP_COMMANDS_ONLY=_parse_bool(env.get("GROUP_COMMANDS_ONLY"), default=True),
        GROUP_ALLOWED_COMMANDS=tuple(
            cmd.lstrip("/").lower()
            for cmd in _parse_list(env.get("GROUP_ALLOWED_COMMANDS"), DEFAULT_GROUP_COMMANDS)
        ),
        GROUP_IGNORE_NON_COMMANDS=_parse_bool(env.get("GROUP_IGNORE_NON_COMMANDS"), default=True),
        MAX_AUDIO_SIZE_MB=_parse_number(env, "MAX_AUDIO_SIZE_MB", 20, int),
        SUPPORTED_AUDIO_FORMATS=tuple(
            mime.lower()
            for mime in _parse_list(env.get("SUPPORTED_AUDIO_FORMATS"), DEFAULT_SUPPORTED_AUDIO_FORMATS)
        ),
        DEFAULT_LANGUAGE=env.get("DEFAULT_LANGUAGE", "en").strip().lower() or "en",
        PROOFREADING_ENABLED=proofreading_enabled,
        PROOFREADING_MODEL=env.get("PROOFREADING_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini",
        WHISPER_TEMPERATURE=_parse_number(env, "WHISPER_TEMPERATURE", 0.0, float),
        TEMP_DIR=env.get("TEMP_DIR", "temp").strip() or "temp",
        LOG_DIR=env.get("LOG_DIR", "logs").strip(),
        DEBUG_MODE=_parse_bool(env.get("DEBUG_MODE")),
        DOWNLOAD_TIMEOUT=_parse_number(env, "DOWNLOAD_TIMEOUT", 60.0, float),
    )


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Loads and validates every environment variable.

    Returns:
        Settings: Immutable object with all settings.

    Raises:
        SystemExit: If a required variable is missing or malformed.
    """
    if environ is None:
        # .env only if present (in production vars come from the environment)
        load_dotenv()
        environ = os.environ

    try:
        return build_settings(environ)
    except ConfigurationError as e:
        print(
            f"❌ FATAL: invalid configuration: {e}\n"
            f"   → Configure it in the .env file (local) or in your deployment secrets.\n"
            f"   → See .env.example for reference.",
            file=sys.stderr,
        )
        sys.exit(1)
