"""
bot/logging_utils.py - Logging setup.

Format:
    2026-02-16 18:30:00 | INFO    | bot.handlers | Message here

Levels:
    - INFO: Normal operations (startup, transcription OK, etc)
    - WARNING: Recoverable situations (unauthorized user, cleanup failure)
    - ERROR: Failures (API down, conversion failed)
    - DEBUG: Extra details (enabled with DEBUG_MODE or /debug on)

Records go to stdout and, if LOG_DIR is set, to an append-only daily
file LOG_DIR/bot_YYYY-MM-DD.log. Every record passes through
RedactingFilter so bot tokens and credentials never reach the logs.
"""

import logging
import re
import sys
from datetime import date
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

REDACTED = "[REDACTED]"

# Telegram bot token: "<digits>:<35 chars>", also inside file URLs
_BOT_TOKEN = re.compile(r"(?<!\d)\d{6,}:[A-Za-z0-9_-]{30,}")
# token=..., "api_key": "...", password: ...
_SENSITIVE_FIELD = re.compile(
    r"""(?ix)
    (["']?\b[\w-]*(?:token|password|credentials|api_key|apikey|secret)[\w-]*\b["']?\s*[=:]\s*)
    (["']?)[^\s"',}]+(["']?)
    """
)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "telegram", "google", "urllib3")


def redact(text: str) -> str:
    text = _BOT_TOKEN.sub(REDACTED, text)
    return _SENSITIVE_FIELD.sub(rf"\1\2{REDACTED}\3", text)


class RedactingFilter(logging.Filter):
    """Scrubs credential-like data from the final message of each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(log_dir: str = "", debug: bool = False) -> None:
    redacting = RedactingFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(path / f"bot_{date.today().isoformat()}.log", mode="a", encoding="utf-8")
        )
    for handler in handlers:
        handler.addFilter(redacting)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Less noise from external libs (warnings+ only)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_debug_mode(enabled: bool) -> None:
    """Switches the root logger between DEBUG and INFO."""
    logging.getLogger().setLevel(logging.DEBUG if enabled else logging.INFO)
    logging.getLogger(__name__).info(f"Debug mode {'enabled' if enabled else 'disabled'}")


def is_debug_mode() -> bool:
    return logging.getLogger().level <= logging.DEBUG
