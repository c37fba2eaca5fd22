"""
bot/utils.py - Shared helper functions.

Generic helpers used by several bot modules.

Usage:
    from bot.utils import cleanup_file, format_file_size
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than 4096 characters
MAX_MESSAGE_LENGTH = 4000

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds.

    Examples:
        >>> format_duration(150.7)
        '2min 30s'
        >>> format_duration(45.3)
        '45s'
        >>> format_duration(3661)
        '1h 1min 1s'
    """
    seconds = int(seconds)

    if seconds < 60:
        return f"{seconds}s"

    minutes, secs = divmod(seconds, 60)

    if minutes < 60:
        return f"{minutes}min {secs}s" if secs else f"{minutes}min"

    hours, mins = divmod(minutes, 60)
    parts = [f"{hours}h"]
    if mins:
        parts.append(f"{mins}min")
    if secs:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_file_size(size_bytes: int) -> str:
    """
    Formats a size in bytes.

    Examples:
        >>> format_file_size(2621440)
        '2.5MB'
        >>> format_file_size(524288)
        '512.0KB'
    """
    if size_bytes < 1024:
        return f"{size_bytes}B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f}KB"
    return f"{size_bytes / (1024 * 1024):.1f}MB"


def mask_user_id(user_id: int | None) -> str:
    """
    Masks a user id for informational logs: 123456789 → '123***789'.

    Security logs (unauthorized attempts) keep the full id so the admin
    can whitelist the user.
    """
    if user_id is None:
        return "unknown"
    text = str(user_id)
    if len(text) <= 6:
        return text[:2] + "***"
    return f"{text[:3]}***{text[-3:]}"


def safe_correlation_id(value: str) -> str:
    """Keeps only characters that are safe in a file name."""
    cleaned = _UNSAFE_ID_CHARS.sub("_", value or "")
    return cleaned or "audio"


def cleanup_file(filepath: str | Path | None) -> None:
    """
    Removes a temporary file.

    Never raises: a missing file counts as already removed, other
    failures are logged.
    """
    if not filepath:
        return
    try:
        Path(filepath).unlink(missing_ok=True)
        logger.debug(f"Temporary file removed: {filepath}")
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {filepath}: {e}")


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """
    Splits a long text into chunks Telegram accepts.

    Prefers breaking at the last newline, then the last space, before
    the limit.
    """
    chunks = []
    while text:
        if len(text) <= max_len:
            chunks.append(text)
            break

        split_pos = text.rfind("\n", 0, max_len)
        if split_pos <= 0:
            split_pos = text.rfind(" ", 0, max_len)
        if split_pos <= 0:
            split_pos = max_len

        chunks.append(text[:split_pos])
        text = text[split_pos:].lstrip()
    return chunks
