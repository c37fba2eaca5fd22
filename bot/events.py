"""
bot/events.py - Inbound events.

Every Telegram update the bot cares about is converted into an
immutable InboundEvent before any decision is taken. The rest of the
bot (middleware, dispatcher, handlers) only sees InboundEvents, never
python-telegram-bot objects.

Usage:
    from bot.events import event_from_update

    event = event_from_update(update)
    if event and event.is_command:
        print(event.command, event.args)
"""

import enum
from dataclasses import dataclass
from datetime import timedelta

from telegram import Update
from telegram.constants import ChatType


class EventKind(str, enum.Enum):
    COMMAND = "command"
    AUDIO = "audio"
    TEXT = "text"
    REPLY_TO_TEXT = "reply_to_text"


class ChatKind(str, enum.Enum):
    DIRECT = "direct"
    GROUP = "group"
    SUPERGROUP = "supergroup"


@dataclass(frozen=True)
class AudioAttachment:
    """Voice message or audio file metadata (nothing is downloaded yet)."""

    file_id: str
    file_unique_id: str = ""
    file_size: int | None = None
    mime_type: str | None = None
    duration: int = 0
    file_name: str | None = None


@dataclass(frozen=True)
class InboundEvent:
    """
    One inbound message.

    Attributes:
        kind: command, audio, plain text or text replying to another text.
        sender_id: Telegram user id (None for anonymous/channel senders).
        chat_id: Chat the reply goes to.
        chat_kind: direct, group or supergroup.
        message_id: Telegram message id.
        text: Raw message text (or caption).
        command: Command name without "/" and "@botname" (commands only).
        args: Everything after the command name.
        reply_to_text: Text of the replied-to message, if any.
        attachment: Audio metadata (audio events only).
    """

    kind: EventKind
    sender_id: int | None
    chat_id: int
    chat_kind: ChatKind = ChatKind.DIRECT
    message_id: int = 0
    text: str = ""
    command: str | None = None
    args: str = ""
    reply_to_text: str | None = None
    attachment: AudioAttachment | None = None

    @property
    def is_command(self) -> bool:
        return self.kind is EventKind.COMMAND

    @property
    def is_group(self) -> bool:
        return self.chat_kind in (ChatKind.GROUP, ChatKind.SUPERGROUP)

    @property
    def correlation_id(self) -> str:
        """Unique per inbound attachment; names the scratch files."""
        unique = self.attachment.file_unique_id if self.attachment else ""
        return f"{self.chat_id}_{self.message_id}_{unique}".rstrip("_")

    @property
    def log_text(self) -> str:
        return self.text or f"non-text interaction ({self.kind.value})"


def parse_command(text: str) -> tuple[str | None, str]:
    """
    Splits "/cmd@botname arg1 arg2" into ("cmd", "arg1 arg2").

    Returns (None, "") if the text is not a command.
    """
    if not text or not text.startswith("/"):
        return None, ""
    head, _, rest = text.partition(" ")
    name = head[1:].split("@", 1)[0].lower()
    if not name:
        return None, ""
    return name, rest.strip()


def _seconds(value) -> int:
    # Newer python-telegram-bot releases may report durations as timedelta
    if value is None:
        return 0
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def _chat_kind(chat_type: str | None) -> ChatKind:
    if chat_type == ChatType.PRIVATE:
        return ChatKind.DIRECT
    if chat_type == ChatType.SUPERGROUP:
        return ChatKind.SUPERGROUP
    # Groups and channels are multi-party: treat anything else as a group
    return ChatKind.GROUP


def event_from_update(update: Update) -> InboundEvent | None:
    """
    Converts a python-telegram-bot Update into an InboundEvent.

    Returns None for updates without a message (callback queries,
    edited messages, polls, ...), which the bot ignores.
    """
    message = update.message
    if message is None:
        return None

    user = update.effective_user
    chat = update.effective_chat
    text = message.text or message.caption or ""
    reply = message.reply_to_message
    reply_to_text = reply.text if reply is not None and reply.text else None

    base = dict(
        sender_id=user.id if user is not None else None,
        chat_id=chat.id if chat is not None else message.chat_id,
        chat_kind=_chat_kind(chat.type if chat is not None else None),
        message_id=message.message_id,
        text=text,
        reply_to_text=reply_to_text,
    )

    media = message.voice or message.audio
    if media is not None:
        attachment = AudioAttachment(
            file_id=media.file_id,
            file_unique_id=media.file_unique_id,
            file_size=media.file_size,
            mime_type=media.mime_type,
            duration=_seconds(media.duration),
            file_name=getattr(media, "file_name", None),
        )
        return InboundEvent(kind=EventKind.AUDIO, attachment=attachment, **base)

    command, args = parse_command(message.text or "")
    if command is not None:
        return InboundEvent(kind=EventKind.COMMAND, command=command, args=args, **base)

    kind = EventKind.REPLY_TO_TEXT if reply_to_text is not None else EventKind.TEXT
    return InboundEvent(kind=kind, **base)
