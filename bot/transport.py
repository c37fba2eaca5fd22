"""
bot/transport.py - Messaging transport.

The handlers only need two things from Telegram: sending a text to a
chat and turning a file id into a download URL. TelegramTransport
provides them on top of python-telegram-bot's Bot.
"""

from typing import Protocol

from telegram import Bot


class Transport(Protocol):
    """What the handlers need from the messaging platform."""

    async def reply(self, chat_id: int, text: str) -> None:
        ...

    async def get_file_url(self, file_id: str) -> str:
        ...


class TelegramTransport:
    """
    Transport backed by python-telegram-bot.

    Args:
        bot: The Application's Bot (must stay initialized while replies are sent).
    """

    def __init__(self, bot: Bot):
        self._bot = bot

    async def reply(self, chat_id: int, text: str) -> None:
        """Sends `text` as a plain message to `chat_id`."""
        await self._bot.send_message(chat_id=chat_id, text=text)

    async def get_file_url(self, file_id: str) -> str:
        # In python-telegram-bot >= 20 file_path is already the full download URL
        telegram_file = await self._bot.get_file(file_id)
        return telegram_file.file_path
