"""
bot/dispatcher.py - Event dispatch.

Each inbound event becomes one independent asyncio task:

    submit(event) → task → middleware → handler → localized reply

A failure inside one task is caught at the handler boundary and turned
into a localized reply; it never reaches other events or the process.

Usage:
    dispatcher = Dispatcher(services, middleware)
    dispatcher.add_command("help", help_handler)
    dispatcher.add_handler(EventKind.AUDIO, audio_handler)
    dispatcher.submit(event)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from bot.audio_processor import AudioPipeline
from bot.auth import WhitelistStore
from bot.errors import AuthorizationError, BotError, PolicyRejection, ValidationError
from bot.events import EventKind, InboundEvent
from bot.messages import MessageCatalog
from bot.middleware import AccessMiddleware, Action
from bot.proofreader import Proofreader
from bot.session import LanguageStore
from bot.transcription import Transcriber
from bot.transport import Transport
from bot.utils import split_message
from config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class BotServices:
    """Everything a handler needs, built once by the composition root."""

    settings: Settings
    whitelist: WhitelistStore
    languages: LanguageStore
    catalog: MessageCatalog
    pipeline: AudioPipeline
    transcriber: Transcriber
    proofreader: Proofreader
    transport: Transport | None = None

    def language_for(self, event: InboundEvent) -> str:
        return self.languages.get(event.sender_id)

    def message(self, event: InboundEvent, key: str, **params) -> str:
        return self.catalog.format(key, self.language_for(event), **params)

    async def send(self, event: InboundEvent, text: str) -> None:
        """Sends `text` to the event's chat, split into Telegram-sized chunks."""
        for chunk in split_message(text):
            await self.transport.reply(event.chat_id, chunk)

    async def send_localized(self, event: InboundEvent, key: str, **params) -> None:
        await self.send(event, self.message(event, key, **params))


Handler = Callable[[InboundEvent, BotServices], Awaitable[None]]


class Dispatcher:
    """
    Routes events to handlers, one asyncio task per event.

    Args:
        services: Shared collaborators passed to every handler.
        middleware: Access check run before any handler.
    """

    def __init__(self, services: BotServices, middleware: AccessMiddleware):
        self._services = services
        self._middleware = middleware
        self._commands: dict[str, Handler] = {}
        self._handlers: dict[EventKind, Handler] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def services(self) -> BotServices:
        return self._services

    @property
    def commands(self) -> list[str]:
        return list(self._commands)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def add_command(self, name: str, handler: Handler) -> None:
        self._commands[name.lower()] = handler

    def add_handler(self, kind: EventKind, handler: Handler) -> None:
        self._handlers[kind] = handler

    def resolve(self, event: InboundEvent) -> Handler | None:
        if event.is_command:
            return self._commands.get(event.command or "")
        return self._handlers.get(event.kind)

    def submit(self, event: InboundEvent) -> asyncio.Task:
        """Starts processing `event` in its own task and returns immediately."""
        task = asyncio.create_task(self.dispatch(event), name=f"event-{event.chat_id}-{event.message_id}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("[DISPATCH] Event task crashed", exc_info=task.exception())

    async def drain(self, timeout: float | None = None) -> None:
        """Waits for in-flight events (used on shutdown)."""
        if not self._tasks:
            return
        logger.info(f"[DISPATCH] Waiting for {len(self._tasks)} in-flight event(s)")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()

    async def dispatch(self, event: InboundEvent) -> None:
        """Runs middleware then handler for one event. Never raises BotError/Exception."""
        decision = self._middleware.evaluate(event)

        if decision.action is Action.REJECT_NOTICE:
            await self._safe_reply(event, decision.message_key or "not_authorized")
            return
        if decision.action is Action.REJECT_SILENT:
            return

        handler = self.resolve(event)
        if handler is None:
            logger.debug(f"[DISPATCH] No handler for {event.kind.value} /{event.command or ''}")
            return

        try:
            await handler(event, self._services)
        except PolicyRejection as e:
            logger.debug(f"[POLICY] Handler ignored event: {e.technical_detail}")
        except AuthorizationError as e:
            logger.warning(f"[AUTH] {e.technical_detail} (user={event.sender_id})")
            await self._safe_reply(event, e.message_key, **e.params)
        except ValidationError as e:
            logger.info(f"[VALIDATION] {e.technical_detail} (user={event.sender_id})")
            await self._safe_reply(event, e.message_key, **e.params)
        except BotError as e:
            logger.error(f"[ERROR] {type(e).__name__}: {e.technical_detail} (user={event.sender_id})")
            await self._safe_reply(event, e.message_key, **e.params)
        except Exception:
            logger.exception(f"[ERROR] Unhandled error processing {event.kind.value} from user={event.sender_id}")
            await self._safe_reply(event, "error_processing")

    async def _safe_reply(self, event: InboundEvent, key: str, **params) -> None:
        try:
            await self._services.send_localized(event, key, **params)
        except Exception as e:
            logger.error(f"[ERROR] Could not send '{key}' to chat {event.chat_id}: {e}")
