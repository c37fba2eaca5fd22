"""
bot/handlers.py - Command and message handlers.

Each handler is an async function taking the InboundEvent and the
BotServices. Handlers only run after the access middleware admitted
the event; errors they raise are turned into localized replies by the
dispatcher.

Registered handlers:
    /start              — Welcome + help
    /help               — Usage instructions (+ admin commands for the admin)
    /settings           — Current language
    /language <code>    — Change language (en, fa, sv)
    /proofread          — Proofread the replied-to text
    (voice/audio)       — Transcribe audio

Admin only (registered when the whitelist is enabled):
    /adduser <id>, /removeuser <id>, /listusers, /debug [on|off]

Main transcription flow:
    1. Ignore audio in groups when only commands are allowed
    2. Validate size and format (before downloading anything)
    3. Send "🎙️ Processing audio..."
    4. Download and convert the audio
    5. Send it to the speech backend
    6. Reply with the transcript
    7. Remove the temporary files

Usage:
    from bot.handlers import build_dispatcher, setup_handlers
    dispatcher = build_dispatcher(services, middleware)
    setup_handlers(application, dispatcher)
"""

import logging
import time

from telegram import Update
from telegram.error import Conflict
from telegram.ext import Application, ContextTypes, TypeHandler

from bot.audio_processor import validate_audio
from bot.dispatcher import BotServices, Dispatcher
from bot.errors import AudioValidationError, AuthorizationError, PolicyRejection, ValidationError
from bot.events import EventKind, InboundEvent, event_from_update
from bot.languages import available_codes, get_language_config
from bot.logging_utils import set_debug_mode
from bot.messages import format_text
from bot.middleware import AccessMiddleware
from bot.transport import TelegramTransport
from bot.utils import format_duration, format_file_size, mask_user_id

logger = logging.getLogger(__name__)


# ============================================================
# General commands
# ============================================================


async def start_handler(event: InboundEvent, services: BotServices) -> None:
    logger.info(f"[CMD] /start from {mask_user_id(event.sender_id)}")
    await services.send_localized(event, "welcome")
    await help_handler(event, services)


async def help_handler(event: InboundEvent, services: BotServices) -> None:
    """Usage instructions. The admin also sees the admin commands."""
    logger.info(f"[CMD] /help from {mask_user_id(event.sender_id)}")
    text = services.message(event, "help")
    if services.settings.WHITELIST_ENABLED and services.whitelist.is_admin(event.sender_id):
        text += "\n\n" + services.message(event, "help_admin")
    await services.send(event, text)


async def settings_handler(event: InboundEvent, services: BotServices) -> None:
    language = get_language_config(services.language_for(event))
    logger.info(f"[CMD] /settings from {mask_user_id(event.sender_id)}")
    await services.send_localized(event, "settings_current", language=language.name)


async def language_handler(event: InboundEvent, services: BotServices) -> None:
    """
    /language <code> — stores the user's language.

    An invalid code leaves the current preference untouched.
    """
    code = event.args.split(" ", 1)[0].strip().lower() if event.args else ""

    if not services.languages.set(event.sender_id, code):
        logger.info(f"[CMD] /language rejected for {mask_user_id(event.sender_id)}: {code!r}")
        raise ValidationError(
            f"invalid language code {code!r}",
            message_key="invalid_language",
            params={"languages": available_codes()},
        )

    logger.info(f"[CMD] /language {code} for {mask_user_id(event.sender_id)}")
    await services.send_localized(event, "language_set", language=get_language_config(code).name)


# ============================================================
# Proofreading
# ============================================================


async def proofread_handler(event: InboundEvent, services: BotServices) -> None:
    """
    /proofread — proofreads the text of the replied-to message.

    Without a reply, the text after the command is used instead.
    """
    text = event.reply_to_text or event.args
    if not text or not text.strip():
        raise ValidationError("nothing to proofread", message_key="no_text_to_proofread")

    logger.info(f"[PROOF] Proofreading {len(text)} characters for {mask_user_id(event.sender_id)}")
    await services.send_localized(event, "proofreading")

    language = services.language_for(event)
    improved = await services.proofreader.improve(text, language)
    await services.send(event, format_text(improved, language))


# ============================================================
# Audio
# ============================================================


async def audio_handler(event: InboundEvent, services: BotServices) -> None:
    """
    Voice messages and audio files.

    The scratch files only live inside the `async with` block: they are
    removed whether transcription succeeds or fails.
    """
    settings = services.settings

    # Groups only get commands
    if event.is_group and settings.GROUP_COMMANDS_ONLY:
        raise PolicyRejection(f"audio ignored in group chat {event.chat_id}")

    attachment = event.attachment
    if attachment is None:
        raise AudioValidationError("message has no audio", message_key="error_no_audio")

    logger.info(
        f"[AUDIO] Received from {mask_user_id(event.sender_id)}: "
        f"size={format_file_size(attachment.file_size or 0)}, "
        f"duration={format_duration(attachment.duration)}, "
        f"type={attachment.mime_type or 'unknown'}"
    )

    # ---------- Cheap checks before any network transfer ----------
    validate_audio(
        attachment.file_size,
        attachment.mime_type,
        settings.max_audio_size_bytes,
        settings.SUPPORTED_AUDIO_FORMATS,
    )

    await services.send_localized(event, "processing_audio")

    start_time = time.monotonic()
    language = services.language_for(event)
    file_url = await services.transport.get_file_url(attachment.file_id)

    async with services.pipeline.process(file_url, event.correlation_id) as wav_path:
        text = await services.transcriber.transcribe(wav_path, language)

    if not text.strip():
        logger.info(f"[AUDIO] Nothing recognized for {mask_user_id(event.sender_id)}")
        await services.send_localized(event, "empty_transcription")
        return

    await services.send(event, format_text(text, language))
    await services.send_localized(event, "success")

    logger.info(
        f"[RESULT] Transcribed for {mask_user_id(event.sender_id)}: "
        f"{len(text)} characters in {format_duration(time.monotonic() - start_time)}"
    )


# ============================================================
# Admin commands
# ============================================================


def _require_admin(event: InboundEvent, services: BotServices, action: str) -> None:
    """Admin handlers check this themselves, on top of the middleware."""
    if not services.whitelist.is_admin(event.sender_id):
        raise AuthorizationError(f"non-admin {action} attempt", message_key="admin_only")


def _parse_user_id(event: InboundEvent, usage_key: str) -> int:
    try:
        return int(event.args.split(" ", 1)[0])
    except (ValueError, IndexError):
        raise ValidationError(f"invalid user id {event.args!r}", message_key=usage_key) from None


async def adduser_handler(event: InboundEvent, services: BotServices) -> None:
    _require_admin(event, services, "whitelist modification")
    user_id = _parse_user_id(event, "adduser_usage")

    services.whitelist.add(user_id)
    logger.info(f"[ADMIN] Whitelist add: admin={event.sender_id}, user={user_id}")
    await services.send_localized(event, "user_added", user_id=user_id)


async def removeuser_handler(event: InboundEvent, services: BotServices) -> None:
    _require_admin(event, services, "whitelist modification")
    user_id = _parse_user_id(event, "removeuser_usage")

    if services.whitelist.is_admin(user_id):
        logger.warning(f"[ADMIN] Attempt to remove admin from whitelist by {event.sender_id}")
        await services.send_localized(event, "cannot_remove_admin")
        return

    if not services.whitelist.remove(user_id):
        await services.send_localized(event, "user_not_whitelisted", user_id=user_id)
        return

    logger.info(f"[ADMIN] Whitelist remove: admin={event.sender_id}, user={user_id}")
    await services.send_localized(event, "user_removed", user_id=user_id)


async def listusers_handler(event: InboundEvent, services: BotServices) -> None:
    _require_admin(event, services, "whitelist view")
    members = services.whitelist.members()
    admin_id = services.whitelist.admin_id

    if not members:
        await services.send_localized(event, "whitelist_empty", admin_id=admin_id)
        return
    await services.send_localized(
        event,
        "whitelist_list",
        users="\n".join(str(user_id) for user_id in members),
        admin_id=admin_id,
    )


async def debug_handler(event: InboundEvent, services: BotServices) -> None:
    _require_admin(event, services, "debug")
    mode = event.args.split(" ", 1)[0].lower() if event.args else ""

    if mode == "on":
        set_debug_mode(True)
        await services.send_localized(event, "debug_enabled")
    elif mode == "off":
        set_debug_mode(False)
        await services.send_localized(event, "debug_disabled")
    else:
        await services.send_localized(event, "debug_usage")


# ============================================================
# Wiring
# ============================================================


def build_dispatcher(services: BotServices, middleware: AccessMiddleware) -> Dispatcher:
    """Binds every handler to its command / event kind."""
    dispatcher = Dispatcher(services, middleware)

    dispatcher.add_command("start", start_handler)
    dispatcher.add_command("help", help_handler)
    dispatcher.add_command("settings", settings_handler)
    dispatcher.add_command("language", language_handler)
    dispatcher.add_command("proofread", proofread_handler)

    dispatcher.add_handler(EventKind.AUDIO, audio_handler)

    # Admin commands only exist when there is a whitelist to manage
    if services.settings.WHITELIST_ENABLED:
        dispatcher.add_command("adduser", adduser_handler)
        dispatcher.add_command("removeuser", removeuser_handler)
        dispatcher.add_command("listusers", listusers_handler)
        dispatcher.add_command("debug", debug_handler)

    return dispatcher


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Global handler for errors raised inside python-telegram-bot itself
    (polling, network). Event errors never get here: the dispatcher
    handles them.
    """
    # Conflict: another instance polls with the same token
    if isinstance(context.error, Conflict):
        logger.critical(
            "🛑 CONFLICT: another bot instance is running with the same token! "
            "Stop the other instance."
        )
        return

    logger.error(f"[GLOBAL ERROR] Unhandled exception: {context.error}", exc_info=context.error)


def setup_handlers(application: Application, dispatcher: Dispatcher) -> None:
    """
    Feeds every Telegram update into the dispatcher.

    A single TypeHandler catches all updates; the dispatcher starts one
    task per event, so a slow transcription never blocks new updates.
    """
    if dispatcher.services.transport is None:
        dispatcher.services.transport = TelegramTransport(application.bot)

    async def on_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        event = event_from_update(update)
        if event is not None:
            dispatcher.submit(event)

    application.add_handler(TypeHandler(Update, on_update))
    application.add_error_handler(error_handler)

    logger.info(f"[SETUP] Handlers registered: /{', /'.join(dispatcher.commands)} + audio")
