"""
main.py - Entry point of the voice transcription bot.

This is the composition root. It:
    1. Loads and validates the settings
    2. Configures logging
    3. Builds the services (stores, pipeline, backends, catalog)
    4. Creates the Telegram bot and registers the dispatcher
    5. Starts polling

Operating mode: Long Polling
    The bot connects to Telegram and periodically "asks" for new
    messages. Simpler than webhooks, no public URL or SSL needed.

To run:
    # Locally (with .env configured):
    python main.py
"""

import asyncio
import logging
import sys

from telegram.ext import Application

from bot.audio_processor import AudioPipeline
from bot.auth import WhitelistStore
from bot.dispatcher import BotServices, Dispatcher
from bot.errors import FatalProcessError
from bot.handlers import build_dispatcher, setup_handlers
from bot.languages import resolve_language
from bot.logging_utils import setup_logging
from bot.messages import MessageCatalog
from bot.middleware import AccessMiddleware, GroupPolicy
from bot.proofreader import OpenAIProofreadingBackend, Proofreader
from bot.session import LanguageStore
from bot.transcription import Transcriber, create_speech_backend
from config.settings import Settings, load_settings

logger = logging.getLogger(__name__)

# How long shutdown waits for in-flight transcriptions
DRAIN_TIMEOUT = 30.0


def build_services(settings: Settings) -> BotServices:
    default_language = resolve_language(settings.DEFAULT_LANGUAGE)

    proofreading_backend = None
    if settings.PROOFREADING_ENABLED:
        proofreading_backend = OpenAIProofreadingBackend(
            api_key=settings.OPENAI_API_KEY,
            model=settings.PROOFREADING_MODEL,
        )

    return BotServices(
        settings=settings,
        whitelist=WhitelistStore(
            settings.WHITELIST_USERS,
            admin_id=settings.ADMIN_USER_ID,
            path=settings.WHITELIST_FILE or None,
        ),
        languages=LanguageStore(default_language),
        catalog=MessageCatalog(default_language=default_language),
        pipeline=AudioPipeline(
            settings.TEMP_DIR,
            max_size_bytes=settings.max_audio_size_bytes,
            timeout=settings.DOWNLOAD_TIMEOUT,
        ),
        transcriber=Transcriber(create_speech_backend(settings), default_language),
        proofreader=Proofreader(proofreading_backend, enabled=settings.PROOFREADING_ENABLED),
    )


def build_middleware(settings: Settings, services: BotServices) -> AccessMiddleware:
    return AccessMiddleware(
        services.whitelist,
        GroupPolicy(
            commands_only=settings.GROUP_COMMANDS_ONLY,
            allowed_commands=settings.GROUP_ALLOWED_COMMANDS,
            ignore_non_commands=settings.GROUP_IGNORE_NON_COMMANDS,
        ),
        whitelist_enabled=settings.WHITELIST_ENABLED,
    )


def install_fatal_handlers():
    """
    Faults outside any event: log CRITICAL, flush the logs and stop,
    instead of carrying on in a possibly corrupted state.

    Returns the post_init callback that hooks the asyncio loop.
    """

    def excepthook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical("Uncaught exception, shutting down", exc_info=(exc_type, exc_value, exc_traceback))
        logging.shutdown()

    sys.excepthook = excepthook

    async def post_init(app: Application) -> None:
        def loop_exception_handler(loop, context):
            error = context.get("exception")
            # Warnings without an exception (unclosed transports, ...) are not fatal
            if error is None or isinstance(error, asyncio.CancelledError):
                logger.warning(f"Event loop warning: {context.get('message')}")
                return
            fatal = FatalProcessError(context.get("message") or str(error))
            fatal.__cause__ = error
            logger.critical(f"Unhandled error in event loop: {fatal}", exc_info=fatal)
            app.stop_running()

        asyncio.get_running_loop().set_exception_handler(loop_exception_handler)

    return post_init


def build_application(settings: Settings, dispatcher: Dispatcher) -> Application:
    """
    Creates the Telegram Application and feeds its updates to `dispatcher`.

    In-flight events are drained in post_stop, after polling stops and
    before shutdown() closes the Bot's HTTP client, so their last
    replies still go out.
    """

    async def post_stop(app: Application) -> None:
        await dispatcher.drain(timeout=DRAIN_TIMEOUT)
        logger.info("In-flight events drained")

    async def post_shutdown(app: Application) -> None:
        logger.info("Bot shut down")

    application = (
        Application.builder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(install_fatal_handlers())
        .post_stop(post_stop)
        .post_shutdown(post_shutdown)
        .build()
    )

    setup_handlers(application, dispatcher)
    return application


def main() -> None:
    """
    Main function: configures and starts the bot.

    Steps:
        1. Settings (fail fast if something is wrong)
        2. Logging
        3. Services + access middleware + dispatcher
        4. Telegram Application
        5. Polling (infinite listen loop)
    """
    settings = load_settings()
    setup_logging(settings.LOG_DIR, debug=settings.DEBUG_MODE)

    logger.info("=" * 50)
    logger.info("🎙️ Voice Transcription Bot — Starting")
    logger.info("=" * 50)

    # Never log secrets
    logger.info(f"🗣️ Speech backend: {settings.SPEECH_BACKEND}")
    logger.info(f"🌐 Default language: {resolve_language(settings.DEFAULT_LANGUAGE)}")
    logger.info(f"📏 Max audio size: {settings.MAX_AUDIO_SIZE_MB}MB")
    logger.info(f"🎵 Supported formats: {', '.join(settings.SUPPORTED_AUDIO_FORMATS)}")
    logger.info(f"🔒 Whitelist: {'enabled' if settings.WHITELIST_ENABLED else 'disabled'}")
    logger.info(f"✍️ External proofreading: {'enabled' if settings.PROOFREADING_ENABLED else 'disabled'}")
    logger.info(f"📂 Temp directory: {settings.TEMP_DIR}")

    services = build_services(settings)
    dispatcher: Dispatcher = build_dispatcher(services, build_middleware(settings, services))
    application = build_application(settings, dispatcher)

    logger.info("🚀 Bot started! Waiting for messages...")
    logger.info("   Press Ctrl+C to stop")

    # run_polling handles SIGINT/SIGTERM and shuts the application down
    application.run_polling(
        poll_interval=1.0,
        drop_pending_updates=True,
    )


if __name__ == "__main__":
    main()
