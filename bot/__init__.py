"""
Voice transcription bot.

Contains:
    - events.py: Inbound events built from Telegram updates
    - middleware.py: Whitelist and group policy checks
    - auth.py / session.py: Whitelist and language preference stores
    - dispatcher.py: One task per event, middleware → handler
    - handlers.py: Command and audio handlers
    - audio_processor.py: Download, conversion and cleanup of audio
    - transcription.py: Speech backends (Google Speech, Whisper)
    - proofreader.py: Text normalization + optional GPT proofreading
    - messages.py: Localized messages (locales/<lang>/messages.json)
    - utils.py: Shared helpers

Usage:
    from bot.handlers import build_dispatcher, setup_handlers
"""
