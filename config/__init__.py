"""
Bot configuration module.

Exposes `load_settings()`, which returns a `Settings` object with every
environment variable loaded and validated. Usage:

    from config.settings import load_settings
    settings = load_settings()
    token = settings.TELEGRAM_BOT_TOKEN
"""
