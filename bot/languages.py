"""
bot/languages.py - Supported languages.

Each internal language code maps to a display name, a text direction
and the locale tag the speech backends expect. Unknown codes never
raise: they resolve to the configured default (or English).

Usage:
    from bot.languages import get_language_config, get_locale

    get_locale("fa")          # "fa-IR"
    get_locale("xx")          # "en-US"
"""

from dataclasses import dataclass

LTR = "ltr"
RTL = "rtl"


@dataclass(frozen=True)
class LanguageConfig:
    """
    Attributes:
        code: Internal code ("en", "fa", "sv").
        name: Readable name with flag emoji.
        direction: "ltr" or "rtl".
        locale: Backend locale tag (BCP-47, e.g. "fa-IR").
        native_digits: Digits 0-9 in the native script, if distinct.
    """

    code: str
    name: str
    direction: str
    locale: str
    native_digits: str | None = None


SUPPORTED_LANGUAGES: dict[str, LanguageConfig] = {
    "en": LanguageConfig("en", "🇺🇸 English", LTR, "en-US"),
    "fa": LanguageConfig("fa", "🇮🇷 فارسی", RTL, "fa-IR", native_digits="۰۱۲۳۴۵۶۷۸۹"),
    "sv": LanguageConfig("sv", "🇸🇪 Svenska", LTR, "sv-SE"),
}

DEFAULT_LANGUAGE = "en"


def is_valid_language(code: str | None) -> bool:
    return code in SUPPORTED_LANGUAGES


def resolve_language(code: str | None, default: str = DEFAULT_LANGUAGE) -> str:
    """Returns `code` if supported, else `default`, else English."""
    if is_valid_language(code):
        return code
    if is_valid_language(default):
        return default
    return DEFAULT_LANGUAGE


def get_language_config(code: str | None, default: str = DEFAULT_LANGUAGE) -> LanguageConfig:
    return SUPPORTED_LANGUAGES[resolve_language(code, default)]


def get_locale(code: str | None, default: str = DEFAULT_LANGUAGE) -> str:
    """Backend locale tag for `code`, falling back to the default's tag."""
    return get_language_config(code, default).locale


def get_text_direction(code: str | None) -> str:
    return get_language_config(code).direction


def available_codes() -> str:
    """Comma separated list of supported codes (for user messages)."""
    return ", ".join(SUPPORTED_LANGUAGES)
