"""Tests for languages and per-user language preferences."""

import threading

import pytest

from bot.languages import (
    RTL,
    available_codes,
    get_language_config,
    get_locale,
    get_text_direction,
    resolve_language,
)
from bot.session import LanguageStore


class TestLanguages:
    @pytest.mark.parametrize("code, locale", [("en", "en-US"), ("fa", "fa-IR"), ("sv", "sv-SE")])
    def test_locales(self, code, locale):
        assert get_locale(code) == locale

    def test_unknown_code_falls_back(self):
        assert get_locale("xx") == "en-US"
        assert get_locale(None, default="sv") == "sv-SE"
        assert resolve_language("xx", default="also-bad") == "en"

    def test_persian_is_rtl(self):
        assert get_text_direction("fa") == RTL
        assert get_language_config("fa").native_digits == "۰۱۲۳۴۵۶۷۸۹"

    def test_available_codes(self):
        assert available_codes() == "en, fa, sv"


class TestLanguageStore:
    def test_default_until_set(self):
        store = LanguageStore("sv")

        assert store.get(1) == "sv"
        assert store.get(None) == "sv"

    def test_set_and_get(self):
        store = LanguageStore()

        assert store.set(1, " FA ") is True
        assert store.get(1) == "fa"
        assert store.get(2) == "en"

    def test_invalid_language_keeps_previous(self):
        store = LanguageStore()
        store.set(1, "sv")

        assert store.set(1, "de") is False
        assert store.set(1, None) is False
        assert store.get(1) == "sv"

    def test_delete(self):
        store = LanguageStore()
        store.set(1, "fa")
        store.delete(1)
        store.delete(1)

        assert store.get(1) == "en"

    def test_unsupported_default_resolves_to_english(self):
        assert LanguageStore("xx").default_language == "en"

    def test_concurrent_writers(self):
        store = LanguageStore()

        def worker(user_id):
            for code in ("en", "fa", "sv") * 50:
                store.set(user_id, code)

        threads = [threading.Thread(target=worker, args=(uid,)) for uid in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(store.get(uid) == "sv" for uid in range(8))
