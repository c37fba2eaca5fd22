"""Tests for bot/proofreader.py."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from bot.errors import ProofreadingError
from bot.proofreader import (
    OpenAIProofreadingBackend,
    Proofreader,
    clean_text,
    fix_numbers,
    fix_punctuation,
    normalize_text,
)


class StubBackend:
    def __init__(self, result="", error=None):
        self.result = result
        self.error = error
        self.calls = []

    def improve(self, text, locale):
        self.calls.append((text, locale))
        if self.error is not None:
            raise self.error
        return self.result


# ---------------------------------------------------------------------------
# Deterministic stage
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_clean_text(self):
        assert clean_text("  hello \n\t world  ") == "hello world"

    def test_spacing_around_punctuation(self):
        assert normalize_text("Hello   .World", "en") == "Hello. World"
        assert fix_punctuation("Wait ,what ?Really", "en") == "Wait, what? Really"

    def test_decimals_and_times_survive(self):
        assert normalize_text("It costs 3.5 at 10:30", "en") == "It costs 3.5 at 10:30"

    def test_ellipsis_survives(self):
        assert normalize_text("Well... maybe", "en") == "Well... maybe"

    def test_persian_punctuation(self):
        assert fix_punctuation("سلام ،خوبی ؟", "fa") == "سلام، خوبی؟"

    def test_persian_digits(self):
        assert normalize_text("room 12", "fa") == "room ۱۲"
        assert fix_numbers("room 12", "sv") == "room 12"

    def test_idempotent(self):
        once = normalize_text("a ,b .c", "en")
        assert normalize_text(once, "en") == once


# ---------------------------------------------------------------------------
# Proofreader
# ---------------------------------------------------------------------------


class TestProofreader:
    @pytest.mark.asyncio
    async def test_local_only_by_default(self):
        proofreader = Proofreader()

        assert not proofreader.external_enabled
        assert await proofreader.improve("Hello   .World", "en") == "Hello. World"

    @pytest.mark.asyncio
    async def test_external_backend_gets_normalized_text(self):
        backend = StubBackend(result="Hello. World!")
        proofreader = Proofreader(backend, enabled=True)

        assert await proofreader.improve("Hello   .World", "sv") == "Hello. World!"
        assert backend.calls == [("Hello. World", "sv-SE")]

    @pytest.mark.asyncio
    async def test_disabled_backend_not_called(self):
        backend = StubBackend(result="nope")

        assert await Proofreader(backend, enabled=False).improve("a", "en") == "a"
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_local_result(self):
        proofreader = Proofreader(StubBackend(error=ProofreadingError("timeout")), enabled=True)
        assert await proofreader.improve("Hello   .World", "en") == "Hello. World"

    @pytest.mark.asyncio
    async def test_empty_backend_result_keeps_local_result(self):
        proofreader = Proofreader(StubBackend(result="  "), enabled=True)
        assert await proofreader.improve("Hello   .World", "en") == "Hello. World"

    @pytest.mark.asyncio
    async def test_normalization_failure_returns_input(self):
        with patch("bot.proofreader.normalize_text", side_effect=RuntimeError("boom")):
            assert await Proofreader().improve("raw  text", "en") == "raw  text"


class TestOpenAIProofreadingBackend:
    def test_improve(self):
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=" Fixed text. "))]
        )

        result = OpenAIProofreadingBackend(model="gpt-test", client=client).improve("fixd text", "en-US")

        assert result == "Fixed text."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert "fixd text" in kwargs["messages"][1]["content"]
        assert "en-US" in kwargs["messages"][1]["content"]

    def test_api_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ProofreadingError, match="rate limited"):
            OpenAIProofreadingBackend(client=client).improve("text", "en-US")

    def test_empty_content(self):
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        )

        with pytest.raises(ProofreadingError):
            OpenAIProofreadingBackend(client=client).improve("text", "en-US")
