"""
bot/proofreader.py - Text proofreading.

Two stages:

    1. Deterministic (always, no network):
        - collapse whitespace runs, trim the ends
        - no space before / one space after punctuation, using the
          punctuation set of the language's writing direction
        - ASCII digits → native digits (Persian)
    2. External (optional): GPT corrects the text of stage 1

Proofreading is an enhancement: improve() never raises. A backend
failure keeps the stage 1 result; any other failure returns the input
unchanged.

Usage:
    from bot.proofreader import Proofreader

    proofreader = Proofreader()
    await proofreader.improve("Hello   .World", "en")   # "Hello. World"
"""

import asyncio
import logging
import re
from typing import Protocol

from bot.errors import ProofreadingError
from bot.languages import RTL, get_language_config
from bot.prompts import PROOFREAD_PROMPT, SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

_LTR_PUNCTUATION = ".,!?;:"
_RTL_PUNCTUATION = "،؛؟.!:"


def _punctuation_patterns(marks: str) -> tuple[re.Pattern, re.Pattern]:
    cls = re.escape(marks)
    before = re.compile(rf"\s+([{cls}])")
    # Digits are excluded so decimals ("3.5") and times ("10:30") survive
    after = re.compile(rf"([{cls}])(?=[^\s\d{cls}])")
    return before, after


_PATTERNS = {
    "ltr": _punctuation_patterns(_LTR_PUNCTUATION),
    RTL: _punctuation_patterns(_RTL_PUNCTUATION),
}


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def fix_punctuation(text: str, language: str) -> str:
    direction = get_language_config(language).direction
    before, after = _PATTERNS.get(direction, _PATTERNS["ltr"])
    text = before.sub(r"\1", text)
    return after.sub(r"\1 ", text)


def fix_numbers(text: str, language: str) -> str:
    digits = get_language_config(language).native_digits
    if not digits:
        return text
    return text.translate(str.maketrans("0123456789", digits))


def normalize_text(text: str, language: str) -> str:
    """Deterministic stage, in order: whitespace, punctuation, digits."""
    text = clean_text(text)
    text = fix_punctuation(text, language)
    return fix_numbers(text, language)


class ProofreadingBackend(Protocol):
    def improve(self, text: str, locale: str) -> str:
        ...


class OpenAIProofreadingBackend:
    """GPT based proofreading (chat completions)."""

    def __init__(self, api_key: str = "", model: str = "gpt-4o-mini", client=None):
        self._api_key = api_key
        self._model = model
        self._client = client

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key, timeout=60)
        return self._client

    def improve(self, text: str, locale: str) -> str:
        try:
            response = self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": PROOFREAD_PROMPT.format(language=locale, text=text)},
                ],
                temperature=0.2,  # Low creativity to stay faithful to the text
                max_tokens=1500,
            )
            content = response.choices[0].message.content
        except Exception as e:
            raise ProofreadingError(str(e)) from e

        if not content or not content.strip():
            raise ProofreadingError("empty response from proofreading backend")
        return content.strip()


class Proofreader:
    def __init__(self, backend: ProofreadingBackend | None = None, enabled: bool = False):
        self._backend = backend
        self._enabled = enabled and backend is not None

    @property
    def external_enabled(self) -> bool:
        return self._enabled

    async def improve(self, text: str, language: str) -> str:
        """
        Proofreads `text` for `language`.

        Returns:
            The improved text; the deterministic result if the external
            backend fails; the original text if anything else fails.
        """
        try:
            improved = normalize_text(text, language)
        except Exception as e:
            logger.error(f"[PROOF] Normalization failed, returning original text: {e}")
            return text

        if not self._enabled:
            return improved

        locale = get_language_config(language).locale
        try:
            logger.info(f"[PROOF] Calling external proofreading backend ({locale})")
            result = await asyncio.to_thread(self._backend.improve, improved, locale)
        except Exception as e:
            logger.warning(f"[PROOF] External proofreading failed, keeping local result: {e}")
            return improved

        if not result or not result.strip():
            return improved
        return result
