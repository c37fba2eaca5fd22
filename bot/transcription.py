"""
bot/transcription.py - Speech-to-text.

Sends normalized audio (WAV mono 16kHz LINEAR16) to a speech backend
and returns the transcript.

Backends:
    - GoogleSpeechBackend: Google Cloud Speech-to-Text (default)
    - WhisperBackend: OpenAI Whisper

Both are synchronous SDK clients, so the calls run in a separate
thread (asyncio.to_thread) to keep the event loop free.

The Transcriber does not retry: a backend failure surfaces once as a
TranscriptionError carrying the backend's message.

Usage:
    from bot.transcription import Transcriber, GoogleSpeechBackend

    transcriber = Transcriber(GoogleSpeechBackend())
    text = await transcriber.transcribe("temp/123.wav", "fa")
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from bot.audio_processor import ENCODING, SAMPLE_RATE_HZ
from bot.errors import TranscriptionError
from bot.languages import get_locale

logger = logging.getLogger(__name__)

# Timeout for the Whisper API (seconds)
WHISPER_TIMEOUT = 300


class SpeechBackend(Protocol):
    def recognize(self, audio: bytes, sample_rate: int, encoding: str, locale: str) -> list[str]:
        """Returns transcript segments in recognition order."""
        ...


class GoogleSpeechBackend:
    """
    Google Cloud Speech-to-Text (synchronous recognize).

    Credentials come from GOOGLE_APPLICATION_CREDENTIALS. The client is
    created on first use.
    """

    def __init__(self, client=None, model: str = "default", use_enhanced: bool = True):
        self._client = client
        self._model = model
        self._use_enhanced = use_enhanced

    def _get_client(self):
        if self._client is None:
            from google.cloud import speech

            self._client = speech.SpeechClient()
        return self._client

    def recognize(self, audio: bytes, sample_rate: int, encoding: str, locale: str) -> list[str]:
        from google.cloud import speech

        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding[encoding],
            sample_rate_hertz=sample_rate,
            language_code=locale,
            audio_channel_count=1,
            enable_automatic_punctuation=True,
            model=self._model,
            use_enhanced=self._use_enhanced,
        )
        response = self._get_client().recognize(
            config=config,
            audio=speech.RecognitionAudio(content=audio),
        )
        return [
            result.alternatives[0].transcript
            for result in response.results
            if result.alternatives
        ]


class WhisperBackend:
    """
    OpenAI Whisper.

    Whisper takes ISO 639-1 codes, so "fa-IR" is sent as "fa".
    """

    def __init__(self, api_key: str = "", temperature: float = 0.0, client=None):
        self._api_key = api_key
        self._temperature = temperature
        self._client = client

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key, timeout=WHISPER_TIMEOUT)
        return self._client

    def recognize(self, audio: bytes, sample_rate: int, encoding: str, locale: str) -> list[str]:
        response = self._get_client().audio.transcriptions.create(
            model="whisper-1",
            file=("audio.wav", audio),
            language=locale.split("-", 1)[0],
            response_format="verbose_json",
            temperature=self._temperature,
        )

        segments = getattr(response, "segments", None) or []
        texts = [
            (segment.get("text") if isinstance(segment, dict) else getattr(segment, "text", "")) or ""
            for segment in segments
        ]
        if texts:
            return texts

        text = (getattr(response, "text", "") or "").strip()
        return [text] if text else []


class Transcriber:
    """Maps the user's language to a locale tag and flattens the segments."""

    def __init__(self, backend: SpeechBackend, default_language: str = "en"):
        self._backend = backend
        self._default_language = default_language

    async def transcribe(self, audio_path: str | Path, language: str) -> str:
        """
        Transcribes a normalized WAV file.

        Returns:
            Segments joined by newlines, in backend order and as the
            backend returned them. Empty string if nothing was recognized.

        Raises:
            TranscriptionError: If the backend call fails.
        """
        locale = get_locale(language, self._default_language)
        audio = await asyncio.to_thread(Path(audio_path).read_bytes)

        logger.info(f"[STT] Transcribing {Path(audio_path).name} (locale={locale}, {len(audio)} bytes)")
        try:
            segments = await asyncio.to_thread(
                self._backend.recognize, audio, SAMPLE_RATE_HZ, ENCODING, locale
            )
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"[STT] Backend error: {e}")
            raise TranscriptionError(str(e)) from e

        text = "\n".join(segments or [])
        logger.info(f"[STT] Transcription finished: segments={len(segments or [])}, characters={len(text)}")
        return text


def create_speech_backend(settings) -> SpeechBackend:
    """Builds the backend selected by SPEECH_BACKEND."""
    if settings.SPEECH_BACKEND == "whisper":
        return WhisperBackend(api_key=settings.OPENAI_API_KEY, temperature=settings.WHISPER_TEMPERATURE)
    return GoogleSpeechBackend()
