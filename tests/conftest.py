"""Shared fixtures: fake transport, fake speech backend, services factory.

Nothing here talks to Telegram, Google or OpenAI. Downloads go through
httpx.MockTransport and the ffmpeg conversion is replaced by a
transcoder that writes a small file (or fails on purpose).
"""

from pathlib import Path

import httpx
import pytest

from bot.audio_processor import AudioPipeline
from bot.auth import WhitelistStore
from bot.dispatcher import BotServices
from bot.errors import TranscodingError
from bot.events import AudioAttachment, ChatKind, EventKind, InboundEvent
from bot.messages import MessageCatalog
from bot.middleware import AccessMiddleware, GroupPolicy
from bot.proofreader import Proofreader
from bot.session import LanguageStore
from bot.transcription import Transcriber
from config.settings import Settings

ADMIN_ID = 999
MEMBER_ID = 111
STRANGER_ID = 555
CHAT_ID = 4242

AUDIO_BYTES = b"OggS" + b"\x00" * 2048


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeTransport:
    """Records every reply instead of sending it."""

    def __init__(self):
        self.replies: list[tuple[int, str]] = []
        self.file_requests: list[str] = []

    async def reply(self, chat_id: int, text: str) -> None:
        self.replies.append((chat_id, text))

    async def get_file_url(self, file_id: str) -> str:
        self.file_requests.append(file_id)
        return f"https://files.example/{file_id}"

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.replies]


class FakeSpeechBackend:
    def __init__(self, segments=None, error: Exception | None = None):
        self.segments = ["hello world"] if segments is None else segments
        self.error = error
        self.calls: list[dict] = []

    def recognize(self, audio: bytes, sample_rate: int, encoding: str, locale: str) -> list[str]:
        self.calls.append(
            {"audio": audio, "sample_rate": sample_rate, "encoding": encoding, "locale": locale}
        )
        if self.error is not None:
            raise self.error
        return list(self.segments)


class CountingHTTP:
    """httpx MockTransport handler that counts requests."""

    def __init__(self, status_code: int = 200, content: bytes = AUDIO_BYTES):
        self.status_code = status_code
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def fake_transcoder(input_path: str, output_path: str) -> str:
    Path(output_path).write_bytes(b"RIFF" + Path(input_path).read_bytes()[:16])
    return output_path


def failing_transcoder(input_path: str, output_path: str) -> str:
    # Leave a partially written output behind, like a crashed ffmpeg
    Path(output_path).write_bytes(b"RIFF-partial")
    raise TranscodingError("ffmpeg exited with status 1")


def make_event(
    kind: EventKind = EventKind.COMMAND,
    sender_id: int | None = MEMBER_ID,
    chat_kind: ChatKind = ChatKind.DIRECT,
    text: str = "",
    command: str | None = None,
    args: str = "",
    reply_to_text: str | None = None,
    attachment: AudioAttachment | None = None,
    message_id: int = 1,
) -> InboundEvent:
    return InboundEvent(
        kind=kind,
        sender_id=sender_id,
        chat_id=CHAT_ID,
        chat_kind=chat_kind,
        message_id=message_id,
        text=text,
        command=command,
        args=args,
        reply_to_text=reply_to_text,
        attachment=attachment,
    )


def command_event(name: str, args: str = "", **kwargs) -> InboundEvent:
    text = f"/{name} {args}".strip()
    return make_event(EventKind.COMMAND, text=text, command=name, args=args, **kwargs)


def voice_event(file_size: int = 2048, mime_type: str | None = "audio/ogg", **kwargs) -> InboundEvent:
    attachment = AudioAttachment(
        file_id="voice-file-id",
        file_unique_id="uniq1",
        file_size=file_size,
        mime_type=mime_type,
        duration=3,
    )
    return make_event(EventKind.AUDIO, attachment=attachment, **kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        TELEGRAM_BOT_TOKEN="123456:TEST",
        WHITELIST_ENABLED=True,
        WHITELIST_USERS=frozenset({MEMBER_ID}),
        ADMIN_USER_ID=ADMIN_ID,
        GROUP_COMMANDS_ONLY=True,
        GROUP_ALLOWED_COMMANDS=("help", "language", "proofread"),
        GROUP_IGNORE_NON_COMMANDS=True,
        MAX_AUDIO_SIZE_MB=1,
        TEMP_DIR=str(tmp_path / "scratch"),
        LOG_DIR="",
    )


@pytest.fixture
def http():
    return CountingHTTP()


@pytest.fixture
def speech():
    return FakeSpeechBackend()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def services(settings, http, speech, transport) -> BotServices:
    return BotServices(
        settings=settings,
        whitelist=WhitelistStore(settings.WHITELIST_USERS, admin_id=settings.ADMIN_USER_ID),
        languages=LanguageStore(settings.DEFAULT_LANGUAGE),
        catalog=MessageCatalog(default_language="en"),
        pipeline=AudioPipeline(
            settings.TEMP_DIR,
            max_size_bytes=settings.max_audio_size_bytes,
            transcoder=fake_transcoder,
            http_transport=http.transport,
        ),
        transcriber=Transcriber(speech),
        proofreader=Proofreader(),
        transport=transport,
    )


@pytest.fixture
def middleware(settings, services) -> AccessMiddleware:
    return AccessMiddleware(
        services.whitelist,
        GroupPolicy(
            commands_only=settings.GROUP_COMMANDS_ONLY,
            allowed_commands=settings.GROUP_ALLOWED_COMMANDS,
            ignore_non_commands=settings.GROUP_IGNORE_NON_COMMANDS,
        ),
        whitelist_enabled=settings.WHITELIST_ENABLED,
    )


@pytest.fixture
def scratch_dir(settings) -> Path:
    return Path(settings.TEMP_DIR)
