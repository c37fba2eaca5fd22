"""
bot/audio_processor.py - Audio validation, download and conversion.

Prepares audio before it goes to the speech backend:

    1. Validation (declared size and MIME type, before any download)
    2. Streamed download to the scratch directory
    3. Conversion to WAV mono 16kHz 16-bit PCM (LINEAR16)
    4. Cleanup of both scratch files, whatever happens

Scratch files for one invocation:
    {TEMP_DIR}/{correlation_id}_original
    {TEMP_DIR}/{correlation_id}.wav

External dependency: FFmpeg (used by pydub)
    - Local: install with apt/brew/choco

Usage:
    from bot.audio_processor import AudioPipeline, validate_audio

    validate_audio(file_size, mime_type, settings)
    async with pipeline.process(url, correlation_id) as wav_path:
        text = await transcriber.transcribe(wav_path, "en")
    # both scratch files are gone here
"""

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import httpx
from pydub import AudioSegment

from bot.errors import AudioValidationError, DownloadError, TranscodingError
from bot.utils import cleanup_file, format_file_size, safe_correlation_id

logger = logging.getLogger(__name__)


# ============================================================
# Target format for speech recognition
# ============================================================
SAMPLE_RATE_HZ = 16000
CHANNELS = 1
SAMPLE_WIDTH_BYTES = 2  # 16-bit linear PCM
ENCODING = "LINEAR16"

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def validate_audio(
    file_size: int | None,
    mime_type: str | None,
    max_size_bytes: int,
    supported_formats=(),
) -> None:
    """
    Checks the declared size and MIME type of an attachment.

    Runs before the download to save bandwidth and time. The MIME
    type is only checked when the platform reports one.

    Raises:
        AudioValidationError: If the file is too large or unsupported.
    """
    if file_size is not None and file_size > max_size_bytes:
        raise AudioValidationError(
            f"declared size {file_size} exceeds {max_size_bytes}",
            message_key="error_too_large",
            params={"size": format_file_size(file_size), "max_size": format_file_size(max_size_bytes)},
        )

    if mime_type and supported_formats and mime_type.lower() not in supported_formats:
        raise AudioValidationError(
            f"unsupported MIME type {mime_type}",
            message_key="error_unsupported_format",
            params={"mime_type": mime_type},
        )


def convert_to_wav(input_path: str, output_path: str) -> str:
    """
    Converts any audio format to WAV mono 16kHz 16-bit PCM.

    Conversion parameters for speech-to-text:
        - Mono (1 channel): speech does not need stereo
        - 16kHz: standard rate for speech recognition
        - 16-bit PCM: the LINEAR16 encoding the backends expect

    Raises:
        TranscodingError: If ffmpeg cannot decode or write the file.
    """
    try:
        audio = AudioSegment.from_file(input_path)
        audio = audio.set_channels(CHANNELS)
        audio = audio.set_frame_rate(SAMPLE_RATE_HZ)
        audio = audio.set_sample_width(SAMPLE_WIDTH_BYTES)
        audio.export(output_path, format="wav")
    except Exception as e:
        raise TranscodingError(f"conversion of {input_path} failed: {e}") from e

    logger.info(
        f"[AUDIO] Conversion OK: {format_file_size(os.path.getsize(input_path))} → "
        f"{format_file_size(os.path.getsize(output_path))}"
    )
    return output_path


@dataclass
class AudioArtifact:
    """
    Scratch files owned by one pipeline invocation.

    release() removes both files. It is idempotent and never raises.
    """

    original_path: Path
    normalized_path: Path
    released: bool = field(default=False, init=False)

    def release(self) -> None:
        cleanup_file(self.original_path)
        cleanup_file(self.normalized_path)
        self.released = True


class AudioPipeline:
    """
    Download → convert → cleanup.

    Args:
        temp_dir: Scratch directory (created on demand).
        max_size_bytes: Abort downloads that grow past this size (0 = no limit).
        timeout: Download timeout in seconds.
        transcoder: Callable (input_path, output_path) doing the conversion.
        http_transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        temp_dir: Path | str,
        max_size_bytes: int = 0,
        timeout: float = 60.0,
        transcoder: Callable[[str, str], object] = convert_to_wav,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._temp_dir = Path(temp_dir)
        self._max_size_bytes = max_size_bytes
        self._timeout = timeout
        self._transcoder = transcoder
        self._http_transport = http_transport

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir

    def artifact_for(self, correlation_id: str) -> AudioArtifact:
        cid = safe_correlation_id(correlation_id)
        return AudioArtifact(
            original_path=self._temp_dir / f"{cid}_original",
            normalized_path=self._temp_dir / f"{cid}.wav",
        )

    async def download(self, url: str, destination: Path) -> int:
        """
        Streams `url` into `destination` chunk by chunk.

        Returns:
            Number of bytes written.

        Raises:
            DownloadError: On HTTP/network errors or if the payload is
                larger than max_size_bytes.
        """
        written = 0
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._http_transport,
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(destination, "wb") as f:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            written += len(chunk)
                            if self._max_size_bytes and written > self._max_size_bytes:
                                raise DownloadError(
                                    f"download exceeded {self._max_size_bytes} bytes",
                                    message_key="error_too_large",
                                    params={
                                        "size": f">{format_file_size(self._max_size_bytes)}",
                                        "max_size": format_file_size(self._max_size_bytes),
                                    },
                                )
                            f.write(chunk)
        except httpx.HTTPError as e:
            # str(e) may contain the file URL, which embeds the bot token
            raise DownloadError(f"download failed: {type(e).__name__}") from e
        except OSError as e:
            raise DownloadError(f"could not write {destination}: {e}") from e

        logger.info(f"[AUDIO] Download complete: {format_file_size(written)}")
        return written

    async def _transcode(self, artifact: AudioArtifact) -> None:
        """
        Runs the blocking transcoder in a worker thread.

        A thread cannot be interrupted: if the task is cancelled, this
        waits for the thread to finish before re-raising, so the caller's
        cleanup always runs after the transcoder's last write.
        """
        job = asyncio.ensure_future(
            asyncio.to_thread(
                self._transcoder,
                str(artifact.original_path),
                str(artifact.normalized_path),
            )
        )
        try:
            await asyncio.shield(job)
        except asyncio.CancelledError:
            logger.info(f"[AUDIO] Cancelled, waiting for the transcoder to finish ({artifact.normalized_path.name})")
            await asyncio.wait({job})
            if not job.cancelled():
                job.exception()  # retrieved: the cancellation wins
            raise

    async def prepare(self, url: str, correlation_id: str) -> AudioArtifact:
        """
        Downloads and converts the audio.

        The caller owns the returned artifact and must call release().
        If any step fails, both scratch files are removed before the
        error propagates.

        Raises:
            DownloadError: If the download fails.
            TranscodingError: If the conversion fails.
        """
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        artifact = self.artifact_for(correlation_id)

        try:
            logger.info(f"[AUDIO] Downloading audio ({correlation_id})")
            await self.download(url, artifact.original_path)

            logger.info(f"[AUDIO] Converting {artifact.original_path.name} → WAV")
            await self._transcode(artifact)
        except BaseException as e:
            # Also covers task cancellation
            artifact.release()
            if isinstance(e, (DownloadError, TranscodingError)) or not isinstance(e, Exception):
                raise
            raise TranscodingError(f"audio preparation failed: {e}") from e

        if not artifact.normalized_path.exists():
            artifact.release()
            raise TranscodingError("transcoder produced no output")

        return artifact

    @asynccontextmanager
    async def process(self, url: str, correlation_id: str):
        """
        Scoped version of prepare(): yields the WAV path and always
        releases the scratch files on exit.
        """
        artifact = await self.prepare(url, correlation_id)
        try:
            yield artifact.normalized_path
        finally:
            artifact.release()
