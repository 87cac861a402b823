"""
Speech service
OpenAI speech-to-text and streamed text-to-speech for voice mode.
"""
from __future__ import annotations

from typing import AsyncIterator, Optional

from openai import AsyncOpenAI, OpenAIError

from app.config import settings
from app.errors import AudioTooLargeError, UpstreamServiceError
from app.logging_config import get_logger

logger = get_logger(__name__)


class BoundedAudioBuffer:
    """
    Fixed-capacity byte accumulator.

    ``write`` raises ``AudioTooLargeError`` as soon as the capacity would be
    exceeded; the chunk that overflowed is not kept.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def write(self, chunk: bytes) -> None:
        if len(self._buffer) + len(chunk) > self.capacity:
            raise AudioTooLargeError(self.capacity)
        self._buffer.extend(chunk)

    def discard(self) -> None:
        self._buffer = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class SpeechService:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY or None,
            base_url=settings.OPENAI_BASE_URL,
        )

    async def transcribe(self, audio_bytes: bytes, filename: str = "speech.webm") -> str:
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=settings.OPENAI_STT_MODEL,
                file=(filename, audio_bytes),
            )
        except OpenAIError as e:
            raise UpstreamServiceError("transcription", f"Transcription failed: {e}") from e
        return (getattr(transcript, "text", None) or "").strip()

    async def stream_speech(self, text: str, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
        """Yield synthesized audio as it arrives from the API."""
        try:
            async with self.client.audio.speech.with_streaming_response.create(
                model=settings.OPENAI_TTS_MODEL,
                voice=settings.OPENAI_TTS_VOICE,
                input=text,
                response_format=settings.OPENAI_TTS_FORMAT,
            ) as response:
                async for chunk in response.iter_bytes(chunk_size):
                    yield chunk
        except OpenAIError as e:
            raise UpstreamServiceError("speech", f"Speech synthesis failed: {e}") from e

    async def synthesize(self, text: str, max_bytes: Optional[int] = None) -> bytes:
        """
        Collect the whole synthesized reply, bounded by ``max_bytes``.

        On overflow the upstream stream is closed, the collected bytes are
        dropped and ``AudioTooLargeError`` propagates.
        """
        buffer = BoundedAudioBuffer(max_bytes or settings.VOICE_MAX_AUDIO_RESPONSE_BYTES)
        stream = self.stream_speech(text)
        try:
            async for chunk in stream:
                buffer.write(chunk)
        except AudioTooLargeError:
            buffer.discard()
            logger.warning("speech_stream_aborted", limit=buffer.capacity)
            raise
        finally:
            await stream.aclose()
        return buffer.getvalue()
