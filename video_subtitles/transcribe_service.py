"""This module contains classes to manage the Amazon Transcribe communication"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024
FIRST_CHANNEL = "ch_0"


class OutputFormat(str, Enum):
    """Formats the transcription can be rendered to."""

    SRT = "srt"
    TEXT = "text"


class TranscriptionError(Exception):
    """Raised when Amazon Transcribe fails to transcribe an audio file."""


@dataclass
class TranscriptionRequest:
    """One audio file to transcribe."""

    filename: str
    language_code: str
    output_format: OutputFormat
    audio: bytes


@dataclass
class TranscriptSegment:
    """A final transcript result with its timing in seconds."""

    start: float
    end: float
    text: str


class SegmentCollector(TranscriptResultStreamHandler):
    """Handles transcript events from Amazon Transcribe and keeps final results."""

    def __init__(self, transcript_result_stream, channel_id: str | None = None) -> None:
        super().__init__(transcript_result_stream)
        self.channel_id = channel_id
        self.segments: list[TranscriptSegment] = []

    async def handle_transcript_event(self, transcript_event: TranscriptEvent) -> None:
        """Filter out partial results and other channels, store the best alternative."""
        for result in transcript_event.transcript.results:
            if result.is_partial or not result.alternatives:
                continue
            if self.channel_id is not None and result.channel_id not in (None, self.channel_id):
                continue
            text = result.alternatives[0].transcript.strip()
            if text:
                self.segments.append(TranscriptSegment(result.start_time, result.end_time, text))


def format_timestamp(seconds: float) -> str:
    """Convert seconds to SRT time format (HH:MM:SS,mmm)."""
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def render_srt(segments: list[TranscriptSegment]) -> str:
    """Render segments as SubRip entries: number, timecode, text, blank line."""
    lines = []
    for counter, segment in enumerate(segments, start=1):
        lines.append(str(counter))
        lines.append(f"{format_timestamp(segment.start)} --> {format_timestamp(segment.end)}")
        lines.append(segment.text)
        lines.append("")
    return "\n".join(lines)


def render(segments: list[TranscriptSegment], output_format: OutputFormat) -> bytes:
    if output_format == OutputFormat.SRT:
        return render_srt(segments).encode("utf-8")
    return "".join(f"{segment.text}\n" for segment in segments).encode("utf-8")


class TranscribeService:
    """Transcribes whole audio files through Amazon Transcribe streaming sessions."""

    def __init__(self, region: str = "eu-west-1", sample_rate: int = 16000, channels: int = 2) -> None:
        # The client will automatically use AWS_PROFILE from the environment
        self.client = TranscribeStreamingClient(region=region)
        self.sample_rate = sample_rate
        self.channels = channels

    async def transcribe_audio(self, request: TranscriptionRequest) -> bytes:
        """Stream the request's PCM audio to Transcribe and return the rendered transcript.

        Each call opens its own stream, so concurrent calls do not interfere.
        """
        logger.debug(
            f"Transcribing {request.filename} ({len(request.audio)} bytes, "
            f"language={request.language_code}, format={request.output_format.value})"
        )
        try:
            segments = await self._transcribe(request)
        except Exception as e:
            raise TranscriptionError(f"could not transcribe {request.filename}: {e}") from e

        logger.debug(f"Transcribed {request.filename} into {len(segments)} segments")
        return render(segments, request.output_format)

    async def _transcribe(self, request: TranscriptionRequest) -> list[TranscriptSegment]:
        stream_options = {}
        channel_id = None
        if self.channels > 1:
            stream_options = {
                "number_of_channels": self.channels,
                "enable_channel_identification": True,
            }
            channel_id = FIRST_CHANNEL

        # Start the stream towards AWS
        stream = await self.client.start_stream_transcription(
            language_code=request.language_code,
            media_sample_rate_hz=self.sample_rate,
            media_encoding="pcm",
            **stream_options,
        )

        async def send_audio():
            for offset in range(0, len(request.audio), CHUNK_SIZE):
                await stream.input_stream.send_audio_event(
                    audio_chunk=request.audio[offset : offset + CHUNK_SIZE]
                )
            await stream.input_stream.end_stream()

        handler = SegmentCollector(stream.output_stream, channel_id=channel_id)

        # Run sending and receiving in parallel
        await asyncio.gather(send_audio(), handler.handle_events())
        return handler.segments
