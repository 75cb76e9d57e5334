"""ffmpeg-based audio extraction for uploaded videos."""

import asyncio
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

STDERR_TAIL = 500
# mkstemp names are prefix + 8 random chars + suffix; keep them under the 255-byte limit
MAX_PREFIX_BYTES = 100
MAX_SUFFIX_BYTES = 20


def _truncate(text: str, max_bytes: int) -> str:
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def temp_name_parts(filename: str) -> tuple[str, str]:
    """Return the mkstemp (prefix, suffix) for a temp file named after filename."""
    stem, ext = os.path.splitext(os.path.basename(filename))
    return f"{_truncate(stem, MAX_PREFIX_BYTES)}-", _truncate(ext, MAX_SUFFIX_BYTES)


class AudioExtractionError(Exception):
    """Raised when ffmpeg cannot produce an audio file from a video."""


class AudioExtractor:
    """Extracts raw PCM audio from video files with ffmpeg.

    Every call works on its own output file, so one extractor can serve
    many pipelines at the same time.
    """

    def __init__(
        self,
        tmp_dir: str,
        channels: int = 2,
        bitrate: str = "32k",
        ffmpeg_binary: str = "ffmpeg",
    ) -> None:
        self.tmp_dir = tmp_dir
        self.channels = channels
        self.bitrate = bitrate
        self.ffmpeg_binary = ffmpeg_binary

    def build_command(self, input_file: str, output_file: str, sample_rate: int) -> list[str]:
        """Return the ffmpeg argument vector for a 16-bit PCM extraction."""
        return [
            self.ffmpeg_binary,
            "-y",
            "-i",
            input_file,
            "-vn",
            "-f",
            "s16le",
            "-acodec",
            "pcm_s16le",
            "-ar",
            str(sample_rate),
            "-ac",
            str(self.channels),
            "-b:a",
            self.bitrate,
            output_file,
        ]

    async def extract_audio(self, sample_rate: int, input_file: str) -> str:
        """
        Decode the audio track of a video into a new file in the temp directory.

        Args:
            sample_rate: Output sample rate in Hz
            input_file: Path to the video file

        Returns:
            Path of the audio file, owned by the caller from then on

        Raises:
            AudioExtractionError: If ffmpeg is missing or exits with an error
        """
        prefix, _ = temp_name_parts(input_file)
        fd, output_file = tempfile.mkstemp(prefix=prefix, suffix=".pcm", dir=self.tmp_dir)
        os.close(fd)

        cmd = self.build_command(input_file, output_file, sample_rate)
        logger.debug(f"Extracting audio: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as e:
            self._discard(output_file)
            raise AudioExtractionError(f"could not run {self.ffmpeg_binary}: {e}") from e

        if process.returncode != 0:
            self._discard(output_file)
            message = stderr.decode(errors="replace").strip()[-STDERR_TAIL:]
            raise AudioExtractionError(
                f"{self.ffmpeg_binary} exited with status {process.returncode}: {message}"
            )

        logger.debug(f"Extracted audio from {input_file} to {output_file}")
        return output_file

    def _discard(self, file_path: str) -> None:
        try:
            os.remove(file_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove file: filepath={file_path} error={e}")
