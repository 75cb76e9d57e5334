"""Coordinates audio extraction and transcription of uploaded videos.

Each uploaded file runs through its own pipeline
(materialize -> extract -> read -> transcribe -> persist), all pipelines of a
request run concurrently, and temp files are removed whatever the outcome.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Sequence

from .audio import AudioExtractor, temp_name_parts
from .storage import subtitle_path
from .transcribe_service import OutputFormat, TranscribeService, TranscriptionRequest

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    MATERIALIZE = "materialize"
    EXTRACT = "extract"
    READ = "read"
    TRANSCRIBE = "transcribe"
    PERSIST = "persist"


_STAGE_MESSAGES = {
    PipelineStage.MATERIALIZE: "could not create video file",
    PipelineStage.EXTRACT: "could not extract audio",
    PipelineStage.READ: "could not read audio file",
    PipelineStage.TRANSCRIBE: "could not generate subtitle",
    PipelineStage.PERSIST: "could not write subtitle file",
}


class PipelineError(Exception):
    """A single file's pipeline failed at the given stage."""

    def __init__(self, filename: str, stage: PipelineStage, error: BaseException) -> None:
        super().__init__(f"{filename}: {_STAGE_MESSAGES[stage]}: {error}")
        self.filename = filename
        self.stage = stage


class SubtitleGenerationError(Exception):
    """One or more pipelines of a request failed."""

    def __init__(self, errors: Sequence[Exception]) -> None:
        super().__init__(
            f"error while processing files: {len(errors)} failed: "
            + "; ".join(str(e) for e in errors)
        )
        self.errors = list(errors)

    @property
    def failed_filenames(self) -> list[str]:
        return [e.filename for e in self.errors if isinstance(e, PipelineError)]


@dataclass
class UploadJob:
    """One uploaded file waiting to be subtitled."""

    filename: str
    data: BinaryIO  # read exactly once, by the materialize stage
    language: str


class Subtitler:
    """Generates subtitle files from uploaded videos."""

    def __init__(
        self,
        audio_extractor: AudioExtractor,
        transcribe_service: TranscribeService,
        sample_rate: int,
        output_dir: str,
        tmp_dir: str,
        max_concurrent_pipelines: int = 0,
    ) -> None:
        self.audio_extractor = audio_extractor
        self.transcribe_service = transcribe_service
        self.sample_rate = sample_rate
        self.output_dir = output_dir
        self.tmp_dir = tmp_dir
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrent_pipelines) if max_concurrent_pipelines > 0 else None
        )

    async def generate(self, jobs: Sequence[UploadJob]) -> None:
        """
        Run one pipeline per job concurrently and wait for all of them.

        A failing pipeline does not interrupt the others.

        Raises:
            SubtitleGenerationError: Carrying every failure, in job order
        """
        results = await asyncio.gather(*(self._run(job) for job in jobs), return_exceptions=True)

        errors = []
        for result in results:
            if isinstance(result, Exception):
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result

        if errors:
            raise SubtitleGenerationError(errors)

    async def _run(self, job: UploadJob) -> None:
        if self._semaphore is None:
            await self.process_file(job)
            return
        async with self._semaphore:
            await self.process_file(job)

    async def process_file(self, job: UploadJob) -> None:
        """Run the pipeline of a single job, removing its temp files on the way out."""
        created: list[str] = []
        try:
            video_path = await self._stage(job, PipelineStage.MATERIALIZE, self._create_video_file(job))
            created.append(video_path)

            audio_path = await self._stage(
                job,
                PipelineStage.EXTRACT,
                self.audio_extractor.extract_audio(self.sample_rate, video_path),
            )
            created.append(audio_path)

            audio_data = await self._stage(job, PipelineStage.READ, asyncio.to_thread(_read_file, audio_path))

            subtitle_data = await self._stage(
                job,
                PipelineStage.TRANSCRIBE,
                self.transcribe_service.transcribe_audio(
                    TranscriptionRequest(
                        filename=job.filename,
                        language_code=job.language,
                        output_format=OutputFormat.SRT,
                        audio=audio_data,
                    )
                ),
            )

            path = subtitle_path(self.output_dir, job.filename)
            await self._stage(job, PipelineStage.PERSIST, asyncio.to_thread(_write_file, str(path), subtitle_data))
            logger.info(f"Saved subtitle file: {path}")
        finally:
            for file_path in reversed(created):
                self._remove_file(file_path)

    async def _stage(self, job: UploadJob, stage: PipelineStage, step):
        try:
            return await step
        except Exception as e:
            logger.error(f"Pipeline failed: filename={job.filename} stage={stage.value} error={e}")
            raise PipelineError(job.filename, stage, e) from e

    async def _create_video_file(self, job: UploadJob) -> str:
        """Copy the upload into a unique temp file named after the original filename."""
        prefix, suffix = temp_name_parts(job.filename)
        fd, video_path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self.tmp_dir)
        logger.debug(f"Created video file: filepath={video_path}")

        def copy() -> None:
            with os.fdopen(fd, "wb") as video_file:
                shutil.copyfileobj(job.data, video_file)

        try:
            await asyncio.to_thread(copy)
        except BaseException:
            self._remove_file(video_path)
            raise
        return video_path

    def _remove_file(self, file_path: str) -> None:
        try:
            os.remove(file_path)
        except OSError as e:
            logger.error(f"Could not remove file: filepath={file_path} error={e}")


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_file(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)
