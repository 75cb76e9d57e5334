"""FastAPI application exposing the subtitle upload, listing, download and archive endpoints."""

import logging

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import FileResponse, JSONResponse
from starlette.datastructures import Headers, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from . import storage
from .audio import AudioExtractor
from .config import Settings
from .subtitles import SubtitleGenerationError, Subtitler, UploadJob
from .transcribe_service import TranscribeService

logger = logging.getLogger(__name__)

FILE_FIELD = "file"
LANGUAGE_FIELD = "language"
ARCHIVE_NAME = "legendas.zip"


class RequestTooLarge(Exception):
    """Raised while reading a request body that goes over the upload cap."""

    def __init__(self, received: int) -> None:
        super().__init__(f"request body exceeded the limit after {received} bytes")
        self.received = received


class MaxBodySizeMiddleware:
    """Answers 413 once a request body goes over `settings.max_upload_size`.

    The declared Content-Length is checked before the app runs, and the bytes
    actually received are counted, so chunked bodies are capped as well.
    """

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        self.app = app
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = self.settings.max_upload_size
        length = _declared_length(Headers(scope=scope))
        if length is not None and length > limit:
            await self._reject(scope, receive, send, f"declared {length} bytes")
            return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise RequestTooLarge(received)
            return message

        async def tracked_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracked_send)
        except RequestTooLarge as e:
            if response_started:
                raise
            await self._reject(scope, receive, send, str(e))

    async def _reject(self, scope: Scope, receive: Receive, send: Send, reason: str) -> None:
        logger.error(
            f"Responding with error: message=Request body too large status=413 "
            f"path={scope.get('path')} limit={self.settings.max_upload_size} error={reason}"
        )
        response = JSONResponse({"detail": "Request body too large"}, status_code=413)
        await response(scope, receive, send)


def _declared_length(headers: Headers) -> int | None:
    try:
        return int(headers["content-length"])
    except (KeyError, ValueError):
        return None


settings = Settings()
app = FastAPI(title="Video Subtitles API")
app.add_middleware(MaxBodySizeMiddleware, settings=settings)
subtitler = Subtitler(
    audio_extractor=AudioExtractor(
        tmp_dir=settings.tmp_dir,
        channels=settings.audio_channels,
        bitrate=settings.audio_bitrate,
        ffmpeg_binary=settings.ffmpeg_binary,
    ),
    transcribe_service=TranscribeService(
        region=settings.aws_region,
        sample_rate=settings.sample_rate,
        channels=settings.audio_channels,
    ),
    sample_rate=settings.sample_rate,
    output_dir=settings.subtitles_dir,
    tmp_dir=settings.tmp_dir,
    max_concurrent_pipelines=settings.max_concurrent_pipelines,
)


def _error(message: str, err: Exception | None, status_code: int, **extra) -> HTTPException:
    """Log the failure with its context and build the response to raise."""
    if err is not None:
        logger.error(f"Responding with error: message={message} status={status_code} error={err}")
    else:
        logger.error(f"Responding with error: message={message} status={status_code}")
    detail = {"message": message, **extra} if extra else message
    return HTTPException(status_code=status_code, detail=detail)


@app.post("/upload")
async def upload_videos(request: Request) -> dict:
    """Generate one subtitle file per uploaded video, all files in parallel."""
    try:
        form = await request.form()
    except StarletteHTTPException as e:
        # Starlette reports malformed multipart bodies as a 400 of its own
        raise _error("Failed to parse the request", e, 400) from e

    try:
        uploads = [item for item in form.getlist(FILE_FIELD) if isinstance(item, UploadFile)]
        if not uploads:
            raise _error("No file part in request", None, 400)

        language = form.get(LANGUAGE_FIELD)
        if not isinstance(language, str) or not language.strip():
            language = settings.default_language

        jobs = [
            UploadJob(filename=upload.filename or "upload", data=upload.file, language=language.strip())
            for upload in uploads
        ]

        try:
            await subtitler.generate(jobs)
        except SubtitleGenerationError as e:
            raise _error("Failed to generate subtitles", e, 500, failed=e.failed_filenames) from e
    finally:
        await form.close()

    return {
        "message": "Subtitles generated successfully",
        "subtitles": [storage.subtitle_path(settings.subtitles_dir, job.filename).name for job in jobs],
    }


@app.get("/subtitles")
def list_subtitles() -> dict:
    """List the .srt files in the subtitles directory."""
    try:
        names = storage.list_subtitles(settings.subtitles_dir)
    except OSError as e:
        raise _error("Failed to list subtitles", e, 500) from e
    return {"subtitles": names}


# Registered before /subtitles/{name} so that "zip" is not taken as a name.
@app.get("/subtitles/zip")
def download_archive() -> Response:
    """Bundle every stored subtitle into a single zip download."""
    try:
        data = storage.build_archive(settings.subtitles_dir)
    except OSError as e:
        raise _error("Failed to compile zip file", e, 500) from e
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ARCHIVE_NAME}"'},
    )


@app.get("/subtitles/{name}")
def download_subtitle(name: str) -> FileResponse:
    """Send one stored subtitle as an attachment."""
    try:
        path = storage.find_subtitle(settings.subtitles_dir, name)
    except OSError as e:
        raise _error("Failed to read subtitle", e, 500) from e
    if path is None:
        raise HTTPException(status_code=404, detail="Subtitle not found")
    return FileResponse(path, media_type="application/x-subrip", filename=name)


@app.delete("/subtitles/{name}", status_code=204)
def delete_subtitle(name: str) -> Response:
    """Remove one stored subtitle."""
    try:
        deleted = storage.delete_subtitle(settings.subtitles_dir, name)
    except OSError as e:
        raise _error("Failed to delete subtitle", e, 500) from e
    if not deleted:
        raise HTTPException(status_code=404, detail="Subtitle not found")
    return Response(status_code=204)
