import sys
import os
import tempfile
import asyncio
from types import SimpleNamespace

import pytest

# Ensure the project root is in sys.path so `from video_subtitles.main import app` works
# with relative imports inside the package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from video_subtitles.audio import AudioExtractionError
from video_subtitles.transcribe_service import TranscriptionError


class FakeExtractor:
    """Writes a fake audio file next to the video, or fails for chosen filenames."""

    def __init__(self, tmp_dir, fail_for=()):
        self.tmp_dir = tmp_dir
        self.fail_for = set(fail_for)
        self.inputs = []

    async def extract_audio(self, sample_rate, input_file):
        self.inputs.append(input_file)
        with open(input_file, "rb") as f:
            video = f.read()
        if any(os.path.basename(input_file).startswith(name) for name in self.fail_for):
            raise AudioExtractionError("ffmpeg exited with status 1: invalid data")
        fd, path = tempfile.mkstemp(suffix=".pcm", dir=self.tmp_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(b"pcm:" + video)
        return path


class FakeTranscriber:
    """Returns a one-entry SubRip file per request, or fails for chosen filenames."""

    def __init__(self, fail_for=(), delay=0.0):
        self.fail_for = set(fail_for)
        self.delay = delay
        self.requests = []
        self.running = 0
        self.max_running = 0

    async def transcribe_audio(self, request):
        self.requests.append(request)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            if request.filename in self.fail_for:
                raise TranscriptionError(f"could not transcribe {request.filename}: quota exceeded")
            return f"1\n00:00:00,000 --> 00:00:01,000\n{request.filename}\n".encode()
        finally:
            self.running -= 1


@pytest.fixture
def workdirs(tmp_path):
    tmp_dir = tmp_path / "tmp"
    subtitles_dir = tmp_path / "subtitles"
    tmp_dir.mkdir()
    subtitles_dir.mkdir()
    return SimpleNamespace(tmp=tmp_dir, subtitles=subtitles_dir)


@pytest.fixture
def fake_extractor(workdirs):
    return FakeExtractor(str(workdirs.tmp))


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def api(monkeypatch, workdirs, fake_extractor, fake_transcriber):
    """The app module pointed at temp directories, with fake collaborators."""
    from video_subtitles import main

    monkeypatch.setattr(main.settings, "tmp_dir", str(workdirs.tmp))
    monkeypatch.setattr(main.settings, "subtitles_dir", str(workdirs.subtitles))
    monkeypatch.setattr(main.subtitler, "tmp_dir", str(workdirs.tmp))
    monkeypatch.setattr(main.subtitler, "output_dir", str(workdirs.subtitles))
    monkeypatch.setattr(main.subtitler, "audio_extractor", fake_extractor)
    monkeypatch.setattr(main.subtitler, "transcribe_service", fake_transcriber)
    return main
