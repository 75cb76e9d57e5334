"""File storage helpers for subtitle files.

Every function rescans the directory it is given; there is no index.
"""

import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SUBTITLE_EXTENSION = ".srt"


def ensure_directory(path: str) -> None:
    """Create the directory and any missing parents. Safe to call repeatedly."""
    Path(path).mkdir(parents=True, exist_ok=True)
    logger.debug(f"Ensured directory exists: {path}")


def subtitle_path(directory: str, filename: str) -> Path:
    """
    Return where the subtitle for an uploaded file is stored.

    Example:
        >>> subtitle_path("subtitles", "clips/a.mp4")
        PosixPath('subtitles/a.srt')
    """
    stem = os.path.splitext(os.path.basename(filename))[0]
    return Path(directory) / f"{stem}{SUBTITLE_EXTENSION}"


def _subtitle_entries(directory: str) -> list[os.DirEntry]:
    with os.scandir(directory) as entries:
        return [
            entry
            for entry in entries
            if entry.is_file() and os.path.splitext(entry.name)[1] == SUBTITLE_EXTENSION
        ]


def list_subtitles(directory: str) -> list[str]:
    """Return the sorted names of the .srt files directly inside the directory."""
    return sorted(entry.name for entry in _subtitle_entries(directory))


def find_subtitle(directory: str, name: str) -> Optional[Path]:
    """Return the path of the entry called name, or None when there is none."""
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_file() and entry.name == name:
                return Path(entry.path)
    return None


def delete_subtitle(directory: str, name: str) -> bool:
    """
    Remove the entry called name.

    Returns:
        True if a file was removed, False if none matched
    """
    path = find_subtitle(directory, name)
    if path is None:
        return False
    path.unlink()
    logger.info(f"Deleted subtitle file: {path}")
    return True


def build_archive(directory: str) -> bytes:
    """Zip every .srt file of the directory, in memory, under its base name."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in sorted(_subtitle_entries(directory), key=lambda e: e.name):
            archive.write(entry.path, arcname=entry.name)
    return buffer.getvalue()
