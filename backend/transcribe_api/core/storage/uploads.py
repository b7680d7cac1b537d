"""Retained audio files served under ``/uploads``."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from transcribe_api.core.logging import get_logger
from transcribe_api.core.storage.temp_files import TempAudioFile

logger = get_logger(__name__)

UPLOADS_URL_PREFIX = "/uploads"


@dataclass(frozen=True)
class StoredUpload:
    filename: str
    path: Path
    size_bytes: int

    @property
    def url(self) -> str:
        """Relative URL the static mount serves this file from."""
        return f"{UPLOADS_URL_PREFIX}/{self.filename}"


def _new_filename(suffix: str) -> str:
    return f"{uuid4().hex}{suffix}"


def save_upload(data: bytes, uploads_dir: str | Path, suffix: str = "") -> StoredUpload:
    """Write raw upload bytes under a generated name."""
    directory = Path(uploads_dir)
    directory.mkdir(parents=True, exist_ok=True)

    filename = _new_filename(suffix)
    path = directory / filename
    path.write_bytes(data)
    return StoredUpload(filename=filename, path=path, size_bytes=len(data))


def retain_copy(handle: TempAudioFile, uploads_dir: str | Path) -> StoredUpload:
    """Copy a temp file into the uploads directory before it is released."""
    directory = Path(uploads_dir)
    directory.mkdir(parents=True, exist_ok=True)

    filename = _new_filename(handle.suffix)
    path = directory / filename
    shutil.copyfile(handle.path, path)
    return StoredUpload(filename=filename, path=path, size_bytes=path.stat().st_size)


def discard(stored: StoredUpload) -> None:
    """Remove a retained file whose record was never written."""
    try:
        stored.path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("retained_audio_discard_failed", path=str(stored.path), error=str(e))
