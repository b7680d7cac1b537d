"""Scoped temporary storage for uploaded audio.

The bytes of an upload live on disk only for the duration of one
transcription workflow. Release is best-effort: by the time it runs the
workflow outcome is already decided, so a failed unlink is logged and
otherwise ignored.
"""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from transcribe_api.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TempAudioFile:
    """Handle to one uploaded audio blob on local disk."""

    path: Path

    @property
    def suffix(self) -> str:
        return self.path.suffix

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


def acquire(data: bytes, suffix: str = "", directory: str | Path | None = None) -> TempAudioFile:
    """Write ``data`` to a fresh temp file and return its handle."""
    fd, name = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError:
        Path(name).unlink(missing_ok=True)
        raise

    handle = TempAudioFile(path=Path(name))
    logger.debug("temp_file_acquired", path=name, size_bytes=len(data))
    return handle


def release(handle: TempAudioFile) -> None:
    """Delete the backing file; failures are logged, never raised."""
    try:
        handle.path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("temp_file_release_failed", path=str(handle.path), error=str(e))
        return
    logger.debug("temp_file_released", path=str(handle.path))


@contextmanager
def scoped_temp_file(
    data: bytes,
    suffix: str = "",
    directory: str | Path | None = None,
) -> Iterator[TempAudioFile]:
    """Acquire a temp file for the body of the ``with`` block, then release it."""
    handle = acquire(data, suffix=suffix, directory=directory)
    try:
        yield handle
    finally:
        release(handle)
