"""Local file storage for uploaded audio."""

from transcribe_api.core.storage.temp_files import (
    TempAudioFile,
    acquire,
    release,
    scoped_temp_file,
)
from transcribe_api.core.storage.uploads import StoredUpload, discard, retain_copy, save_upload

__all__ = [
    "TempAudioFile",
    "acquire",
    "release",
    "scoped_temp_file",
    "StoredUpload",
    "discard",
    "retain_copy",
    "save_upload",
]
