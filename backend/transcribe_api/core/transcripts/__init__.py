"""Transcript records and their store."""

from transcribe_api.core.transcripts.models import TranscriptRecord
from transcribe_api.core.transcripts.store import TranscriptStore

__all__ = ["TranscriptRecord", "TranscriptStore"]
