"""Transcription provider integration."""

from transcribe_api.core.ai.assemblyai import AssemblyAIClient, get_assemblyai_client
from transcribe_api.core.ai.models import TranscriptState, TranscriptStatus

__all__ = ["AssemblyAIClient", "get_assemblyai_client", "TranscriptState", "TranscriptStatus"]
