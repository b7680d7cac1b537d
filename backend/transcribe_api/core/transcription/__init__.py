"""Transcription workflow."""

from transcribe_api.core.transcription.orchestrator import (
    JobStatus,
    TranscriptionJob,
    TranscriptionOrchestrator,
    TranscriptionOutcome,
    WorkflowState,
)

__all__ = [
    "JobStatus",
    "TranscriptionJob",
    "TranscriptionOrchestrator",
    "TranscriptionOutcome",
    "WorkflowState",
]
