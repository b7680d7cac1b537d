"""Provider job status types."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TranscriptState(str, Enum):
    """Status values reported by the provider for a transcript job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TranscriptState.COMPLETED, TranscriptState.ERROR)


@dataclass(frozen=True)
class TranscriptStatus:
    """One poll result for a provider transcript job."""

    job_id: str
    state: TranscriptState
    text: str | None = None
    error: str | None = None

    @classmethod
    def from_payload(cls, job_id: str, payload: dict[str, Any]) -> "TranscriptStatus":
        """Parse ``GET /transcript/{id}`` JSON.

        Raises:
            ValueError: If the status is missing or not one of TranscriptState
        """
        state = TranscriptState(payload.get("status"))
        return cls(
            job_id=job_id,
            state=state,
            text=payload.get("text"),
            error=payload.get("error"),
        )
