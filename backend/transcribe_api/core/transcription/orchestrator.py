"""Upload → submit → poll → persist workflow.

One call to ``TranscriptionOrchestrator.transcribe`` walks a single upload
through these states:

    received → submitting → awaiting_result → persisting → done

with error exits ``rejected`` (bad input), ``provider_failed`` and
``persist_failed``. The temp file holding the audio is acquired on entry to
``submitting`` and released only after the persist attempt has concluded,
whatever the outcome.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol
from uuid import UUID

from transcribe_api.core.errors import (
    InputError,
    PersistenceError,
    ProviderError,
    TranscriptionTimeoutError,
)
from transcribe_api.core.logging import get_logger
from transcribe_api.core.storage.temp_files import TempAudioFile, scoped_temp_file
from transcribe_api.core.storage.uploads import StoredUpload, discard, retain_copy
from transcribe_api.core.transcripts.models import TranscriptRecord

logger = get_logger(__name__)


class WorkflowState(str, Enum):
    RECEIVED = "received"
    SUBMITTING = "submitting"
    AWAITING_RESULT = "awaiting_result"
    PERSISTING = "persisting"
    DONE = "done"
    REJECTED = "rejected"
    PROVIDER_FAILED = "provider_failed"
    PERSIST_FAILED = "persist_failed"


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class TranscriptionJob:
    """Provider-side progress of one request. Lives only for that request."""

    audio_ref: TempAudioFile
    provider_upload_url: str | None = None
    provider_job_id: str | None = None
    status: JobStatus = JobStatus.SUBMITTED
    result_text: str | None = None

    def complete(self, text: str) -> None:
        self.status = JobStatus.COMPLETED
        self.result_text = text


@dataclass(frozen=True)
class TranscriptionOutcome:
    record_id: UUID
    text: str
    audio_url: str | None = None


class TranscriptionProvider(Protocol):
    async def submit(self, audio: TempAudioFile) -> str: ...

    async def create_job(self, upload_url: str) -> str: ...

    async def await_result(self, job_id: str, max_attempts: int, poll_interval: float) -> str: ...


class TranscriptRepository(Protocol):
    async def insert(self, record: TranscriptRecord) -> UUID: ...


class TranscriptionOrchestrator:
    """
    Runs the transcription workflow against a provider and a store.

    Both collaborators are process-wide and shared by every request; the
    orchestrator itself keeps no per-request state except the set of
    in-flight workflow tasks used by ``run`` and ``drain``.
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        store: TranscriptRepository,
        max_attempts: int = 20,
        poll_interval: float = 5.0,
        temp_dir: str | Path | None = None,
        retain_audio_dir: str | Path | None = None,
    ):
        self._provider = provider
        self._store = store
        self._max_attempts = max_attempts
        self._poll_interval = poll_interval
        self._temp_dir = temp_dir
        self._retain_audio_dir = retain_audio_dir
        self._inflight: set[asyncio.Task] = set()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def run(
        self,
        audio: bytes | None,
        user_id: str | None,
        filename: str | None = None,
    ) -> TranscriptionOutcome:
        """
        Run ``transcribe`` as a tracked task the caller cannot cancel.

        If the awaiting request is cancelled (client disconnected), the
        workflow keeps going until it persists the record or fails, and its
        temp file is still released.
        """
        task = asyncio.create_task(self.transcribe(audio, user_id, filename))
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        return await asyncio.shield(task)

    def _forget(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        # Outcome was already logged by transcribe(); mark it retrieved
        if not task.cancelled():
            task.exception()

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for in-flight workflows."""
        if not self._inflight:
            return
        logger.info("transcription_drain_started", inflight=len(self._inflight))
        _, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        if pending:
            logger.warning("transcription_drain_timeout", pending=len(pending))

    async def transcribe(
        self,
        audio: bytes | None,
        user_id: str | None,
        filename: str | None = None,
    ) -> TranscriptionOutcome:
        """
        Transcribe one upload and persist the result.

        Args:
            audio: Uploaded audio bytes
            user_id: Owner of the transcript; stored as "" when missing
            filename: Original filename, used for the temp file suffix

        Returns:
            Record id, transcript text and the retained audio URL (if any)

        Raises:
            InputError: No audio payload (state ``rejected``)
            ProviderError: Upload, job creation or polling failed (``provider_failed``)
            PersistenceError: Transcript computed but not saved (``persist_failed``)
        """
        log = logger.bind(user_id=user_id or "")
        self._transition(log, WorkflowState.RECEIVED)

        if not audio:
            self._transition(log, WorkflowState.REJECTED)
            raise InputError("No audio file uploaded")

        suffix = Path(filename).suffix if filename else ""

        with scoped_temp_file(audio, suffix=suffix, directory=self._temp_dir) as handle:
            job = TranscriptionJob(audio_ref=handle)

            try:
                text = await self._obtain_transcript(log, job)
            except ProviderError as e:
                self._transition(log, WorkflowState.PROVIDER_FAILED)
                log.error(
                    "transcription_provider_failed",
                    job_id=job.provider_job_id,
                    job_status=job.status.value,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise

            self._transition(log, WorkflowState.PERSISTING)
            try:
                outcome = await self._persist(job, text, user_id or "")
            except PersistenceError as e:
                self._transition(log, WorkflowState.PERSIST_FAILED)
                log.error(
                    "transcription_persist_failed",
                    job_id=job.provider_job_id,
                    error=str(e),
                )
                raise

        self._transition(log, WorkflowState.DONE)
        log.info(
            "transcription_completed",
            job_id=job.provider_job_id,
            record_id=str(outcome.record_id),
        )
        return outcome

    async def _obtain_transcript(self, log, job: TranscriptionJob) -> str:
        self._transition(log, WorkflowState.SUBMITTING)
        job.provider_upload_url = await self._provider.submit(job.audio_ref)
        job.provider_job_id = await self._provider.create_job(job.provider_upload_url)

        self._transition(log, WorkflowState.AWAITING_RESULT)
        job.status = JobStatus.POLLING
        try:
            text = await self._provider.await_result(
                job.provider_job_id,
                max_attempts=self._max_attempts,
                poll_interval=self._poll_interval,
            )
        except TranscriptionTimeoutError:
            job.status = JobStatus.TIMED_OUT
            raise
        except ProviderError:
            job.status = JobStatus.FAILED
            raise

        job.complete(text)
        return text

    async def _persist(self, job: TranscriptionJob, text: str, user_id: str) -> TranscriptionOutcome:
        retained: StoredUpload | None = None
        if self._retain_audio_dir is not None:
            try:
                retained = retain_copy(job.audio_ref, self._retain_audio_dir)
            except OSError as e:
                raise PersistenceError(f"Failed to retain audio: {e}") from e

        record = TranscriptRecord(
            audio_url=retained.url if retained else None,
            transcription_text=text,
            user_id=user_id,
        )
        try:
            record_id = await self._store.insert(record)
        except PersistenceError:
            if retained is not None:
                discard(retained)
            raise

        return TranscriptionOutcome(record_id=record_id, text=text, audio_url=record.audio_url)

    @staticmethod
    def _transition(log, state: WorkflowState) -> None:
        log.debug("transcription_state_changed", state=state.value)
