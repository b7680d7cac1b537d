"""Unit tests for the transcription workflow."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from transcribe_api.core.errors import (
    InputError,
    PersistenceError,
    TranscriptionFailedError,
    TranscriptionTimeoutError,
    UploadError,
)
from transcribe_api.core.transcription.orchestrator import (
    JobStatus,
    TranscriptionJob,
    TranscriptionOrchestrator,
)
from transcribe_api.core.storage.temp_files import acquire, release


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def orchestrator(mock_provider, mock_store, temp_dir) -> TranscriptionOrchestrator:
    return TranscriptionOrchestrator(
        provider=mock_provider,
        store=mock_store,
        max_attempts=20,
        poll_interval=0,
        temp_dir=temp_dir,
    )


@pytest.mark.unit
class TestTranscriptionJob:
    def test_result_text_only_set_on_completion(self, tmp_path):
        handle = acquire(b"audio", directory=tmp_path)
        job = TranscriptionJob(audio_ref=handle)

        assert job.status is JobStatus.SUBMITTED
        assert job.result_text is None

        job.complete("hello")

        assert job.status is JobStatus.COMPLETED
        assert job.result_text == "hello"
        release(handle)


@pytest.mark.unit
@pytest.mark.asyncio
class TestTranscribeSuccess:
    async def test_persists_one_record_and_returns_text(
        self, orchestrator, mock_provider, mock_store
    ):
        outcome = await orchestrator.transcribe(b"audio", "u1", filename="clip.wav")

        assert outcome.text == "hello world"
        assert outcome.audio_url is None
        mock_store.insert.assert_awaited_once()
        record = mock_store.insert.await_args.args[0]
        assert record.transcription_text == "hello world"
        assert record.user_id == "u1"
        assert outcome.record_id is not None

    async def test_calls_provider_in_order(self, orchestrator, mock_provider):
        await orchestrator.transcribe(b"audio", "u1")

        mock_provider.create_job.assert_awaited_once_with("https://cdn.provider.test/upload/abc")
        mock_provider.await_result.assert_awaited_once_with(
            "job-123", max_attempts=20, poll_interval=0
        )

    async def test_temp_file_kept_until_persisted_then_removed(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        seen: dict[str, Path] = {}

        async def submit(handle):
            seen["path"] = handle.path
            assert handle.read_bytes() == b"audio"
            return "https://cdn.provider.test/upload/abc"

        async def insert(record):
            assert seen["path"].exists()
            return record.id

        mock_provider.submit.side_effect = submit
        mock_store.insert.side_effect = insert

        await orchestrator.transcribe(b"audio", "u1", filename="clip.wav")

        assert seen["path"].suffix == ".wav"
        assert not seen["path"].exists()
        assert list(temp_dir.iterdir()) == []

    async def test_missing_user_id_stored_as_empty_owner(self, orchestrator, mock_store):
        await orchestrator.transcribe(b"audio", None)

        record = mock_store.insert.await_args.args[0]
        assert record.user_id == ""

    async def test_retained_audio_is_referenced(self, mock_provider, mock_store, temp_dir, tmp_path):
        uploads = tmp_path / "uploads"
        orchestrator = TranscriptionOrchestrator(
            provider=mock_provider,
            store=mock_store,
            poll_interval=0,
            temp_dir=temp_dir,
            retain_audio_dir=uploads,
        )

        outcome = await orchestrator.transcribe(b"audio", "u1", filename="clip.mp3")

        assert outcome.audio_url.startswith("/uploads/")
        assert outcome.audio_url.endswith(".mp3")
        retained = uploads / outcome.audio_url.rsplit("/", 1)[1]
        assert retained.read_bytes() == b"audio"
        assert list(temp_dir.iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestTranscribeRejected:
    async def test_empty_audio_rejected_without_provider_calls(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        with pytest.raises(InputError):
            await orchestrator.transcribe(b"", "u1")

        mock_provider.submit.assert_not_awaited()
        mock_store.insert.assert_not_awaited()
        assert list(temp_dir.iterdir()) == []

    async def test_none_audio_rejected(self, orchestrator, mock_provider):
        with pytest.raises(InputError):
            await orchestrator.transcribe(None, "u1")

        mock_provider.submit.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
class TestTranscribeProviderFailed:
    async def test_upload_error_stops_before_job_creation(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        mock_provider.submit.side_effect = UploadError("rejected")

        with pytest.raises(UploadError):
            await orchestrator.transcribe(b"audio", "u1")

        mock_provider.create_job.assert_not_awaited()
        mock_store.insert.assert_not_awaited()
        assert list(temp_dir.iterdir()) == []

    async def test_provider_error_status_persists_nothing(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        mock_provider.await_result.side_effect = TranscriptionFailedError("error status")

        with pytest.raises(TranscriptionFailedError):
            await orchestrator.transcribe(b"audio", "u1")

        mock_store.insert.assert_not_awaited()
        assert list(temp_dir.iterdir()) == []

    async def test_timeout_is_distinct_from_failure(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        mock_provider.await_result.side_effect = TranscriptionTimeoutError("job-123", 20)

        with pytest.raises(TranscriptionTimeoutError) as exc_info:
            await orchestrator.transcribe(b"audio", "u1")

        assert not isinstance(exc_info.value, TranscriptionFailedError)
        mock_store.insert.assert_not_awaited()
        assert list(temp_dir.iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestTranscribePersistFailed:
    async def test_persist_failure_reported_distinctly(
        self, orchestrator, mock_store, temp_dir
    ):
        mock_store.insert.side_effect = PersistenceError("db down")

        with pytest.raises(PersistenceError):
            await orchestrator.transcribe(b"audio", "u1")

        assert list(temp_dir.iterdir()) == []

    async def test_retained_audio_discarded_when_not_saved(
        self, mock_provider, mock_store, temp_dir, tmp_path
    ):
        uploads = tmp_path / "uploads"
        mock_store.insert.side_effect = PersistenceError("db down")
        orchestrator = TranscriptionOrchestrator(
            provider=mock_provider,
            store=mock_store,
            poll_interval=0,
            temp_dir=temp_dir,
            retain_audio_dir=uploads,
        )

        with pytest.raises(PersistenceError):
            await orchestrator.transcribe(b"audio", "u1")

        assert list(uploads.iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestDetachedRun:
    async def test_run_returns_outcome(self, orchestrator):
        outcome = await orchestrator.run(b"audio", "u1")

        assert outcome.text == "hello world"
        assert orchestrator.inflight_count == 0

    async def test_run_propagates_errors(self, orchestrator, mock_provider):
        mock_provider.await_result.side_effect = TranscriptionFailedError("error status")

        with pytest.raises(TranscriptionFailedError):
            await orchestrator.run(b"audio", "u1")

    async def test_cancelled_caller_does_not_stop_workflow(
        self, orchestrator, mock_provider, mock_store, temp_dir
    ):
        polling = asyncio.Event()
        finish = asyncio.Event()

        async def await_result(job_id, max_attempts, poll_interval):
            polling.set()
            await finish.wait()
            return "finished after disconnect"

        mock_provider.await_result = AsyncMock(side_effect=await_result)

        caller = asyncio.create_task(orchestrator.run(b"audio", "u1"))
        await polling.wait()
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        assert orchestrator.inflight_count == 1
        finish.set()
        await orchestrator.drain(timeout=1)

        mock_store.insert.assert_awaited_once()
        record = mock_store.insert.await_args.args[0]
        assert record.transcription_text == "finished after disconnect"
        assert orchestrator.inflight_count == 0
        assert list(temp_dir.iterdir()) == []

    async def test_drain_without_inflight_returns(self, orchestrator):
        await orchestrator.drain(timeout=0.1)
