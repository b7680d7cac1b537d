"""Transcription API endpoints."""

from datetime import datetime
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from transcribe_api.config import settings
from transcribe_api.core.errors import InputError, TranscriptionServiceError
from transcribe_api.core.logging import get_logger
from transcribe_api.core.storage.uploads import save_upload
from transcribe_api.core.transcription.orchestrator import TranscriptionOrchestrator
from transcribe_api.core.transcripts.store import TranscriptStore

logger = get_logger(__name__)

router = APIRouter()

MSG_NO_AUDIO = "No audio file uploaded"
MSG_USER_ID_REQUIRED = "User ID is required"
MSG_TRANSCRIPTION_FAILED = "Transcription process failed."
MSG_FETCH_FAILED = "Failed to fetch transcriptions"
MSG_UPLOAD_FAILED = "File upload failed"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TranscriptionResponse(CamelModel):
    message: str
    transcription: str
    id: str
    audio_url: str | None


class TranscriptResponse(CamelModel):
    id: str
    audio_url: str | None
    transcription_text: str
    user_id: str
    created_at: datetime


class UploadedFile(CamelModel):
    filename: str
    original_name: str | None
    size: int
    path: str


class UploadResponse(CamelModel):
    message: str
    file: UploadedFile


def get_orchestrator(request: Request) -> TranscriptionOrchestrator:
    return request.app.state.orchestrator


def get_transcript_store(request: Request) -> TranscriptStore:
    return request.app.state.transcript_store


async def _read_audio(audio: UploadFile | None) -> bytes:
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_NO_AUDIO)
    content = await audio.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_NO_AUDIO)
    return content


@router.post("/upload", response_model=UploadResponse)
async def upload_audio(
    audio: Annotated[UploadFile | None, File()] = None,
) -> UploadResponse:
    """Store an audio file under the uploads directory without transcribing it."""
    content = await _read_audio(audio)
    suffix = Path(audio.filename).suffix if audio.filename else ""

    try:
        stored = save_upload(content, settings.uploads_dir, suffix=suffix)
    except OSError as e:
        logger.error("audio_upload_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=MSG_UPLOAD_FAILED,
        )
    logger.info("audio_uploaded", filename=stored.filename, size_bytes=stored.size_bytes)

    return UploadResponse(
        message="File uploaded successfully",
        file=UploadedFile(
            filename=stored.filename,
            original_name=audio.filename,
            size=stored.size_bytes,
            path=stored.url,
        ),
    )


@router.post("/transcription", response_model=TranscriptionResponse)
async def create_transcription(
    orchestrator: Annotated[TranscriptionOrchestrator, Depends(get_orchestrator)],
    audio: Annotated[UploadFile | None, File()] = None,
    user_id: Annotated[str | None, Form(alias="userId")] = None,
) -> TranscriptionResponse:
    """
    Transcribe an uploaded audio file and save it to the user's history.

    The request waits for the provider to finish (up to the poll ceiling).
    A missing userId is accepted; the transcript is stored without an owner.
    """
    content = await _read_audio(audio)

    try:
        outcome = await orchestrator.run(content, user_id, filename=audio.filename)
    except InputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TranscriptionServiceError:
        # Details were logged by the orchestrator
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=MSG_TRANSCRIPTION_FAILED,
        )

    return TranscriptionResponse(
        message="Transcription saved successfully",
        transcription=outcome.text,
        id=str(outcome.record_id),
        audio_url=outcome.audio_url,
    )


@router.get("/user-transcriptions", response_model=list[TranscriptResponse])
async def list_user_transcriptions(
    store: Annotated[TranscriptStore, Depends(get_transcript_store)],
    user_id: Annotated[str | None, Query(alias="userId")] = None,
) -> list[TranscriptResponse]:
    """List a user's transcripts, newest first."""
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_USER_ID_REQUIRED)

    try:
        records = await store.find_by_user(user_id)
    except TranscriptionServiceError as e:
        logger.error("transcripts_fetch_failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=MSG_FETCH_FAILED,
        )

    return [
        TranscriptResponse(
            id=str(r.id),
            audio_url=r.audio_url,
            transcription_text=r.transcription_text,
            user_id=r.user_id,
            created_at=r.created_at,
        )
        for r in records
    ]
