"""Main API router aggregator."""

from fastapi import APIRouter

from transcribe_api.api import transcriptions

api_router = APIRouter()

api_router.include_router(transcriptions.router, tags=["transcriptions"])
