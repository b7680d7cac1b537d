"""Integration tests for the transcription service.

These run the FastAPI app through httpx's ASGI transport against an
in-memory SQLite database. The transcription provider is always mocked.
"""
