"""Database configuration and models."""

from transcribe_api.core.database.base import Base, CreatedAtMixin, UUIDMixin
from transcribe_api.core.database.session import (
    engine,
    async_session_factory,
    get_db,
)

__all__ = [
    "Base",
    "CreatedAtMixin",
    "UUIDMixin",
    "engine",
    "async_session_factory",
    "get_db",
]
