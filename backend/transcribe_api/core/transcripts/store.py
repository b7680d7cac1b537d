"""Transcript persistence."""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transcribe_api.core.database.base import utcnow
from transcribe_api.core.errors import PersistenceError
from transcribe_api.core.logging import get_logger
from transcribe_api.core.transcripts.models import TranscriptRecord

logger = get_logger(__name__)


class TranscriptStore:
    """
    Inserts and queries TranscriptRecords.

    Driver-level connection failures (asyncpg raises plain OSError subclasses
    when the server is unreachable) are reported as PersistenceError too.

    Each operation opens its own session from the shared factory, so
    concurrent workflows never share a transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock

    async def insert(self, record: TranscriptRecord) -> UUID:
        """
        Persist a new record and stamp its creation time.

        Returns:
            The store-assigned record id

        Raises:
            PersistenceError: The store was unavailable or rejected the write
        """
        if record.id is None:
            record.id = uuid4()
        record.created_at = self._clock()
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Failed to save transcript: {e}") from e

        logger.info("transcript_saved", record_id=str(record.id), user_id=record.user_id)
        return record.id

    async def find_by_user(self, user_id: str) -> list[TranscriptRecord]:
        """
        List a user's transcripts, newest first.

        Returns an empty list when the user has none.

        Raises:
            PersistenceError: The store was unavailable
        """
        query = (
            select(TranscriptRecord)
            .where(TranscriptRecord.user_id == user_id)
            .order_by(TranscriptRecord.created_at.desc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Failed to load transcripts: {e}") from e
