"""TranscriptRecord model."""

from sqlalchemy import String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from transcribe_api.core.database.base import Base, CreatedAtMixin, UUIDMixin


class TranscriptRecord(Base, UUIDMixin, CreatedAtMixin):
    """
    A completed transcription owned by a user.

    Records are written once by the transcription workflow and never updated.
    user_id is an opaque string; an empty string means the uploader gave none.
    """

    __tablename__ = "transcripts"

    audio_url: Mapped[str | None] = mapped_column(String(1000))
    transcription_text: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    __table_args__ = (
        Index("idx_transcripts_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<TranscriptRecord {self.id} user={self.user_id!r}>"
