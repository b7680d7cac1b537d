"""create_transcripts_table

Revision ID: 3f1c9a7d2b60
Revises:
Create Date: 2026-10-19 18:20:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the transcripts table with a per-user history index."""
    op.create_table(
        "transcripts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("audio_url", sa.String(length=1000), nullable=True),
        sa.Column("transcription_text", sa.Text(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_transcripts_user_created",
        "transcripts",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_transcripts_user_created", table_name="transcripts")
    op.drop_table("transcripts")
