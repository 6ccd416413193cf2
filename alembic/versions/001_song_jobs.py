"""Song jobs table keyed by date

Revision ID: 001
Revises:
Create Date: 2025-01-30

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "song_jobs",
        sa.Column("date_key", sa.String(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("primary_artifact_ref", sa.String(), nullable=True),
        sa.Column("combined_artifact_ref", sa.String(), nullable=True),
        sa.Column("thumbnail_artifact_ref", sa.String(), nullable=True),
        sa.Column("ascii_thumbnail", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("date_key"),
    )
    op.create_index(op.f("ix_song_jobs_job_id"), "song_jobs", ["job_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_song_jobs_job_id"), table_name="song_jobs")
    op.drop_table("song_jobs")
