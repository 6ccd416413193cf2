# pyright: reportExplicitAny=false
"""Database models for the job store using SQLModel."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

import sqlalchemy as sa
from sqlmodel import Column, Field, SQLModel


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Lifecycle of a job: pending → processing → completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class SongJob(SQLModel, table=True):
    """The song scheduled for one morning, and the state of its processing job.

    Keyed by date: a slot holds at most one job, and a new job for the same
    date supersedes the old one only after the old record is deleted.
    """

    __tablename__: ClassVar[Any] = "song_jobs"

    date_key: str = Field(primary_key=True)  # YYYY-MM-DD
    job_id: str = Field(index=True)

    status: str = Field(default=JobStatus.PENDING.value)
    progress: int = Field(default=0)
    error: str | None = None

    primary_artifact_ref: str | None = None  # songs/{date}/{job}.mp3
    combined_artifact_ref: str | None = None  # combined/{date}/{job}.mp3, or the primary ref
    thumbnail_artifact_ref: str | None = None
    ascii_thumbnail: str | None = Field(default=None, sa_column=Column(sa.Text, nullable=True))
    duration_seconds: float | None = None
    title: str | None = None

    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)
