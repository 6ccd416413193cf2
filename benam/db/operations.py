"""Job store operations: submission and guarded updates of song job records."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from .models import JobStatus, SongJob, utc_now

logger = logging.getLogger(__name__)


class SqlJobStore:
    """JobStore backed by the `song_jobs` table.

    Records are created only by `create` (job submission). Every pipeline write
    is an update keyed by `date_key` that:
    - is ignored when no record exists (the job was cancelled);
    - is ignored when the stored record belongs to a different job (superseded);
    - is ignored when the stored record is already completed or failed;
    - never lowers `progress`.

    These rules make whole-job re-invocation safe: a stale or duplicate run can
    never regress progress, flip a terminal status or bring back a deleted job.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, date_key: str) -> SongJob | None:
        """Get the job record for a date, or None."""
        with Session(self.engine, expire_on_commit=False) as session:
            return session.get(SongJob, date_key)

    def create(self, date_key: str, job_id: str, title: str | None = None) -> SongJob | None:
        """Submit a job: insert a `pending` record for the date.

        Returns:
            The new record, or None if the date already holds a job
        """
        with Session(self.engine, expire_on_commit=False) as session:
            if session.get(SongJob, date_key) is not None:
                logger.warning(f"[{date_key}] Not submitting job {job_id}: date already has a job")
                return None

            record = SongJob(date_key=date_key, job_id=job_id, title=title)
            session.add(record)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning(f"[{date_key}] Not submitting job {job_id}: date already has a job")
                return None
            session.refresh(record)
            logger.info(f"[{date_key}] Submitted job {job_id}")
            return record

    def _update(self, date_key: str, job_id: str, **changes: Any) -> SongJob | None:
        """Apply `changes` under the guard rules.

        Returns:
            The record after the write, or None if the write was ignored
        """
        with Session(self.engine, expire_on_commit=False) as session:
            record = session.get(SongJob, date_key, with_for_update=True)

            if record is None:
                logger.warning(f"[{date_key}] Ignoring write from job {job_id}: no job record")
                return None
            if record.job_id != job_id:
                logger.warning(
                    f"[{date_key}] Ignoring write from job {job_id}: slot now belongs to job {record.job_id}"
                )
                return None
            if record.job_status.is_terminal:
                logger.warning(
                    f"[{date_key}] Ignoring write to job {job_id}: already {record.status}"
                )
                return None

            progress = changes.pop("progress", None)
            if progress is not None:
                record.progress = max(record.progress, min(100, int(progress)))

            title = changes.pop("title", None)
            if title and not record.title:
                record.title = title

            status = changes.pop("status", None)
            if status is not None:
                record.status = JobStatus(status).value

            for field_name, value in changes.items():
                setattr(record, field_name, value)

            record.updated_at = utc_now()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def checkpoint(self, date_key: str, job_id: str, progress: int) -> SongJob | None:
        """Record that the job is processing and has reached `progress`."""
        return self._update(date_key, job_id, status=JobStatus.PROCESSING, progress=progress)

    def complete(
        self,
        date_key: str,
        job_id: str,
        *,
        primary_ref: str,
        combined_ref: str,
        thumbnail_ref: str | None,
        ascii_thumbnail: str | None,
        duration_seconds: float | None,
        title: str | None,
    ) -> SongJob | None:
        """Record the published artifacts and move the job to `completed`."""
        return self._update(
            date_key,
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            error=None,
            primary_artifact_ref=primary_ref,
            combined_artifact_ref=combined_ref,
            thumbnail_artifact_ref=thumbnail_ref,
            ascii_thumbnail=ascii_thumbnail,
            duration_seconds=duration_seconds,
            title=title,
        )

    def fail(self, date_key: str, job_id: str, error: str) -> SongJob | None:
        """Move the job to `failed` with a human-readable error."""
        return self._update(date_key, job_id, status=JobStatus.FAILED, error=error)

    def delete(self, date_key: str) -> bool:
        """Delete a job record (cancellation). Returns True if a record was removed."""
        with Session(self.engine) as session:
            record = session.get(SongJob, date_key)
            if record is None:
                return False
            job_id = record.job_id
            session.delete(record)
            session.commit()
        logger.info(f"[{date_key}] Deleted job {job_id}")
        return True


def status_view(record: SongJob) -> dict[str, Any]:
    """Polling view of a job: the only contract read by callers outside the pipeline."""
    view: dict[str, Any] = {
        "jobId": record.job_id,
        "date": record.date_key,
        "status": record.status,
        "progress": record.progress,
    }
    if record.error:
        view["error"] = record.error
    if record.status == JobStatus.COMPLETED.value:
        view["result"] = {
            "primaryArtifactRef": record.primary_artifact_ref,
            "combinedArtifactRef": record.combined_artifact_ref,
            "thumbnailArtifactRef": record.thumbnail_artifact_ref,
            "durationSeconds": record.duration_seconds,
        }
    return view
