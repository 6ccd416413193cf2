"""Drives one job through acquisition, synthesis, normalization, assembly and publishing."""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from enum import IntEnum
from pathlib import Path

from ..config import Config
from ..db.models import JobStatus, SongJob
from ..errors import (
    AcquisitionError,
    BenamError,
    NormalizationError,
    PipelineStageError,
    ProcessingFailure,
    PublishError,
)
from ..storage import (
    CATEGORY_COMBINED,
    CATEGORY_SONGS,
    CATEGORY_THUMBNAILS,
    artifact_key,
    content_type_for,
)
from .assembler import AudioAssembler, SilenceGapGenerator
from .models import AudioTrack, JobOutcome, ProcessingRequest, TrackRole
from .normalizer import AudioTrackNormalizer
from .protocols import (
    ArtifactStore,
    AudioEngine,
    JobStore,
    MediaAcquirer,
    SpeechSynthesizer,
    ThumbnailDecorator,
)
from .speech import review_prompt_text

logger = logging.getLogger(__name__)


class Checkpoint(IntEnum):
    """Progress persisted after each stage. Strictly increasing in stage order."""

    STARTED = 0
    AUDIO_ACQUIRED = 40
    THUMBNAIL_ACQUIRED = 50
    DJ_MESSAGE_READY = 60
    REVIEW_PROMPT_READY = 70
    NORMALIZED = 72
    ASSEMBLED = 75
    PRIMARY_PUBLISHED = 85
    COMBINED_PUBLISHED = 90
    THUMBNAIL_PUBLISHED = 95
    COMPLETED = 100


class JobOrchestrator:
    """Runs the stage sequence for one job and owns all writes to its record.

    Acquisition, synthesis, assembly and publishing of the song are fatal: the
    job is marked failed and ProcessingFailure is raised so the invoker can
    retry. Thumbnail work and normalization of individual tracks are not: the
    run continues without them. Nothing is retried here.
    """

    def __init__(
        self,
        config: Config,
        *,
        acquirer: MediaAcquirer,
        synthesizer: SpeechSynthesizer,
        audio_engine: AudioEngine,
        artifact_store: ArtifactStore,
        job_store: JobStore,
        thumbnail_decorator: ThumbnailDecorator | None = None,
    ):
        self.config = config
        self.acquirer = acquirer
        self.synthesizer = synthesizer
        self.audio_engine = audio_engine
        self.artifact_store = artifact_store
        self.job_store = job_store
        self.thumbnail_decorator = thumbnail_decorator

    def run(self, request: ProcessingRequest) -> JobOutcome:
        """Process one job to completion or failure.

        Returns:
            The published artifact references

        Raises:
            ProcessingFailure: If a fatal stage failed (the record is already
                marked failed), the job was already failed, or its record was
                deleted or taken over by another job (nothing is written)
        """
        existing = self.job_store.get(request.date_key)
        if existing is None:
            raise self._stale(request, existing)
        replayed = self._replay(request, existing)
        if replayed is not None:
            return replayed

        work_dir = Path(tempfile.mkdtemp(prefix=f"benam-{request.job_id}-"))
        started = time.monotonic()
        try:
            outcome = self._run_stages(request, work_dir)
        except ProcessingFailure:
            raise
        except PipelineStageError as e:
            logger.exception(f"[{request.date_key}] {e.stage} failed")
            raise self._fail(request, e.stage, str(e)) from e
        except BenamError as e:
            logger.exception(f"[{request.date_key}] Processing failed")
            raise self._fail(request, "pipeline", str(e)) from e
        except Exception as e:
            logger.exception(f"[{request.date_key}] Unexpected error")
            raise self._fail(request, "pipeline", str(e) or type(e).__name__) from e
        finally:
            self._cleanup(work_dir)

        logger.info(f"[{request.date_key}] Completed in {time.monotonic() - started:.2f}s")
        return outcome

    def _replay(self, request: ProcessingRequest, record: SongJob) -> JobOutcome | None:
        """Handle duplicate or stale invocations without touching external tools.

        Returns:
            The stored outcome for an already-completed job, or None if the run should proceed
        """
        if record.job_id != request.job_id:
            raise self._stale(request, record)

        if record.status == JobStatus.COMPLETED.value:
            logger.info(f"[{request.date_key}] Job {request.job_id} already completed, skipping")
            return JobOutcome(
                job_id=record.job_id,
                date_key=record.date_key,
                status=record.status,
                primary_artifact_ref=record.primary_artifact_ref or "",
                combined_artifact_ref=record.combined_artifact_ref or "",
                thumbnail_artifact_ref=record.thumbnail_artifact_ref,
                ascii_thumbnail=record.ascii_thumbnail,
                duration_seconds=record.duration_seconds,
                title=record.title,
            )

        if record.status == JobStatus.FAILED.value:
            logger.info(f"[{request.date_key}] Job {request.job_id} already failed, skipping")
            raise ProcessingFailure(
                request.date_key, request.job_id, "replay", record.error or "Job previously failed"
            )

        return None

    def _stale(self, request: ProcessingRequest, record: SongJob | None) -> ProcessingFailure:
        """Build the failure for a run that no longer owns the record for its date."""
        date_key, job_id = request.date_key, request.job_id
        if record is None:
            logger.warning(f"[{date_key}] Job {job_id} has no record (cancelled), stopping")
            return ProcessingFailure(date_key, job_id, "cancelled", "Job record no longer exists")
        if record.job_id != job_id:
            logger.warning(f"[{date_key}] Job {job_id} was superseded by {record.job_id}, stopping")
            return ProcessingFailure(
                date_key, job_id, "superseded", f"Date now belongs to job {record.job_id}"
            )
        logger.warning(f"[{date_key}] Job {job_id} is already {record.status}, stopping")
        return ProcessingFailure(date_key, job_id, "superseded", f"Job is already {record.status}")

    def _checkpoint(self, request: ProcessingRequest, checkpoint: Checkpoint) -> None:
        if self.job_store.checkpoint(request.date_key, request.job_id, int(checkpoint)) is None:
            raise self._stale(request, self.job_store.get(request.date_key))
        logger.info(f"[{request.date_key}] {checkpoint.name.lower()} ({int(checkpoint)}%)")

    def _run_stages(self, request: ProcessingRequest, work_dir: Path) -> JobOutcome:
        date_key = request.date_key
        max_duration = request.max_duration_seconds or self.config.pipeline.max_duration_seconds

        self._checkpoint(request, Checkpoint.STARTED)

        t0 = time.monotonic()
        acquired = self.acquirer.fetch_audio(
            request.source_ref, request.clip_window, max_duration, work_dir
        )
        logger.info(f"[{date_key}] Acquired audio in {time.monotonic() - t0:.2f}s")
        self._checkpoint(request, Checkpoint.AUDIO_ACQUIRED)

        thumbnail_path = self._fetch_thumbnail(request, work_dir)
        self._checkpoint(request, Checkpoint.THUMBNAIL_ACQUIRED)

        dj_track = self._dj_message_track(request, work_dir)
        self._checkpoint(request, Checkpoint.DJ_MESSAGE_READY)

        review_track = self._review_prompt_track(request, work_dir)
        self._checkpoint(request, Checkpoint.REVIEW_PROMPT_READY)

        combined_path = self._normalize_and_assemble(
            request, acquired.track, dj_track, review_track, work_dir
        )

        primary_ref = self._publish(
            acquired.track.path, artifact_key(CATEGORY_SONGS, date_key, request.job_id, "mp3")
        )
        self._checkpoint(request, Checkpoint.PRIMARY_PUBLISHED)

        if combined_path is not None:
            combined_ref = self._publish(
                combined_path, artifact_key(CATEGORY_COMBINED, date_key, request.job_id, "mp3")
            )
        else:
            combined_ref = primary_ref
        self._checkpoint(request, Checkpoint.COMBINED_PUBLISHED)

        thumbnail_ref, ascii_thumbnail = self._publish_thumbnail(request, thumbnail_path)
        self._checkpoint(request, Checkpoint.THUMBNAIL_PUBLISHED)

        outcome = JobOutcome(
            job_id=request.job_id,
            date_key=date_key,
            status=JobStatus.COMPLETED.value,
            primary_artifact_ref=primary_ref,
            combined_artifact_ref=combined_ref,
            thumbnail_artifact_ref=thumbnail_ref,
            ascii_thumbnail=ascii_thumbnail,
            duration_seconds=acquired.window.duration,
            title=acquired.title,
        )
        completed = self.job_store.complete(
            date_key,
            request.job_id,
            primary_ref=primary_ref,
            combined_ref=combined_ref,
            thumbnail_ref=thumbnail_ref,
            ascii_thumbnail=ascii_thumbnail,
            duration_seconds=outcome.duration_seconds,
            title=outcome.title,
        )
        if completed is None:
            raise self._stale(request, self.job_store.get(date_key))
        return outcome

    def _fetch_thumbnail(self, request: ProcessingRequest, work_dir: Path) -> Path | None:
        try:
            return self.acquirer.fetch_thumbnail(request.source_ref, work_dir)
        except Exception as e:
            logger.warning(f"[{request.date_key}] Continuing without thumbnail: {e}")
            return None

    def _dj_message_track(self, request: ProcessingRequest, work_dir: Path) -> AudioTrack | None:
        message = request.dj_message
        if message is None or not message.has_content:
            return None

        if message.kind == "synthesized":
            path = self._synthesize(request, message.text or "", work_dir / "dj_message.mp3")
            return AudioTrack(role=TrackRole.DJ_MESSAGE, path=path)

        ref = message.recording_ref or ""
        local_path = work_dir / f"dj_message{Path(ref).suffix or '.webm'}"
        try:
            _ = self.artifact_store.download(ref, local_path)
        except Exception as e:
            raise AcquisitionError(
                f"Could not fetch recorded DJ message {ref}: {e}", stage="dj-message"
            ) from e
        return AudioTrack(role=TrackRole.DJ_MESSAGE, path=local_path)

    def _review_prompt_track(self, request: ProcessingRequest, work_dir: Path) -> AudioTrack | None:
        if not request.reviewer_email:
            return None
        path = self._synthesize(
            request, review_prompt_text(request.dj_name), work_dir / "review_prompt.mp3"
        )
        return AudioTrack(role=TrackRole.REVIEW_PROMPT, path=path)

    def _synthesize(self, request: ProcessingRequest, text: str, output_path: Path) -> Path:
        t0 = time.monotonic()
        path = self.synthesizer.synthesize(text, output_path)
        logger.info(
            f"[{request.date_key}] Synthesized {len(text)} characters to {path.name} "
            f"in {time.monotonic() - t0:.2f}s"
        )
        return path

    def _normalize_optional(
        self,
        request: ProcessingRequest,
        normalizer: AudioTrackNormalizer,
        track: AudioTrack | None,
        work_dir: Path,
    ) -> AudioTrack | None:
        if track is None:
            return None
        try:
            return normalizer.normalize(track, work_dir / f"{track.role.value}.norm.mp3")
        except NormalizationError as e:
            logger.warning(f"[{request.date_key}] Dropping {track.role.value} track: {e}")
            return None

    def _normalize_and_assemble(
        self,
        request: ProcessingRequest,
        primary: AudioTrack,
        dj_track: AudioTrack | None,
        review_track: AudioTrack | None,
        work_dir: Path,
    ) -> Path | None:
        """Normalize every track and join them.

        Returns:
            Path of the combined file, or None when the primary is the deliverable
        """
        if dj_track is None and review_track is None:
            logger.info(f"[{request.date_key}] Only the song is present, skipping assembly")
            self._checkpoint(request, Checkpoint.NORMALIZED)
            self._checkpoint(request, Checkpoint.ASSEMBLED)
            return None

        normalizer = AudioTrackNormalizer(
            self.audio_engine, self.config.pipeline, date_key=request.date_key
        )
        normalized_primary = self._normalize_optional(request, normalizer, primary, work_dir)
        normalized_dj = self._normalize_optional(request, normalizer, dj_track, work_dir)
        normalized_review = self._normalize_optional(request, normalizer, review_track, work_dir)
        self._checkpoint(request, Checkpoint.NORMALIZED)

        if normalized_primary is None or (normalized_dj is None and normalized_review is None):
            logger.warning(f"[{request.date_key}] Nothing to append to the song, skipping assembly")
            self._checkpoint(request, Checkpoint.ASSEMBLED)
            return None

        silence = SilenceGapGenerator(self.audio_engine, work_dir)
        assembler = AudioAssembler(
            self.audio_engine,
            silence,
            self.config.pipeline.silence_gap_seconds,
            date_key=request.date_key,
        )
        ordered = assembler.sequence(normalized_primary, normalized_dj, normalized_review)
        combined = assembler.assemble(ordered, work_dir / "combined.mp3")
        self._checkpoint(request, Checkpoint.ASSEMBLED)
        return combined.path

    def _publish(self, local_path: Path, key: str) -> str:
        ext = local_path.suffix.lstrip(".")
        try:
            return self.artifact_store.upload(local_path, key, content_type_for(ext))
        except Exception as e:
            raise PublishError(f"Could not upload {key}: {e}") from e

    def _publish_thumbnail(
        self, request: ProcessingRequest, thumbnail_path: Path | None
    ) -> tuple[str | None, str | None]:
        if thumbnail_path is None:
            return None, None

        key = artifact_key(CATEGORY_THUMBNAILS, request.date_key, request.job_id, "jpg")
        try:
            thumbnail_ref = self.artifact_store.upload(thumbnail_path, key, content_type_for("jpg"))
        except Exception as e:
            logger.warning(f"[{request.date_key}] Thumbnail upload failed, continuing: {e}")
            return None, None

        ascii_thumbnail = None
        if self.thumbnail_decorator is not None:
            try:
                ascii_thumbnail = self.thumbnail_decorator.render(thumbnail_path)
            except Exception as e:
                logger.warning(f"[{request.date_key}] Skipping thumbnail art: {e}")

        return thumbnail_ref, ascii_thumbnail

    def _fail(self, request: ProcessingRequest, stage: str, message: str) -> ProcessingFailure:
        """Persist the failure and build the exception to raise to the invoker."""
        try:
            _ = self.job_store.fail(request.date_key, request.job_id, message)
        except Exception:
            logger.exception(f"[{request.date_key}] Could not record failure")
        return ProcessingFailure(request.date_key, request.job_id, stage, message)

    def _cleanup(self, work_dir: Path) -> None:
        """Remove the run's private working files. Failures are logged only."""

        try:
            shutil.rmtree(work_dir)
        except OSError as e:
            logger.warning(f"Could not delete temporary files in {work_dir}: {e}")
