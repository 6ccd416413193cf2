"""Data models for the media assembly pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TrackRole(str, Enum):
    """Position of an in-flight track within the combined artifact."""

    PRIMARY = "primary"
    DJ_MESSAGE = "djMessage"
    REVIEW_PROMPT = "reviewPrompt"
    SILENCE = "silence"
    COMBINED = "combined"


@dataclass(frozen=True)
class AudioTrack:
    """A working audio file owned by one pipeline run.

    `canonical` is True once the file is in the canonical format and can be
    joined with the concat demuxer without re-encoding.
    """

    role: TrackRole
    path: Path
    peak_db: float | None = None
    gain_db: float | None = None
    canonical: bool = False

    def normalized(self, path: Path, peak_db: float | None, gain_db: float) -> AudioTrack:
        """Return a copy describing the re-encoded, canonical version of this track."""
        return replace(self, path=path, peak_db=peak_db, gain_db=gain_db, canonical=True)


@dataclass(frozen=True)
class ClipWindow:
    """Resolved (start, end) window in seconds into the source media."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class VideoInfo:
    """Metadata reported by the downloader for a source reference."""

    title: str
    duration: float | None


@dataclass(frozen=True)
class AcquiredAudio:
    """Result of the audio acquisition stage."""

    track: AudioTrack
    window: ClipWindow
    title: str | None = None


class _CamelModel(BaseModel):
    """Accepts both camelCase (wire) and snake_case (Python) field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClipRequest(_CamelModel):
    """Requested clip bounds; `end` is derived from the source when omitted."""

    start: float = 0.0
    end: float | None = None


class DJMessage(_CamelModel):
    """DJ message descriptor: text to synthesize or a previously uploaded recording."""

    kind: Literal["synthesized", "recorded"]
    text: str | None = None
    recording_ref: str | None = Field(
        default=None, description="Artifact-store key of the recorded message (e.g. WebM/Opus)"
    )

    @property
    def has_content(self) -> bool:
        if self.kind == "synthesized":
            return bool(self.text and self.text.strip())
        return bool(self.recording_ref)


class ProcessingRequest(_CamelModel):
    """Invocation input for one job."""

    job_id: str = Field(..., min_length=1)
    date_key: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    source_ref: str = Field(..., min_length=1, description="Remote video locator")
    clip_window: ClipRequest | None = None
    max_duration_seconds: float | None = Field(
        default=None, gt=0, description="Overrides the configured duration cap"
    )
    dj_name: str = ""
    dj_message: DJMessage | None = None
    reviewer_email: str | None = None


class JobOutcome(_CamelModel):
    """Artifact references published by a completed run."""

    job_id: str
    date_key: str
    status: str
    primary_artifact_ref: str
    combined_artifact_ref: str
    thumbnail_artifact_ref: str | None = None
    ascii_thumbnail: str | None = None
    duration_seconds: float | None = None
    title: str | None = None
