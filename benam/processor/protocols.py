"""Capability interfaces for the external engines the pipeline drives.

Every concrete engine (yt-dlp, Polly, ffmpeg, S3, the SQL job store) sits
behind one of these protocols so tests can substitute deterministic fakes.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .models import AcquiredAudio, ClipRequest

if TYPE_CHECKING:
    from ..db.models import SongJob


@runtime_checkable
class MediaAcquirer(Protocol):
    """Fetches a time-windowed audio clip and a thumbnail from a remote video."""

    @abstractmethod
    def fetch_audio(
        self,
        source_ref: str,
        clip: ClipRequest | None,
        max_duration: float,
        work_dir: Path,
    ) -> AcquiredAudio:
        """Resolve the clip window and download the audio for it.

        Raises:
            AcquisitionError: If the window is invalid or the download fails
        """
        ...

    @abstractmethod
    def fetch_thumbnail(self, source_ref: str, work_dir: Path) -> Path:
        """Download the source thumbnail as JPEG.

        Raises:
            NonFatalDecorationError: If no thumbnail could be produced
        """
        ...


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """Turns text into a spoken audio file."""

    @abstractmethod
    def synthesize(self, text: str, output_path: Path) -> Path:
        """Write speech for `text` to `output_path`.

        Raises:
            SynthesisError: If the speech engine fails
        """
        ...


@runtime_checkable
class AudioEngine(Protocol):
    """Audio analysis, encoding and joining primitives."""

    @abstractmethod
    def measure_peak_db(self, input_path: Path) -> float | None:
        """Return the maximum sample magnitude in dBFS, or None if inconclusive."""
        ...

    @abstractmethod
    def apply_gain(self, input_path: Path, output_path: Path, gain_db: float) -> Path:
        """Re-encode `input_path` to the canonical format with `gain_db` applied."""
        ...

    @abstractmethod
    def render_silence(self, output_path: Path, duration_seconds: float) -> Path:
        """Write a canonical-format silence track."""
        ...

    @abstractmethod
    def concat(self, input_paths: list[Path], output_path: Path) -> Path:
        """Join canonical-format files at the stream level (no re-encode)."""
        ...


@runtime_checkable
class ArtifactStore(Protocol):
    """Object storage for published artifacts and uploaded DJ recordings."""

    @abstractmethod
    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        """Upload a file and return its artifact reference."""
        ...

    @abstractmethod
    def download(self, key: str, local_path: Path) -> Path:
        """Download an object to `local_path`."""
        ...


@runtime_checkable
class JobStore(Protocol):
    """Job records keyed by date, written with guarded upserts."""

    @abstractmethod
    def get(self, date_key: str) -> SongJob | None: ...

    @abstractmethod
    def checkpoint(self, date_key: str, job_id: str, progress: int) -> SongJob | None: ...

    @abstractmethod
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
    ) -> SongJob | None: ...

    @abstractmethod
    def fail(self, date_key: str, job_id: str, error: str) -> SongJob | None: ...


@runtime_checkable
class ThumbnailDecorator(Protocol):
    """Derives decorative output from a thumbnail image."""

    @abstractmethod
    def render(self, image_path: Path) -> str:
        """Render the image.

        Raises:
            NonFatalDecorationError: On any failure
        """
        ...
