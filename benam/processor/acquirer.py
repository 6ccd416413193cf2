"""Media acquisition from remote video references using yt-dlp."""

from __future__ import annotations

import json
import logging
import math
import os
import shutil
from pathlib import Path

from ..config import ToolsConfig
from ..errors import AcquisitionError, NonFatalDecorationError, ToolInvocationError
from .audio_utils import format_seconds, run_tool
from .models import AcquiredAudio, AudioTrack, ClipRequest, ClipWindow, TrackRole, VideoInfo

logger = logging.getLogger(__name__)

AUDIO_QUALITY = "192K"
AUDIO_STEM = "source"
THUMBNAIL_STEM = "thumbnail"


def validate_clip_request(clip: ClipRequest | None, max_duration: float) -> None:
    """Reject windows that are invalid regardless of the source's length.

    Runs before any external tool is invoked.

    Raises:
        AcquisitionError: If start is negative, end <= start, or the explicit
            duration exceeds `max_duration`
    """
    if clip is None:
        return
    if not math.isfinite(clip.start) or clip.start < 0:
        raise AcquisitionError(f"Invalid clip start: {clip.start}s")
    if clip.end is None:
        return
    if not math.isfinite(clip.end) or clip.end <= clip.start:
        raise AcquisitionError(
            f"Invalid clip window: end ({clip.end}s) must be after start ({clip.start}s)"
        )
    duration = clip.end - clip.start
    if duration > max_duration:
        raise AcquisitionError(f"Clip duration ({duration:g}s) exceeds maximum ({max_duration:g}s)")


def resolve_clip_window(
    clip: ClipRequest | None,
    source_duration: float | None,
    max_duration: float,
) -> ClipWindow:
    """Resolve the effective window for a clip request.

    Without an explicit end, the window runs to min(source duration, start + max_duration).
    A missing or non-positive source duration falls back to `max_duration`.

    Raises:
        AcquisitionError: If the resulting duration is non-positive, not finite,
            or exceeds `max_duration`
    """
    validate_clip_request(clip, max_duration)

    start = clip.start if clip is not None else 0.0
    end = clip.end if clip is not None else None

    if end is None:
        if source_duration is None or not source_duration or source_duration <= 0:
            source_duration = max_duration
        end = min(source_duration, start + max_duration)

    duration = end - start
    if not math.isfinite(duration) or duration <= 0:
        raise AcquisitionError(
            f"Invalid clip duration calculated: {duration}s (start: {start}s, end: {end}s)"
        )
    if duration > max_duration:
        raise AcquisitionError(f"Clip duration ({duration:g}s) exceeds maximum ({max_duration:g}s)")

    return ClipWindow(start=start, end=end)


class YtDlpAcquirer:
    """MediaAcquirer backed by the yt-dlp binary (with ffmpeg post-processing)."""

    def __init__(self, tools: ToolsConfig):
        self.tools = tools

    def _base_args(self, work_dir: Path) -> list[str]:
        args = [self.tools.yt_dlp_bin, "--no-playlist"]
        cookies = self._prepare_cookies(work_dir)
        if cookies is not None:
            args.extend(["--cookies", str(cookies)])
        if os.sep in self.tools.ffmpeg_bin:
            args.extend(["--ffmpeg-location", self.tools.ffmpeg_bin])
        return args

    def _prepare_cookies(self, work_dir: Path) -> Path | None:
        """Copy the read-only cookies file into the work dir (yt-dlp rewrites it)."""
        if not self.tools.cookies_file:
            return None

        target = work_dir / "cookies.txt"
        if target.exists():
            return target

        source = Path(self.tools.cookies_file)
        try:
            _ = shutil.copyfile(source, target)
        except OSError as e:
            logger.warning(f"Could not copy cookies file {source}, continuing without: {e}")
            return None
        return target

    def probe(self, source_ref: str, work_dir: Path) -> VideoInfo:
        """Fetch title and duration without downloading.

        Raises:
            AcquisitionError: If yt-dlp fails or prints unparseable metadata
        """
        cmd = [*self._base_args(work_dir), "--dump-json", source_ref]
        try:
            result = run_tool(cmd)
            info = json.loads(result.stdout)
        except ToolInvocationError as e:
            raise AcquisitionError(f"Failed to fetch video info: {e}") from e
        except json.JSONDecodeError as e:
            raise AcquisitionError(f"Failed to parse video info: {e}") from e

        duration = info.get("duration")
        return VideoInfo(
            title=info.get("title") or "Unknown",
            duration=float(duration) if duration else None,
        )

    def fetch_audio(
        self,
        source_ref: str,
        clip: ClipRequest | None,
        max_duration: float,
        work_dir: Path,
    ) -> AcquiredAudio:
        """Resolve the clip window and download it as a fixed-bitrate MP3.

        Raises:
            AcquisitionError: If the window is invalid or any yt-dlp call fails
        """
        validate_clip_request(clip, max_duration)

        info = self.probe(source_ref, work_dir)
        window = resolve_clip_window(clip, info.duration, max_duration)
        logger.info(
            f"Downloading '{info.title}' [{window.start:g}s-{window.end:g}s] ({window.duration:g}s)"
        )

        output_template = work_dir / f"{AUDIO_STEM}.%(ext)s"
        cmd = [
            *self._base_args(work_dir),
            "--extract-audio",
            "--audio-format",
            "mp3",
            "--audio-quality",
            AUDIO_QUALITY,
            "--output",
            str(output_template),
            "--postprocessor-args",
            f"ffmpeg:-ss {format_seconds(window.start)} -t {format_seconds(window.duration)}",
            source_ref,
        ]
        try:
            _ = run_tool(cmd)
        except ToolInvocationError as e:
            raise AcquisitionError(f"yt-dlp audio download failed: {e}") from e

        audio_path = work_dir / f"{AUDIO_STEM}.mp3"
        if not audio_path.exists():
            raise AcquisitionError(f"yt-dlp reported success but produced no audio at {audio_path}")

        return AcquiredAudio(
            track=AudioTrack(role=TrackRole.PRIMARY, path=audio_path),
            window=window,
            title=info.title,
        )

    def fetch_thumbnail(self, source_ref: str, work_dir: Path) -> Path:
        """Download the video thumbnail converted to JPEG.

        Raises:
            NonFatalDecorationError: If yt-dlp fails or writes no thumbnail
        """
        output_template = work_dir / f"{THUMBNAIL_STEM}.%(ext)s"
        cmd = [
            *self._base_args(work_dir),
            "--write-thumbnail",
            "--skip-download",
            "--convert-thumbnails",
            "jpg",
            "--output",
            str(output_template),
            source_ref,
        ]
        try:
            _ = run_tool(cmd)
        except ToolInvocationError as e:
            raise NonFatalDecorationError(f"Thumbnail download failed: {e}") from e

        thumbnail_path = work_dir / f"{THUMBNAIL_STEM}.jpg"
        if not thumbnail_path.exists():
            raise NonFatalDecorationError("yt-dlp produced no thumbnail")
        return thumbnail_path
