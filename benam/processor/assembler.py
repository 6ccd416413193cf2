"""Silence gaps and stream-level concatenation of canonical tracks."""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import AssemblyError, ToolInvocationError
from .models import AudioTrack, TrackRole
from .protocols import AudioEngine

logger = logging.getLogger(__name__)


class SilenceGapGenerator:
    """Produces canonical-format silence. One file per duration is rendered per run."""

    def __init__(self, engine: AudioEngine, work_dir: Path):
        self.engine = engine
        self.work_dir = work_dir
        self._rendered: dict[float, AudioTrack] = {}

    def silence(self, duration_seconds: float) -> AudioTrack:
        """Return a silence track of the given duration.

        Raises:
            AssemblyError: If the silence could not be rendered
        """
        if duration_seconds in self._rendered:
            return self._rendered[duration_seconds]

        output_path = self.work_dir / f"silence_{duration_seconds:g}s.mp3"
        try:
            _ = self.engine.render_silence(output_path, duration_seconds)
        except ToolInvocationError as e:
            raise AssemblyError(f"Could not render {duration_seconds:g}s of silence: {e}") from e

        track = AudioTrack(role=TrackRole.SILENCE, path=output_path, canonical=True)
        self._rendered[duration_seconds] = track
        return track


class AudioAssembler:
    """Joins normalized tracks, separated by silence gaps, into one file."""

    def __init__(
        self,
        engine: AudioEngine,
        silence: SilenceGapGenerator,
        gap_seconds: float,
        date_key: str = "",
    ):
        self.engine = engine
        self.log_prefix = f"[{date_key}] " if date_key else ""
        self.silence = silence
        self.gap_seconds = gap_seconds

    def sequence(self, *tracks: AudioTrack | None) -> list[AudioTrack]:
        """Order present tracks, inserting silence only between two present tracks.

        Called as `sequence(primary, dj_message, review_prompt)`.
        """
        present = [track for track in tracks if track is not None]
        ordered: list[AudioTrack] = []
        for index, track in enumerate(present):
            if index > 0 and self.gap_seconds > 0:
                ordered.append(self.silence.silence(self.gap_seconds))
            ordered.append(track)
        return ordered

    def assemble(self, tracks: list[AudioTrack], output_path: Path) -> AudioTrack:
        """Concatenate canonical tracks without re-encoding.

        Raises:
            AssemblyError: If there is nothing to join, a track is not in the
                canonical format, or the encoder fails
        """
        if not tracks:
            raise AssemblyError("No tracks to assemble")

        mismatched = [t.role.value for t in tracks if not t.canonical]
        if mismatched:
            raise AssemblyError(
                f"Format mismatch: tracks not in canonical format: {', '.join(mismatched)}"
            )

        roles = " + ".join(t.role.value for t in tracks)
        logger.info(f"{self.log_prefix}Assembling {len(tracks)} tracks: {roles}")
        try:
            _ = self.engine.concat([t.path for t in tracks], output_path)
        except ToolInvocationError as e:
            raise AssemblyError(f"Concatenation failed: {e}") from e

        return AudioTrack(role=TrackRole.COMBINED, path=output_path, canonical=True)
