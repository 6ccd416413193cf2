"""Per-track peak normalization into the canonical format."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import PipelineConfig
from ..errors import NormalizationError, ToolInvocationError
from .models import AudioTrack
from .protocols import AudioEngine

logger = logging.getLogger(__name__)

# Assumed peak when detection is inconclusive: apply no boost.
FALLBACK_PEAK_DB = 0.0


def compute_gain_db(peak_db: float | None, target_peak_db: float, max_boost_db: float | None = None) -> float:
    """Gain that moves `peak_db` to `target_peak_db`.

    Positive gain is capped at `max_boost_db`; the cap only ever lowers the
    gain, so the resulting peak never exceeds the target.
    """
    if peak_db is None:
        peak_db = FALLBACK_PEAK_DB
    gain_db = target_peak_db - peak_db
    if max_boost_db is not None:
        gain_db = min(gain_db, max_boost_db)
    return round(gain_db, 2)


class AudioTrackNormalizer:
    """Two-pass normalizer: measure the peak, then re-encode with the gain applied.

    Inputs vary wildly in loudness (browser recordings are much quieter than
    synthesized speech or downloaded music), so every track is brought to the
    same peak before it is joined with the others.
    """

    def __init__(self, engine: AudioEngine, pipeline_config: PipelineConfig, date_key: str = ""):
        self.engine = engine
        self.log_prefix = f"[{date_key}] " if date_key else ""
        self.target_peak_db = pipeline_config.target_peak_db
        self.max_boost_db = pipeline_config.max_boost_db

    def measure(self, track: AudioTrack) -> float | None:
        """First pass. Analysis failures are inconclusive, not fatal."""
        try:
            return self.engine.measure_peak_db(track.path)
        except ToolInvocationError as e:
            logger.warning(
                f"{self.log_prefix}Peak detection failed for {track.role.value}, assuming 0 dB: {e}"
            )
            return None

    def normalize(self, track: AudioTrack, output_path: Path) -> AudioTrack:
        """Bring one track to the target peak and the canonical format.

        Raises:
            NormalizationError: If the re-encode fails
        """
        peak_db = self.measure(track)
        gain_db = compute_gain_db(peak_db, self.target_peak_db, self.max_boost_db)

        peak_label = f"{peak_db:.1f} dB" if peak_db is not None else "unknown"
        logger.info(
            f"{self.log_prefix}{track.role.value}: peak {peak_label}, gain {gain_db:+.1f} dB"
        )

        try:
            _ = self.engine.apply_gain(track.path, output_path, gain_db)
        except ToolInvocationError as e:
            raise NormalizationError(f"Could not normalize {track.role.value} track: {e}") from e

        return track.normalized(output_path, peak_db=peak_db, gain_db=gain_db)
