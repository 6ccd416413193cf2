"""Audio utilities based on ffmpeg.

This module wraps the ffmpeg invocations the pipeline needs: peak detection,
gain re-encoding into the canonical format, silence generation and
stream-level concatenation.
"""

from __future__ import annotations

import logging
import math
import re
import subprocess
from pathlib import Path

from ..config import AudioFormatConfig, ToolsConfig
from ..errors import ToolInvocationError

logger = logging.getLogger(__name__)

_MAX_VOLUME_PATTERN = re.compile(r"max_volume:\s*(-?(?:inf|[\d.]+))\s*dB")


def run_tool(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    """Run an external binary and raise on non-zero exit.

    Args:
        cmd: Command line, binary first

    Returns:
        The completed process (stdout/stderr captured as text)

    Raises:
        ToolInvocationError: If the binary is missing or exits non-zero
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, check=False, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ToolInvocationError(cmd, 127, str(e)) from e

    if result.returncode != 0:
        logger.warning(f"{cmd[0]} exited with {result.returncode}: {(result.stderr or '')[-500:]}")
        raise ToolInvocationError(cmd, result.returncode, result.stderr)
    return result


def parse_max_volume(stderr: str) -> float | None:
    """Extract `max_volume` from ffmpeg volumedetect output.

    Returns:
        Peak level in dBFS, or None if absent or -inf (digital silence)
    """
    matches = _MAX_VOLUME_PATTERN.findall(stderr or "")
    if not matches:
        return None
    value = float(matches[-1])
    if not math.isfinite(value):
        return None
    return value


def detect_peak_db(input_path: Path, ffmpeg_bin: str = "ffmpeg") -> float | None:
    """Measure the peak sample level of an audio file.

    Args:
        input_path: Audio file to analyze
        ffmpeg_bin: ffmpeg binary

    Returns:
        Peak in dBFS (0 dB = clipping), or None if ffmpeg reported nothing usable

    Raises:
        ToolInvocationError: If ffmpeg fails
    """
    cmd = [
        ffmpeg_bin,
        "-hide_banner",
        "-nostats",
        "-i",
        str(input_path),
        "-af",
        "volumedetect",
        "-f",
        "null",
        "-",
    ]
    result = run_tool(cmd)
    return parse_max_volume(result.stderr)


def _canonical_args(fmt: AudioFormatConfig) -> list[str]:
    return [
        "-ar",
        str(fmt.sample_rate),
        "-ac",
        str(fmt.channels),
        "-c:a",
        fmt.codec,
        "-b:a",
        fmt.bitrate,
    ]


def encode_with_gain(
    input_path: Path,
    output_path: Path,
    gain_db: float,
    fmt: AudioFormatConfig,
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    """Re-encode audio to the canonical format, applying a gain.

    Args:
        input_path: Source audio in any format ffmpeg can decode
        output_path: Destination file
        gain_db: Gain to apply in dB (negative attenuates)
        fmt: Canonical format
        ffmpeg_bin: ffmpeg binary

    Raises:
        ToolInvocationError: If ffmpeg fails
    """
    cmd = [
        ffmpeg_bin,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(input_path),
        "-vn",
        "-af",
        f"volume={gain_db:.2f}dB",
        *_canonical_args(fmt),
        str(output_path),
    ]
    _ = run_tool(cmd)
    return output_path


def generate_silence(
    output_path: Path,
    duration_seconds: float,
    fmt: AudioFormatConfig,
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    """Write a silence track of the given duration in the canonical format.

    Raises:
        ToolInvocationError: If ffmpeg fails
    """
    layout = "stereo" if fmt.channels == 2 else "mono"
    cmd = [
        ffmpeg_bin,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-f",
        "lavfi",
        "-i",
        f"anullsrc=r={fmt.sample_rate}:cl={layout}",
        "-t",
        format_seconds(duration_seconds),
        *_canonical_args(fmt),
        str(output_path),
    ]
    _ = run_tool(cmd)
    return output_path


def format_seconds(value: float) -> str:
    """Seconds as a plain decimal for ffmpeg arguments (millisecond precision, no exponent)."""
    return f"{value:.3f}".rstrip("0").rstrip(".")


def ffconcat_line(path: Path) -> str:
    """Build one safe concat-demuxer input line for a file path."""
    escaped = str(path).replace("\\", "\\\\").replace("'", "'\\''")
    return f"file '{escaped}'\n"


def concat_copy(input_paths: list[Path], output_path: Path, ffmpeg_bin: str = "ffmpeg") -> Path:
    """Join files with the concat demuxer using stream copy.

    All inputs must share codec, sample rate and channel layout.

    Raises:
        ToolInvocationError: If ffmpeg fails
    """
    list_path = output_path.with_suffix(".concat.txt")
    with open(list_path, "w", encoding="utf-8") as f:
        for path in input_paths:
            _ = f.write(ffconcat_line(path))

    cmd = [
        ffmpeg_bin,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_path),
        "-c",
        "copy",
        str(output_path),
    ]
    try:
        _ = run_tool(cmd)
    finally:
        list_path.unlink(missing_ok=True)
    return output_path


class FfmpegAudioEngine:
    """AudioEngine backed by the ffmpeg binary."""

    def __init__(self, tools: ToolsConfig, audio_format: AudioFormatConfig):
        self.ffmpeg_bin = tools.ffmpeg_bin
        self.audio_format = audio_format

    def measure_peak_db(self, input_path: Path) -> float | None:
        return detect_peak_db(input_path, self.ffmpeg_bin)

    def apply_gain(self, input_path: Path, output_path: Path, gain_db: float) -> Path:
        return encode_with_gain(input_path, output_path, gain_db, self.audio_format, self.ffmpeg_bin)

    def render_silence(self, output_path: Path, duration_seconds: float) -> Path:
        return generate_silence(output_path, duration_seconds, self.audio_format, self.ffmpeg_bin)

    def concat(self, input_paths: list[Path], output_path: Path) -> Path:
        return concat_copy(input_paths, output_path, self.ffmpeg_bin)
