# pyright: reportExplicitAny=false
"""Configuration management for the Ben AM media pipeline."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError

_ENV_VAR_PATTERN = r"\$\{([^}]+)\}"


class ToolsConfig(BaseModel):
    """Locations of the external binaries the pipeline shells out to."""

    yt_dlp_bin: str = Field(default="yt-dlp", description="Path to the yt-dlp binary")
    ffmpeg_bin: str = Field(default="ffmpeg", description="Path to the ffmpeg binary")
    cookies_file: str | None = Field(
        default=None,
        description="Read-only cookies file; copied into the work dir before each download",
    )


class AudioFormatConfig(BaseModel):
    """Canonical format every track is re-encoded to before concatenation."""

    sample_rate: int = 44100
    channels: int = 2
    bitrate_kbps: int = 192
    codec: str = "libmp3lame"
    extension: str = "mp3"

    @field_validator("bitrate_kbps")
    @classmethod
    def validate_bitrate(cls, v: int) -> int:
        """Validate bitrate is within acceptable range."""
        if not 32 <= v <= 320:
            raise ValueError(f"Bitrate must be between 32 and 320 kbps, got {v}")
        return v

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError(f"Channels must be 1 or 2, got {v}")
        return v

    @property
    def bitrate(self) -> str:
        """Bitrate as an ffmpeg argument (e.g. "192k")."""
        return f"{self.bitrate_kbps}k"


class PipelineConfig(BaseModel):
    """Limits and levels applied by the processing stages."""

    max_duration_seconds: float = Field(default=600.0, gt=0)
    target_peak_db: float = Field(default=-0.5, le=0)
    silence_gap_seconds: float = Field(default=1.0, ge=0)
    max_boost_db: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound on positive gain so near-silent tracks are not amplified into noise",
    )


class SpeechConfig(BaseModel):
    """Amazon Polly voice settings."""

    voice_id: str = "Matthew"
    engine: str = "neural"
    region: str | None = None


class S3Config(BaseModel):
    """S3-compatible artifact storage configuration."""

    bucket_name: str = Field(..., description="Bucket holding songs, combined audio and thumbnails")
    region: str | None = None
    endpoint_url: str | None = Field(
        default=None, description="Custom endpoint (e.g. Cloudflare R2 or MinIO)"
    )
    access_key_id: str | None = None
    secret_access_key: str | None = None


class Config(BaseModel):
    """Global configuration, passed explicitly to the orchestrator and engines."""

    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    audio: AudioFormatConfig = Field(default_factory=AudioFormatConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    s3: S3Config | None = Field(
        default=None, description="Artifact storage in S3 (optional, local storage otherwise)"
    )
    storage_root: str = Field(default="media", description="Root directory for local artifacts")
    database_url: str = Field(default="sqlite:///benam.db", description="Job store database URL")

    @classmethod
    def _collect_required_env_vars(cls, data: Any, collected: set[str] | None = None) -> set[str]:
        """Recursively collect all ${VAR_NAME} references from config data.

        Args:
            data: YAML data structure (dict, list, str, etc.)
            collected: Set of variable names found so far

        Returns:
            Set of all environment variable names referenced in config
        """
        if collected is None:
            collected = set()

        if isinstance(data, dict):
            for v in data.values():
                cls._collect_required_env_vars(v, collected)
        elif isinstance(data, list):
            for item in data:
                cls._collect_required_env_vars(item, collected)
        elif isinstance(data, str):
            collected.update(re.findall(_ENV_VAR_PATTERN, data))

        return collected

    @classmethod
    def _substitute_env_vars(cls, data: Any) -> Any:
        """Recursively substitute ${VAR_NAME} with environment variables.

        Raises:
            ConfigError: If a referenced environment variable is not set
        """
        if isinstance(data, dict):
            return {k: cls._substitute_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):

            def replace_var(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.getenv(var_name)
                if value is None:
                    raise ConfigError(
                        f"Environment variable '{var_name}' referenced in config but not set"
                    )
                return value

            return re.sub(_ENV_VAR_PATTERN, replace_var, data)
        else:
            return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a config from raw YAML data, resolving environment references.

        Sections explicitly set to null are skipped, so their variables are not required.
        """
        enabled = {k: v for k, v in data.items() if v is not None}

        required_vars = cls._collect_required_env_vars(enabled)
        missing_vars = [var for var in required_vars if var not in os.environ]
        if missing_vars:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(sorted(missing_vars))}\n"
                + "Please set these in your .env file or environment.\n"
                + "See .env.example for reference."
            )

        return cls(**cls._substitute_env_vars(enabled))

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> Config:
        """Load configuration from YAML file.

        Note: Assumes environment variables are already loaded (e.g., via load_dotenv()).
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        with open(path, "r") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        return cls.from_dict(data)


def load_config(config_path: str | None = None) -> Config:
    """Load configuration from BENAM_CONFIG or the given path (defaults to config.yaml)."""
    return Config.load(config_path or os.getenv("BENAM_CONFIG", "config.yaml"))
