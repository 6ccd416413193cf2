"""Artifact storage for published audio and thumbnails (local or S3-compatible).

Storage backend is determined by the config:
- `s3` section present → S3ArtifactStore (production)
- `s3` section absent → LocalArtifactStore rooted at `storage_root` (development)
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

import boto3

from .config import Config, S3Config
from .processor.protocols import ArtifactStore

logger = logging.getLogger(__name__)

CATEGORY_SONGS = "songs"
CATEGORY_COMBINED = "combined"
CATEGORY_THUMBNAILS = "thumbnails"

CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webm": "audio/webm",
}


def artifact_key(category: str, date_key: str, job_id: str, ext: str) -> str:
    """Derive the object key for a published artifact: {category}/{dateKey}/{jobId}.{ext}."""
    return f"{category}/{date_key}/{job_id}.{ext.lstrip('.')}"


def content_type_for(ext: str) -> str:
    return CONTENT_TYPES.get(ext.lstrip(".").lower(), "application/octet-stream")


class LocalArtifactStore:
    """Local filesystem artifact store."""

    def __init__(self, root: Path | str = "media"):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Artifact key escapes storage root: {key}")
        return path

    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        """Copy a file under the storage root and return its key."""
        dest_path = self._path(key)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        _ = shutil.copy2(local_path, dest_path)
        logger.debug(f"Stored {key} ({content_type})")
        return key

    def download(self, key: str, local_path: Path) -> Path:
        """Copy a stored object to `local_path`.

        Raises:
            FileNotFoundError: If no object exists under `key`
        """
        source_path = self._path(key)
        if not source_path.is_file():
            raise FileNotFoundError(f"Artifact not found: {key}")
        local_path.parent.mkdir(parents=True, exist_ok=True)
        _ = shutil.copy2(source_path, local_path)
        return local_path


class S3ArtifactStore:
    """S3-compatible artifact store (AWS S3, Cloudflare R2, MinIO)."""

    def __init__(self, s3_config: S3Config, client: Any | None = None):
        """Initialize S3 storage with configuration."""
        self.config = s3_config
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=s3_config.endpoint_url,
            aws_access_key_id=s3_config.access_key_id,
            aws_secret_access_key=s3_config.secret_access_key,
            region_name=s3_config.region,
        )

    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        """Upload a file and return its key."""
        self.s3_client.upload_file(
            str(local_path),
            self.config.bucket_name,
            key,
            ExtraArgs={"ContentType": content_type},
        )
        return key

    def download(self, key: str, local_path: Path) -> Path:
        """Download an object to `local_path`."""
        local_path.parent.mkdir(parents=True, exist_ok=True)
        self.s3_client.download_file(self.config.bucket_name, key, str(local_path))
        return local_path


def get_artifact_store(config: Config) -> ArtifactStore:
    """Build the artifact store selected by the config."""
    if config.s3 is not None:
        return S3ArtifactStore(config.s3)
    return LocalArtifactStore(config.storage_root)
