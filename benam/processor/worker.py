"""Invocation entrypoint: runs one job with the real engines."""

from __future__ import annotations

import logging
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..db.config import create_db_engine
from ..db.operations import SqlJobStore
from ..storage import get_artifact_store
from .acquirer import YtDlpAcquirer
from .audio_utils import FfmpegAudioEngine
from .models import ProcessingRequest
from .orchestrator import JobOrchestrator
from .speech import PollySynthesizer
from .thumbnail_art import AsciiThumbnailRenderer

logger = logging.getLogger(__name__)


def build_orchestrator(config: Config) -> JobOrchestrator:
    """Wire the production engines from configuration."""
    return JobOrchestrator(
        config,
        acquirer=YtDlpAcquirer(config.tools),
        synthesizer=PollySynthesizer(config.speech),
        audio_engine=FfmpegAudioEngine(config.tools, config.audio),
        artifact_store=get_artifact_store(config),
        job_store=SqlJobStore(create_db_engine(config.database_url)),
        thumbnail_decorator=AsciiThumbnailRenderer(),
    )


def handler(event: dict[str, Any], config: Config | None = None) -> dict[str, Any]:
    """Process one job from an invocation payload.

    Payload: {jobId, dateKey, sourceRef, clipWindow?, maxDurationSeconds?,
    djName?, djMessage?, reviewerEmail?}

    Returns:
        The job outcome (camelCase keys)

    Raises:
        pydantic.ValidationError: If the payload is malformed
        ProcessingFailure: If the job failed; the record is already marked failed
    """
    request = ProcessingRequest.model_validate(event)

    if config is None:
        _ = load_dotenv()
        logging.basicConfig(level=logging.INFO)
        config = load_config()

    logger.info(f"[{request.date_key}] Processing job {request.job_id} for {request.source_ref}")
    outcome = build_orchestrator(config).run(request)
    return outcome.model_dump(by_alias=True)
