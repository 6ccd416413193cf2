"""Invocation entrypoint and CLI."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from benam.cli import app
from benam.config import Config, SpeechConfig
from benam.db.config import create_db_engine, init_db
from benam.db.operations import SqlJobStore
from benam.processor.acquirer import YtDlpAcquirer
from benam.processor.audio_utils import FfmpegAudioEngine
from benam.processor.models import JobOutcome
from benam.processor.worker import build_orchestrator, handler
from benam.storage import LocalArtifactStore

PAYLOAD = {
    "jobId": "job-1",
    "dateKey": "2026-10-19",
    "sourceRef": "https://www.youtube.com/watch?v=abc123",
    "clipWindow": {"start": 5, "end": 35},
    "djMessage": {"kind": "synthesized", "text": "Rise and shine"},
}

runner = CliRunner()


def _outcome() -> JobOutcome:
    return JobOutcome(
        job_id="job-1",
        date_key="2026-10-19",
        status="completed",
        primary_artifact_ref="songs/2026-10-19/job-1.mp3",
        combined_artifact_ref="combined/2026-10-19/job-1.mp3",
        duration_seconds=30.0,
    )


def test_build_orchestrator_wires_production_engines(tmp_path):
    config = Config(
        storage_root=str(tmp_path),
        database_url="sqlite://",
        speech=SpeechConfig(region="us-east-1"),
    )

    orchestrator = build_orchestrator(config)

    assert isinstance(orchestrator.acquirer, YtDlpAcquirer)
    assert isinstance(orchestrator.audio_engine, FfmpegAudioEngine)
    assert isinstance(orchestrator.artifact_store, LocalArtifactStore)
    assert isinstance(orchestrator.job_store, SqlJobStore)


def test_handler_returns_camel_case_outcome():
    orchestrator = MagicMock()
    orchestrator.run.return_value = _outcome()

    with patch("benam.processor.worker.build_orchestrator", return_value=orchestrator):
        result = handler(PAYLOAD, config=Config())

    request = orchestrator.run.call_args.args[0]
    assert request.clip_window.end == 35
    assert request.dj_message.text == "Rise and shine"
    assert result["combinedArtifactRef"] == "combined/2026-10-19/job-1.mp3"
    assert result["durationSeconds"] == 30.0


def test_handler_rejects_malformed_payload():
    with pytest.raises(ValidationError):
        handler({**PAYLOAD, "dateKey": "19/10/2026"}, config=Config())


def test_cli_process(tmp_path):
    payload = tmp_path / "job.json"
    payload.write_text(json.dumps(PAYLOAD))
    config_path = tmp_path / "config.yaml"
    db_url = f"sqlite:///{tmp_path / 'jobs.db'}"
    config_path.write_text(f"storage_root: {tmp_path / 'media'}\ndatabase_url: {db_url}\n")
    init_db(create_db_engine(db_url))
    orchestrator = MagicMock()
    orchestrator.run.return_value = _outcome()

    with patch("benam.cli.build_orchestrator", return_value=orchestrator):
        result = runner.invoke(app, ["process", str(payload), "--config", str(config_path)])

    assert result.exit_code == 0
    assert "combined/2026-10-19/job-1.mp3" in result.stdout
    record = SqlJobStore(create_db_engine(db_url)).get("2026-10-19")
    assert record is not None and record.job_id == "job-1"


def test_cli_status_and_cancel(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'jobs.db'}"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: {db_url}\n")
    engine = create_db_engine(db_url)
    init_db(engine)
    store = SqlJobStore(engine)
    store.create("2026-10-19", "job-1")
    store.checkpoint("2026-10-19", "job-1", 40)
    engine.dispose()

    status = runner.invoke(app, ["status", "2026-10-19", "--config", str(config_path)])
    assert status.exit_code == 0
    assert json.loads(status.stdout) == {
        "jobId": "job-1",
        "date": "2026-10-19",
        "status": "processing",
        "progress": 40,
    }

    cancel = runner.invoke(app, ["cancel", "2026-10-19", "--config", str(config_path)])
    assert cancel.exit_code == 0

    missing = runner.invoke(app, ["status", "2026-10-19", "--config", str(config_path)])
    assert missing.exit_code == 1


def test_cli_missing_config(tmp_path):
    result = runner.invoke(app, ["status", "2026-10-19", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1


def test_cli_init_db_and_version(tmp_path):
    db_path = tmp_path / "fresh.db"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite:///{db_path}\n")

    result = runner.invoke(app, ["init-db", "--config", str(config_path)])

    assert result.exit_code == 0
    assert db_path.exists()
    assert "benam version" in runner.invoke(app, ["version"]).stdout
