"""Shared fixtures: fake engines returning deterministic canned tracks."""

from __future__ import annotations

from pathlib import Path

import pytest

from benam.config import Config
from benam.db.config import create_db_engine, init_db
from benam.db.operations import SqlJobStore
from benam.errors import NonFatalDecorationError, SynthesisError, ToolInvocationError
from benam.processor.acquirer import resolve_clip_window
from benam.processor.models import AcquiredAudio, AudioTrack, ClipRequest, TrackRole
from benam.processor.orchestrator import JobOrchestrator
from benam.storage import LocalArtifactStore


class FakeAcquirer:
    """Writes canned audio/thumbnail bytes instead of downloading."""

    def __init__(self, source_duration: float | None = 240.0, title: str = "Here Comes the Sun"):
        self.source_duration = source_duration
        self.title = title
        self.audio_calls = 0
        self.thumbnail_calls = 0
        self.thumbnail_error: Exception | None = None
        self.audio_error: Exception | None = None
        self.work_dirs: list[Path] = []

    def fetch_audio(self, source_ref, clip: ClipRequest | None, max_duration, work_dir: Path):
        self.audio_calls += 1
        self.work_dirs.append(work_dir)
        window = resolve_clip_window(clip, self.source_duration, max_duration)
        if self.audio_error is not None:
            raise self.audio_error
        path = work_dir / "source.mp3"
        path.write_bytes(b"SONG")
        return AcquiredAudio(
            track=AudioTrack(role=TrackRole.PRIMARY, path=path), window=window, title=self.title
        )

    def fetch_thumbnail(self, source_ref, work_dir: Path) -> Path:
        self.thumbnail_calls += 1
        if self.thumbnail_error is not None:
            raise self.thumbnail_error
        path = work_dir / "thumbnail.jpg"
        path.write_bytes(b"JPEG")
        return path


class FakeSynthesizer:
    def __init__(self):
        self.texts: list[str] = []
        self.fail = False

    def synthesize(self, text: str, output_path: Path) -> Path:
        if self.fail:
            raise SynthesisError("Polly is down")
        self.texts.append(text)
        output_path.write_bytes(f"TTS[{text}]".encode())
        return output_path


class FakeAudioEngine:
    """File contents stand in for audio; peaks are tracked per path.

    `peaks` maps file names to their measured peak. Applying gain records the
    shifted peak for the output file so it can be measured again.
    """

    def __init__(self, peaks: dict[str, float | None] | None = None):
        self.peaks: dict[str, float | None] = dict(peaks or {})
        self.gains: dict[str, float] = {}
        self.concat_calls: list[list[Path]] = []
        self.silence_calls: list[float] = []
        self.fail_gain_for: set[str] = set()
        self.fail_concat = False

    def measure_peak_db(self, input_path: Path) -> float | None:
        return self.peaks.get(input_path.name)

    def apply_gain(self, input_path: Path, output_path: Path, gain_db: float) -> Path:
        if input_path.name in self.fail_gain_for:
            raise ToolInvocationError(["ffmpeg", "-i", str(input_path)], 1, "Invalid data found")
        output_path.write_bytes(input_path.read_bytes())
        self.gains[input_path.name] = gain_db
        peak = self.peaks.get(input_path.name)
        self.peaks[output_path.name] = (0.0 if peak is None else peak) + gain_db
        return output_path

    def render_silence(self, output_path: Path, duration_seconds: float) -> Path:
        self.silence_calls.append(duration_seconds)
        output_path.write_bytes(b"|")
        return output_path

    def concat(self, input_paths: list[Path], output_path: Path) -> Path:
        if self.fail_concat:
            raise ToolInvocationError(["ffmpeg", "-f", "concat"], 1, "Non-monotonic DTS")
        self.concat_calls.append(list(input_paths))
        output_path.write_bytes(b"".join(p.read_bytes() for p in input_paths))
        return output_path


class FakeDecorator:
    def __init__(self, fail: bool = False):
        self.fail = fail

    def render(self, image_path: Path) -> str:
        if self.fail:
            raise NonFatalDecorationError("cannot decode image")
        return "@@\n.."


class RecordingJobStore(SqlJobStore):
    """SqlJobStore that remembers every checkpoint written."""

    def __init__(self, engine):
        super().__init__(engine)
        self.checkpoints: list[int] = []

    def checkpoint(self, date_key, job_id, progress):
        self.checkpoints.append(progress)
        return super().checkpoint(date_key, job_id, progress)


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def db_engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def job_store(db_engine) -> RecordingJobStore:
    return RecordingJobStore(db_engine)


@pytest.fixture
def artifact_store(tmp_path) -> LocalArtifactStore:
    return LocalArtifactStore(tmp_path / "media")


@pytest.fixture
def acquirer() -> FakeAcquirer:
    return FakeAcquirer()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def audio_engine() -> FakeAudioEngine:
    return FakeAudioEngine(
        peaks={"source.mp3": -6.0, "dj_message.mp3": -3.0, "review_prompt.mp3": -1.0}
    )


@pytest.fixture
def orchestrator(config, acquirer, synthesizer, audio_engine, artifact_store, job_store):
    return JobOrchestrator(
        config,
        acquirer=acquirer,
        synthesizer=synthesizer,
        audio_engine=audio_engine,
        artifact_store=artifact_store,
        job_store=job_store,
        thumbnail_decorator=FakeDecorator(),
    )
