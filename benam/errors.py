"""Exception hierarchy for the media pipeline."""

from __future__ import annotations


class BenamError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(BenamError):
    """Invalid configuration or missing environment."""


class ToolInvocationError(BenamError):
    """An external binary exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr_tail = (stderr or "")[-1000:]
        tool = command[0] if command else "<unknown>"
        message = f"{tool} failed with code {returncode}"
        if self.stderr_tail.strip():
            message += f": {self.stderr_tail.strip()}"
        super().__init__(message)


class PipelineStageError(BenamError):
    """Failure inside one pipeline stage."""

    stage: str = "pipeline"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class AcquisitionError(PipelineStageError):
    """Source unreachable, window invalid, or duration over the cap."""

    stage = "acquire"


class SynthesisError(PipelineStageError):
    """Speech engine failure."""

    stage = "synthesize"


class NormalizationError(PipelineStageError):
    """Peak analysis or gain re-encode failed for one track."""

    stage = "normalize"


class AssemblyError(PipelineStageError):
    """Format mismatch or encoder failure while concatenating."""

    stage = "assemble"


class PublishError(PipelineStageError):
    """Uploading a required artifact failed."""

    stage = "publish"


class NonFatalDecorationError(PipelineStageError):
    """Thumbnail or derived-art failure. Always swallowed by the orchestrator."""

    stage = "thumbnail"


class ProcessingFailure(BenamError):
    """Raised by the orchestrator once a job has been persisted as failed."""

    def __init__(self, date_key: str, job_id: str, stage: str, message: str) -> None:
        self.date_key = date_key
        self.job_id = job_id
        self.stage = stage
        self.message = message
        super().__init__(f"Job {job_id} ({date_key}) failed during {stage}: {message}")
