"""Text-to-speech via Amazon Polly."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import SpeechConfig
from ..errors import SynthesisError


def review_prompt_text(dj_name: str) -> str:
    """Sentence appended to the combined audio when the DJ asked for reviews."""
    name = dj_name.strip() or "your DJ"
    return (
        f"If you'd like to send {name} a one sentence review of this song, "
        "just say: Alexa, leave a review."
    )


class PollySynthesizer:
    """SpeechSynthesizer backed by Amazon Polly. No retries: failures surface immediately."""

    def __init__(self, speech_config: SpeechConfig, client: Any | None = None):
        self.config = speech_config
        self.client = client or boto3.client(
            "polly",
            region_name=speech_config.region,
            config=BotoConfig(retries={"mode": "standard", "total_max_attempts": 1}),
        )

    def synthesize(self, text: str, output_path: Path) -> Path:
        """Synthesize `text` to an MP3 file.

        Raises:
            SynthesisError: If the text is empty or Polly fails
        """
        if not text or not text.strip():
            raise SynthesisError("Nothing to synthesize: text is empty")

        try:
            response = self.client.synthesize_speech(
                Text=text,
                OutputFormat="mp3",
                VoiceId=self.config.voice_id,
                Engine=self.config.engine,
            )
        except (BotoCoreError, ClientError) as e:
            raise SynthesisError(f"Speech synthesis failed: {e}") from e

        stream = response.get("AudioStream")
        if stream is None:
            raise SynthesisError("Speech synthesis returned no audio stream")

        try:
            with closing(stream), open(output_path, "wb") as f:
                _ = f.write(stream.read())
        except (BotoCoreError, OSError) as e:
            raise SynthesisError(f"Could not read synthesized audio: {e}") from e

        if output_path.stat().st_size == 0:
            raise SynthesisError("Speech synthesis returned empty audio")

        return output_path
