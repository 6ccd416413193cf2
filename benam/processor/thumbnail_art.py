"""ASCII-art rendering of thumbnails for the calendar view."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..errors import NonFatalDecorationError

# Darkest to lightest.
DEFAULT_RAMP = "@%#*+=-:. "


class AsciiThumbnailRenderer:
    """ThumbnailDecorator that maps pixel luminance onto a character ramp."""

    def __init__(self, width: int = 48, ramp: str = DEFAULT_RAMP, char_aspect: float = 0.5):
        if width <= 0:
            raise ValueError(f"width must be positive, got {width}")
        if len(ramp) < 2:
            raise ValueError("ramp needs at least two characters")
        self.width = width
        self.ramp = ramp
        # Terminal cells are roughly twice as tall as they are wide.
        self.char_aspect = char_aspect

    def render(self, image_path: Path) -> str:
        """Render the image as newline-separated rows of ASCII.

        Raises:
            NonFatalDecorationError: If the image cannot be read
        """
        try:
            with Image.open(image_path) as img:
                gray = img.convert("L")
                height = max(1, round(gray.height / gray.width * self.width * self.char_aspect))
                small = gray.resize((self.width, height))
                pixels = np.asarray(small, dtype=np.float32) / 255.0
        except (OSError, UnidentifiedImageError, ValueError) as e:
            raise NonFatalDecorationError(f"Could not render thumbnail art: {e}") from e

        indices = np.clip((pixels * (len(self.ramp) - 1)).round().astype(int), 0, len(self.ramp) - 1)
        return "\n".join("".join(self.ramp[i] for i in row) for row in indices)
