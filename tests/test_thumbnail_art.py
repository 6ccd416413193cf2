"""ASCII rendering of thumbnails."""

from __future__ import annotations

import pytest
from PIL import Image

from benam.errors import NonFatalDecorationError
from benam.processor.thumbnail_art import AsciiThumbnailRenderer


@pytest.fixture
def gradient_jpg(tmp_path):
    img = Image.new("L", (160, 90))
    img.putdata([int(x / 159 * 255) for _ in range(90) for x in range(160)])
    path = tmp_path / "thumbnail.jpg"
    img.convert("RGB").save(path, "JPEG")
    return path


def test_render_dimensions(gradient_jpg):
    art = AsciiThumbnailRenderer(width=32).render(gradient_jpg)

    rows = art.split("\n")
    assert all(len(row) == 32 for row in rows)
    # 90/160 * 32 * 0.5 = 9
    assert len(rows) == 9


def test_dark_pixels_use_start_of_ramp(gradient_jpg):
    rows = AsciiThumbnailRenderer(width=32, ramp="#.").render(gradient_jpg).split("\n")

    assert all(row[0] == "#" and row[-1] == "." for row in rows)


def test_unreadable_image(tmp_path):
    path = tmp_path / "thumbnail.jpg"
    path.write_bytes(b"not an image")

    with pytest.raises(NonFatalDecorationError):
        AsciiThumbnailRenderer().render(path)


def test_invalid_ramp_rejected():
    with pytest.raises(ValueError):
        AsciiThumbnailRenderer(ramp="#")
