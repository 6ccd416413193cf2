"""Clip window validation and resolution."""

from __future__ import annotations

import math

import pytest

from benam.errors import AcquisitionError
from benam.processor.acquirer import resolve_clip_window, validate_clip_request
from benam.processor.models import ClipRequest


@pytest.mark.parametrize(
    ("start", "end", "source", "expected"),
    [
        (0.0, 30.0, 240.0, 30.0),
        (10.0, 70.0, 240.0, 60.0),
        (10.0, 610.0, 900.0, 600.0),
        (0.0, 30.0, None, 30.0),
    ],
)
def test_explicit_window_duration_is_exact(start, end, source, expected):
    window = resolve_clip_window(ClipRequest(start=start, end=end), source, 600.0)

    assert window.start == start
    assert window.end == end
    assert window.duration == pytest.approx(expected)


def test_open_window_runs_to_end_of_source():
    window = resolve_clip_window(ClipRequest(start=30.0), 240.0, 600.0)

    assert window.end == 240.0
    assert window.duration == 210.0


def test_open_window_is_capped_at_max_duration():
    window = resolve_clip_window(ClipRequest(start=60.0), 3600.0, 600.0)

    assert window.end == 660.0
    assert window.duration == 600.0


def test_missing_clip_starts_at_zero():
    window = resolve_clip_window(None, 180.0, 600.0)

    assert (window.start, window.end) == (0.0, 180.0)


@pytest.mark.parametrize("source", [None, 0.0, -5.0])
def test_unknown_source_duration_falls_back_to_max(source):
    window = resolve_clip_window(ClipRequest(start=0.0), source, 120.0)

    assert window.duration == 120.0


def test_overlong_window_rejected():
    with pytest.raises(AcquisitionError, match=r"Clip duration \(690s\) exceeds maximum \(600s\)"):
        resolve_clip_window(ClipRequest(start=10.0, end=700.0), 900.0, 600.0)


@pytest.mark.parametrize("end", [10.0, 5.0])
def test_end_not_after_start_rejected(end):
    with pytest.raises(AcquisitionError, match="must be after start"):
        validate_clip_request(ClipRequest(start=10.0, end=end), 600.0)


@pytest.mark.parametrize("start", [-1.0, math.nan, math.inf])
def test_bad_start_rejected(start):
    with pytest.raises(AcquisitionError, match="Invalid clip start"):
        validate_clip_request(ClipRequest(start=start, end=30.0), 600.0)


def test_start_past_end_of_source_rejected():
    with pytest.raises(AcquisitionError, match="Invalid clip duration calculated"):
        resolve_clip_window(ClipRequest(start=300.0), 240.0, 600.0)


def test_errors_carry_acquire_stage():
    with pytest.raises(AcquisitionError) as exc_info:
        validate_clip_request(ClipRequest(start=10.0, end=700.0), 600.0)

    assert exc_info.value.stage == "acquire"
