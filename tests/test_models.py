"""Tests for data models."""

import json

import numpy as np
import pytest

from singalong.models.analysis import LyricSegment, Note, PitchSample, PitchSeries, SampleBuffer
from singalong.models.pipeline import AnalysisResult


def test_sample_buffer_is_read_only():
    """SampleBuffer freezes its sample array."""
    buffer = SampleBuffer(samples=np.zeros(8000, dtype=np.float32), sample_rate=8000, channel_count=2)

    assert buffer.length == 8000
    assert buffer.duration == 1.0
    assert buffer.nbytes == 32000
    with pytest.raises(ValueError):
        buffer.samples[0] = 0.5


def test_pitch_sample_dict_format():
    """PitchSample serializes to the diagnostic time/pitch format."""
    sample = PitchSample(time=1.23456, frequency_hz=440.12345, clarity=0.9)
    assert sample.to_dict() == {"time": 1.235, "pitch": 440.12}


def test_pitch_series_iteration():
    """PitchSeries can be iterated repeatedly and reports its range."""
    series = PitchSeries(
        samples=[
            PitchSample(time=0.0, frequency_hz=220.0),
            PitchSample(time=0.3, frequency_hz=330.0),
        ]
    )

    assert list(series) == list(series)
    assert len(series) == 2
    assert series.frequency_range() == (220.0, 330.0)
    assert series.to_dicts()[1] == {"time": 0.3, "pitch": 330.0}


def test_empty_pitch_series():
    """An empty series is falsy and has no range."""
    series = PitchSeries()
    assert not series
    assert series.frequency_range() is None
    assert series.degraded is False


def test_lyric_segment_from_dict():
    """LyricSegment accepts transcription service records."""
    segment = LyricSegment.from_dict({"start": "1.5", "end": 4, "text": "Hello world"})

    assert segment == LyricSegment(start=1.5, end=4.0, text="Hello world")
    assert LyricSegment.from_dict({"start": 0, "end": 1}).text == ""


def test_lyric_segment_overlap():
    """Overlap is the length of the intersection."""
    segment = LyricSegment(start=2.0, end=5.0)

    assert segment.overlap(1.0, 3.0) == 1.0
    assert segment.overlap(3.0, 4.0) == 1.0
    assert segment.overlap(5.0, 6.0) == 0.0
    assert segment.overlap(6.0, 7.0) == 0.0


def test_note_serialization():
    """Note round-trips through JSON in the game format."""
    note = Note(start=5.2, end=5.8, target_pitch_hz=261.6256, confidence=0.8765)

    loaded = json.loads(json.dumps(note.to_dict()))

    assert loaded == {
        "start": 5.2,
        "end": 5.8,
        "targetPitch": 261.63,
        "duration": 0.6,
        "confidence": 0.877,
    }


def test_analysis_result_raise_on_error():
    """raise_on_error re-raises the stored exception."""
    error = ValueError("bad")
    failed = AnalysisResult(success=False, errors=["ingest: bad"], exception=error)

    with pytest.raises(ValueError) as exc_info:
        failed.raise_on_error()
    assert exc_info.value is error

    ok = AnalysisResult(success=True)
    assert ok.raise_on_error() is ok
