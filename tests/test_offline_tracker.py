"""Tests for the OfflinePitchTracker."""

import numpy as np
import pytest

from singalong.audio.offline_tracker import OfflinePitchTracker
from singalong.models.analysis import SampleBuffer


def make_buffer(samples: np.ndarray, sample_rate: int = 16000) -> SampleBuffer:
    return SampleBuffer(
        samples=np.asarray(samples, dtype=np.float32),
        sample_rate=sample_rate,
        channel_count=1,
    )


class TestOfflinePitchTracker:
    """Tests for OfflinePitchTracker."""

    def test_default_constants(self):
        """Tracker parameters match the documented defaults."""
        tracker = OfflinePitchTracker()
        assert tracker.min_frequency_hz == 80.0
        assert tracker.max_frequency_hz == 2000.0
        assert tracker.hop_seconds == 0.3
        assert tracker.window_seconds == 0.25
        assert tracker.highpass_alpha == 0.95
        assert tracker.min_correlation == 0.05

    def test_pure_440_sine(self, make_sine):
        """Every observation of a 440 Hz tone is within 2% of 440 Hz."""
        buffer = make_buffer(make_sine(440.0, 2.0, sample_rate=16000))

        series = OfflinePitchTracker().track(buffer)

        assert len(series) > 0
        for sample in series:
            assert sample.frequency_hz == pytest.approx(440.0, rel=0.02)

    @pytest.mark.parametrize(
        ("frequency", "sample_rate"),
        [
            (110.0, 22050),
            (220.0, 22050),
            (660.0, 22050),
            (1500.0, 44100),
            (1800.0, 44100),
            (1950.0, 44100),
            (1950.0, 16000),
        ],
    )
    def test_other_pitches(self, frequency, sample_rate, make_sine):
        """Low and high pitches are found without octave errors."""
        buffer = make_buffer(make_sine(frequency, 1.5, sample_rate=sample_rate), sample_rate)

        series = OfflinePitchTracker().track(buffer)

        assert len(series) > 0
        for sample in series:
            assert sample.frequency_hz == pytest.approx(frequency, rel=0.02)

    @pytest.mark.parametrize("sample_rate", [16000, 22050, 44100])
    def test_lowest_frequency_is_reported(self, sample_rate, make_sine):
        """A tone exactly at the 80 Hz bound is tracked, not dropped."""
        buffer = make_buffer(make_sine(80.0, 2.0, sample_rate=sample_rate), sample_rate)

        series = OfflinePitchTracker().track(buffer)

        assert len(series) > 0
        for sample in series:
            assert sample.frequency_hz == pytest.approx(80.0, rel=0.02)
            assert sample.frequency_hz >= 80.0

    def test_silence_yields_empty_series(self):
        """All-zero audio has no pitch."""
        series = OfflinePitchTracker().track(make_buffer(np.zeros(32000)))

        assert len(series) == 0
        assert series.degraded is False

    def test_short_buffer_yields_empty_series(self, make_sine):
        """Buffers under 1000 samples are not analyzed."""
        buffer = make_buffer(make_sine(440.0, 0.05, sample_rate=16000))
        assert buffer.length < 1000

        series = OfflinePitchTracker().track(buffer)

        assert len(series) == 0

    def test_oversize_buffer_is_degraded(self, make_sine):
        """Buffers above the ceiling are skipped, not failed."""
        buffer = make_buffer(make_sine(440.0, 2.0))
        tracker = OfflinePitchTracker(max_decoded_bytes=1024)

        series = tracker.track(buffer)

        assert len(series) == 0
        assert series.degraded is True

    def test_observations_are_hop_spaced(self, make_sine):
        """Observations are time-ordered and start on hop boundaries."""
        buffer = make_buffer(make_sine(440.0, 2.0))

        series = OfflinePitchTracker().track(buffer)
        times = [s.time for s in series]

        assert times == sorted(times)
        assert times[0] == pytest.approx(0.0)
        for earlier, later in zip(times, times[1:]):
            assert later - earlier == pytest.approx(0.3, abs=1e-6)

    def test_silent_gaps_are_omitted(self, make_sine):
        """Windows without pitch are left out rather than reported as None."""
        tone = make_sine(440.0, 1.0)
        samples = np.concatenate([tone, np.zeros(16000, dtype=np.float32), tone])

        series = OfflinePitchTracker().track(make_buffer(samples))

        assert all(s.frequency_hz is not None for s in series)
        assert not any(1.0 <= s.time and s.time + 0.25 <= 2.0 for s in series)

    def test_iteration_is_lazy_and_restartable(self, make_sine):
        """iter_samples is a generator; the series can be iterated twice."""
        buffer = make_buffer(make_sine(440.0, 2.0))
        tracker = OfflinePitchTracker()

        first = next(tracker.iter_samples(buffer))
        series = tracker.track(buffer)

        assert first == series.samples[0]
        assert list(series) == list(series)

    def test_clarity_is_bounded(self, make_sine):
        """Clarity is the window's normalized correlation, at most 1."""
        series = OfflinePitchTracker().track(make_buffer(make_sine(440.0, 2.0)))
        for sample in series:
            assert 0.05 < sample.clarity <= 1.0

    def test_invalid_bounds_rejected(self):
        """Frequency bounds must be ordered and positive."""
        with pytest.raises(ValueError):
            OfflinePitchTracker(min_frequency_hz=500.0, max_frequency_hz=100.0)

    def test_from_settings(self, settings):
        """Settings values flow into the tracker."""
        settings.hop_seconds = 0.1
        tracker = OfflinePitchTracker.from_settings(settings)
        assert tracker.hop_seconds == 0.1
        assert tracker.max_decoded_bytes == settings.max_decoded_bytes
