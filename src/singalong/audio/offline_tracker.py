"""Offline pitch tracking over a decoded vocals buffer.

Each analysis window is high-pass filtered and its period is found with a
normalized autocorrelation search: a coarse scan over the lag range, then
a local refinement of every coarse peak before the shortest strong period
is picked. Windows without a confident pitch are left out of the
resulting series.
"""

import logging
import math
from collections.abc import Iterator

import numpy as np
from scipy.signal import lfilter

from singalong.config import Settings
from singalong.models.analysis import PitchSample, PitchSeries, SampleBuffer

logger = logging.getLogger(__name__)


class OfflinePitchTracker:
    """Windowed autocorrelation pitch tracker for isolated vocals."""

    MIN_FREQUENCY_HZ = 80.0
    MAX_FREQUENCY_HZ = 2000.0
    HOP_SECONDS = 0.3
    WINDOW_SECONDS = 0.25
    HIGHPASS_ALPHA = 0.95
    MIN_CORRELATION = 0.05
    MIN_SAMPLES = 1000
    MAX_DECODED_BYTES = 500 * 1024 * 1024

    # Coarse scan visits about this many lags
    COARSE_STEPS = 100
    # Refinement re-scans this many samples either side of the best lag
    REFINE_RADIUS = 2
    # The shortest lag within this fraction of the best correlation wins,
    # so a multiple of the true period is not reported as the pitch
    OCTAVE_RATIO = 0.9

    def __init__(
        self,
        min_frequency_hz: float = MIN_FREQUENCY_HZ,
        max_frequency_hz: float = MAX_FREQUENCY_HZ,
        hop_seconds: float = HOP_SECONDS,
        window_seconds: float = WINDOW_SECONDS,
        highpass_alpha: float = HIGHPASS_ALPHA,
        min_correlation: float = MIN_CORRELATION,
        min_samples: int = MIN_SAMPLES,
        max_decoded_bytes: int | None = MAX_DECODED_BYTES,
    ) -> None:
        if not 0 < min_frequency_hz < max_frequency_hz:
            raise ValueError(
                f"Invalid frequency bounds: {min_frequency_hz}-{max_frequency_hz} Hz"
            )
        if hop_seconds <= 0 or window_seconds <= 0:
            raise ValueError("Hop and window lengths must be positive")
        self.min_frequency_hz = min_frequency_hz
        self.max_frequency_hz = max_frequency_hz
        self.hop_seconds = hop_seconds
        self.window_seconds = window_seconds
        self.highpass_alpha = highpass_alpha
        self.min_correlation = min_correlation
        self.min_samples = min_samples
        self.max_decoded_bytes = max_decoded_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "OfflinePitchTracker":
        return cls(
            min_frequency_hz=settings.min_frequency_hz,
            max_frequency_hz=settings.max_frequency_hz,
            hop_seconds=settings.hop_seconds,
            window_seconds=settings.window_seconds,
            highpass_alpha=settings.highpass_alpha,
            min_correlation=settings.min_correlation,
            min_samples=settings.min_samples,
            max_decoded_bytes=settings.max_decoded_bytes,
        )

    def track(self, buffer: SampleBuffer) -> PitchSeries:
        """Extract the pitch series of a whole buffer.

        Oversize buffers are skipped and return an empty, degraded series.
        Buffers shorter than ``min_samples`` return an empty series.
        """
        if self.max_decoded_bytes is not None and buffer.nbytes > self.max_decoded_bytes:
            logger.warning(
                "Skipping pitch extraction: %d bytes of audio exceeds the %d byte limit",
                buffer.nbytes,
                self.max_decoded_bytes,
            )
            return PitchSeries(degraded=True)

        if buffer.length < self.min_samples:
            logger.info(
                "Skipping pitch extraction: %d samples is below the minimum of %d",
                buffer.length,
                self.min_samples,
            )
            return PitchSeries()

        series = PitchSeries(samples=list(self.iter_samples(buffer)))

        freq_range = series.frequency_range()
        if freq_range is None:
            logger.info("No confident pitch found in %.1fs of audio", buffer.duration)
        else:
            logger.info(
                "Extracted %d pitch points (%.1f Hz - %.1f Hz)",
                len(series),
                freq_range[0],
                freq_range[1],
            )
        return series

    def iter_samples(self, buffer: SampleBuffer) -> Iterator[PitchSample]:
        """Lazily yield one observation per window that has a confident pitch."""
        sample_rate = buffer.sample_rate
        window_len = int(round(self.window_seconds * sample_rate))
        hop_len = max(1, int(round(self.hop_seconds * sample_rate)))

        # Rounded outward so tones exactly at either bound stay in range
        min_period = max(1, math.floor(sample_rate / self.max_frequency_hz))
        max_period = min(math.ceil(sample_rate / self.min_frequency_hz), window_len // 2)
        if max_period <= min_period:
            logger.debug(
                "Window of %d samples too short for the lag range at %d Hz",
                window_len,
                sample_rate,
            )
            return

        samples = buffer.samples
        for start in range(0, buffer.length - window_len + 1, hop_len):
            window = samples[start:start + window_len]
            try:
                estimate = self.estimate_window(window, sample_rate, min_period, max_period)
            except (FloatingPointError, ValueError, ZeroDivisionError) as e:
                logger.debug("Window at %.2fs skipped: %s", start / sample_rate, e)
                continue

            if estimate is not None:
                frequency, clarity = estimate
                yield PitchSample(
                    time=start / sample_rate,
                    frequency_hz=frequency,
                    clarity=clarity,
                )

    def estimate_window(
        self,
        window: np.ndarray,
        sample_rate: int,
        min_period: int,
        max_period: int,
    ) -> tuple[float, float] | None:
        """Estimate the fundamental of one window.

        Returns:
            ``(frequency_hz, correlation)`` or None when the window has no
            confident pitch.
        """
        alpha = self.highpass_alpha
        filtered = lfilter([alpha, -alpha], [1.0, -alpha], window.astype(np.float64))
        if not np.all(np.isfinite(filtered)) or not np.any(filtered):
            return None

        correlate = _AutocorrelationCache(filtered)

        # Coarse scan
        step = max(1, (max_period - min_period) // self.COARSE_STEPS)
        coarse_lags = range(min_period, max_period + 1, step)
        coarse = [correlate(lag) for lag in coarse_lags]

        # Every coarse maximum is a candidate, the range edges included
        last = len(coarse) - 1
        candidates = [
            coarse_lags[i]
            for i in range(len(coarse))
            if (i == 0 or coarse[i] >= coarse[i - 1])
            and (i == last or coarse[i] >= coarse[i + 1])
        ]

        # Refine each candidate to its true local maximum. One that climbs
        # out of the lag range has its period outside it and is dropped.
        peaks: dict[int, float] = {}
        for candidate in candidates:
            lag = self._refine(correlate, candidate, min_period, max_period)
            if min_period <= lag <= max_period:
                peaks[lag] = correlate(lag)
        if not peaks:
            return None

        best = max(peaks.values())
        if best <= self.min_correlation:
            return None

        threshold = best * self.OCTAVE_RATIO
        lag = min(candidate for candidate, value in peaks.items() if value >= threshold)
        correlation = peaks[lag]

        period = float(lag)
        if lag > 1:
            before, at, after = correlate(lag - 1), correlation, correlate(lag + 1)
            curvature = before - 2 * at + after
            if curvature < 0:
                period += 0.5 * (before - after) / curvature

        # The lag bounds are rounded outward; clamp the sub-sample overshoot
        frequency = sample_rate / period
        frequency = min(max(frequency, self.min_frequency_hz), self.max_frequency_hz)

        return frequency, min(1.0, correlation)

    def _refine(
        self,
        correlate: "_AutocorrelationCache",
        lag: int,
        min_period: int,
        max_period: int,
    ) -> int:
        """Hill-climb from ``lag`` until the best nearby lag stops moving.

        The climb may step one sample past either end of the lag range so
        a maximum sitting on the boundary can be told apart from a slope.
        """
        floor = max(1, min_period - 1)
        ceiling = max_period + 1
        while True:
            lo = max(floor, lag - self.REFINE_RADIUS)
            hi = min(ceiling, lag + self.REFINE_RADIUS)
            best_lag = max(range(lo, hi + 1), key=correlate)
            if correlate(best_lag) <= correlate(lag):
                return lag
            lag = best_lag


class _AutocorrelationCache:
    """Normalized autocorrelation of one window, memoized per lag."""

    def __init__(self, signal: np.ndarray) -> None:
        self.signal = signal
        # energy[k] = sum of squares of the first k samples
        self.energy = np.concatenate(([0.0], np.cumsum(signal * signal)))
        self._values: dict[int, float] = {}

    def __call__(self, lag: int) -> float:
        value = self._values.get(lag)
        if value is None:
            value = self._compute(lag)
            self._values[lag] = value
        return value

    def _compute(self, lag: int) -> float:
        n = self.signal.shape[0]
        head = self.signal[: n - lag]
        tail = self.signal[lag:]
        head_energy = self.energy[n - lag]
        tail_energy = self.energy[n] - self.energy[lag]
        denom = np.sqrt(head_energy * tail_energy)
        if denom <= 0 or not np.isfinite(denom):
            return 0.0
        return float(np.dot(head, tail) / denom)
