"""Real-time pitch estimation for microphone frames.

Uses a YIN-style estimator: a difference function over candidate lags is
turned into a cumulative mean normalized difference (CMND), and the first
dip under a threshold is taken as the period.
"""

import logging
import threading
from collections.abc import Iterable, Iterator

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from singalong.config import Settings

logger = logging.getLogger(__name__)


class LivePitchTracker:
    """Per-frame pitch estimator with a silence gate and temporal smoothing.

    Pull driven: the caller submits one frame per audio tick. The tracker
    does no I/O and holds no thread; its only state is the previous
    accepted estimate used for smoothing.
    """

    MIN_FREQUENCY_HZ = 75.0
    MAX_FREQUENCY_HZ = 800.0
    VOLUME_THRESHOLD = 0.005
    YIN_THRESHOLD = 0.15
    MAX_CMND = 0.5
    SMOOTHING_WEIGHT = 0.3
    SMOOTHING_MAX_JUMP_HZ = 100.0

    def __init__(
        self,
        sample_rate: int,
        min_frequency_hz: float = MIN_FREQUENCY_HZ,
        max_frequency_hz: float = MAX_FREQUENCY_HZ,
        volume_threshold: float = VOLUME_THRESHOLD,
        yin_threshold: float = YIN_THRESHOLD,
        max_cmnd: float = MAX_CMND,
        smoothing_weight: float = SMOOTHING_WEIGHT,
        smoothing_max_jump_hz: float = SMOOTHING_MAX_JUMP_HZ,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {sample_rate}")
        self.sample_rate = sample_rate
        self.min_frequency_hz = min_frequency_hz
        self.max_frequency_hz = max_frequency_hz
        self.volume_threshold = volume_threshold
        self.yin_threshold = yin_threshold
        self.max_cmnd = max_cmnd
        self.smoothing_weight = smoothing_weight
        self.smoothing_max_jump_hz = smoothing_max_jump_hz

        self.min_period = max(2, int(sample_rate / max_frequency_hz))
        self.max_period = int(sample_rate / min_frequency_hz)

        self._previous: float | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, sample_rate: int | None = None
    ) -> "LivePitchTracker":
        return cls(
            sample_rate=sample_rate or settings.live_sample_rate,
            min_frequency_hz=settings.live_min_frequency_hz,
            max_frequency_hz=settings.live_max_frequency_hz,
            volume_threshold=settings.volume_threshold,
            yin_threshold=settings.yin_threshold,
            max_cmnd=settings.max_cmnd,
            smoothing_weight=settings.smoothing_weight,
            smoothing_max_jump_hz=settings.smoothing_max_jump_hz,
        )

    @property
    def previous(self) -> float | None:
        """Last accepted (smoothed) estimate."""
        return self._previous

    def reset(self) -> None:
        """Forget the smoothing history."""
        self._previous = None

    def estimate(self, frame: np.ndarray) -> float | None:
        """Estimate the pitch of one frame.

        Returns:
            Frequency in Hz, or None for silence, noise, or any frame the
            estimator cannot handle.
        """
        samples = np.asarray(frame, dtype=np.float64).ravel()
        if samples.size == 0:
            return None

        with np.errstate(all="ignore"):
            rms = float(np.sqrt(np.mean(samples * samples)))
        if not np.isfinite(rms) or rms < self.volume_threshold:
            return None

        try:
            with np.errstate(divide="raise", invalid="raise", over="raise"):
                frequency = self._detect(samples)
        except (FloatingPointError, ValueError, ZeroDivisionError) as e:
            logger.debug("Frame skipped: %s", e)
            return None

        if frequency is None:
            return None

        smoothed = self._smooth(frequency)
        logger.debug("Pitch %.1f Hz (raw %.1f Hz, rms %.4f)", smoothed, frequency, rms)
        return smoothed

    def stream(
        self,
        frames: Iterable[np.ndarray],
        cancel: threading.Event | None = None,
    ) -> Iterator[float | None]:
        """Lazily yield one estimate per frame.

        Stops when ``frames`` is exhausted or ``cancel`` is set. The caller
        owns the cadence: nothing is computed until the next item is pulled.
        """
        for frame in frames:
            if cancel is not None and cancel.is_set():
                return
            yield self.estimate(frame)

    def _detect(self, samples: np.ndarray) -> float | None:
        peak = float(np.max(np.abs(samples)))
        if peak == 0 or not np.isfinite(peak):
            return None
        samples = samples / peak

        max_period = self.max_period
        window = min(samples.size // 2, max_period * 2)
        if window + max_period > samples.size:
            window = samples.size - max_period
        if window <= 0 or max_period - 1 <= self.min_period:
            return None

        # Difference function d(tau) for tau = 0..max_period
        shifted = sliding_window_view(samples, window)[: max_period + 1]
        diff = np.sum((shifted - samples[:window]) ** 2, axis=1)

        # Cumulative mean normalized difference
        cumulative = np.cumsum(diff[1:])
        cmnd = np.ones_like(diff)
        lags = np.arange(1, max_period + 1)
        nonzero = cumulative > 0
        cmnd[1:][nonzero] = diff[1:][nonzero] * lags[nonzero] / cumulative[nonzero]

        # First dip under the threshold, followed down to its local minimum
        search = cmnd[self.min_period:max_period]
        below = np.flatnonzero(search < self.yin_threshold)
        if below.size:
            tau = self.min_period + int(below[0])
            while tau + 1 < max_period and cmnd[tau + 1] < cmnd[tau]:
                tau += 1
        else:
            tau = self.min_period + int(np.argmin(search))

        best = float(cmnd[tau])
        if best >= self.max_cmnd:
            return None

        # Parabolic interpolation for sub-sample accuracy
        period = float(tau)
        before, after = float(cmnd[tau - 1]), float(cmnd[tau + 1])
        curvature = before - 2 * best + after
        if curvature > 0:
            shift = 0.5 * (before - after) / curvature
            if abs(shift) < 1:
                period += shift

        frequency = self.sample_rate / period
        if not self.min_frequency_hz <= frequency <= self.max_frequency_hz:
            return None
        return frequency

    def _smooth(self, frequency: float) -> float:
        previous = self._previous
        if previous is not None and abs(frequency - previous) < self.smoothing_max_jump_hz:
            frequency = self.smoothing_weight * frequency + (1 - self.smoothing_weight) * previous
        self._previous = frequency
        return frequency
