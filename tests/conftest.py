"""Pytest fixtures for Singalong tests."""

import io
from collections.abc import Callable

import numpy as np
import pytest
import soundfile as sf

from singalong.config import Settings


def _make_sine(
    frequency: float,
    duration: float,
    sample_rate: int = 16000,
    amplitude: float = 0.5,
) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def _to_wav_bytes(
    samples: np.ndarray,
    sample_rate: int = 16000,
    subtype: str = "PCM_16",
) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype=subtype)
    return buf.getvalue()


@pytest.fixture
def make_sine() -> Callable[..., np.ndarray]:
    """Return a sine generator: make_sine(frequency, duration, sample_rate, amplitude)."""
    return _make_sine


@pytest.fixture
def to_wav_bytes() -> Callable[..., bytes]:
    """Return a WAV encoder: to_wav_bytes(samples, sample_rate, subtype)."""
    return _to_wav_bytes


@pytest.fixture
def sine_wav() -> bytes:
    """2 seconds of a 440 Hz sine at 16 kHz, 16-bit mono."""
    return _to_wav_bytes(_make_sine(440.0, 2.0))


@pytest.fixture
def silence_wav() -> bytes:
    """2 seconds of digital silence at 16 kHz, 16-bit mono."""
    return _to_wav_bytes(np.zeros(32000, dtype=np.float32))


@pytest.fixture
def settings() -> Settings:
    """Default settings, unaffected by any .env file."""
    return Settings(_env_file=None)
