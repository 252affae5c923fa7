"""Core analysis data models for Singalong.

These models describe the decoded audio, the pitch observations extracted
from it, the lyric timing supplied from outside, and the notes handed to
the game.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class SampleBuffer:
    """Mono floating-point samples in [-1, 1] plus format metadata."""

    samples: np.ndarray  # float32, read-only
    sample_rate: int  # Hz
    channel_count: int  # channels in the source, before reduction to mono

    def __post_init__(self) -> None:
        self.samples.setflags(write=False)

    @property
    def length(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.length / self.sample_rate if self.sample_rate else 0.0

    @property
    def nbytes(self) -> int:
        return int(self.samples.nbytes)


@dataclass(frozen=True)
class PitchSample:
    """One confident pitch observation."""

    time: float  # seconds, start of the analysis window
    frequency_hz: float
    clarity: float = 1.0  # 0.0-1.0, normalized correlation of the window

    def to_dict(self) -> dict[str, float]:
        """Diagnostic stream format."""
        return {"time": round(self.time, 3), "pitch": round(self.frequency_hz, 2)}


@dataclass
class PitchSeries:
    """Sparse, time-ordered pitch observations.

    Windows without a confident pitch are omitted. Iterating the series
    more than once yields the same samples.
    """

    samples: list[PitchSample] = field(default_factory=list)
    degraded: bool = False  # True when extraction was skipped (size limit)

    def __iter__(self) -> Iterator[PitchSample]:
        return iter(self.samples)

    def __len__(self) -> int:
        return len(self.samples)

    def __bool__(self) -> bool:
        return bool(self.samples)

    def frequency_range(self) -> tuple[float, float] | None:
        if not self.samples:
            return None
        freqs = [s.frequency_hz for s in self.samples]
        return min(freqs), max(freqs)

    def to_dicts(self) -> list[dict[str, float]]:
        return [s.to_dict() for s in self.samples]


@dataclass(frozen=True)
class LyricSegment:
    """A timed lyric line from the transcription service."""

    start: float  # seconds
    end: float  # seconds
    text: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "LyricSegment":
        return cls(
            start=float(data["start"]),
            end=float(data["end"]),
            text=str(data.get("text", "")),
        )

    def overlap(self, start: float, end: float) -> float:
        """Length of the intersection with [start, end], 0 if disjoint."""
        return max(0.0, min(self.end, end) - max(self.start, start))


@dataclass(frozen=True)
class Note:
    """A singable note: one target pitch over a time interval."""

    start: float  # seconds
    end: float  # seconds
    target_pitch_hz: float
    confidence: float = 1.0  # 0.0-1.0, mean clarity of the observations

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict[str, float]:
        """Game rendering format."""
        return {
            "start": round(self.start, 3),
            "end": round(self.end, 3),
            "targetPitch": round(self.target_pitch_hz, 2),
            "duration": round(self.duration, 3),
            "confidence": round(self.confidence, 3),
        }
