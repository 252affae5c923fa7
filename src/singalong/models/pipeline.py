"""Pipeline processing models for Singalong.

These models track state as a vocals buffer moves through the offline
analysis stages.
"""

from dataclasses import dataclass, field

from singalong.models.analysis import LyricSegment, Note, PitchSeries, SampleBuffer


@dataclass
class AnalysisContext:
    """Mutable state passed through pipeline stages."""

    # Input
    wav_bytes: bytes
    segments: list[LyricSegment] | None = None  # None disables lyric filtering

    # Decoded audio (ingest)
    buffer: SampleBuffer | None = None

    # Pitch observations (pitch detection)
    pitch_series: PitchSeries = field(default_factory=PitchSeries)

    # Notes (note segmentation)
    notes: list[Note] = field(default_factory=list)

    # Set when a size limit made a stage skip its work
    degraded: bool = False


@dataclass
class StageResult:
    """Result of a pipeline stage execution."""

    success: bool
    stage_name: str
    duration_seconds: float
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)
    exception: Exception | None = None


@dataclass
class AnalysisResult:
    """Final result of an offline analysis run."""

    success: bool
    notes: list[Note] = field(default_factory=list)
    pitch_series: PitchSeries = field(default_factory=PitchSeries)
    degraded: bool = False
    stages_completed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    exception: Exception | None = None
    total_duration: float = 0.0

    def raise_on_error(self) -> "AnalysisResult":
        """Re-raise the failure that stopped the pipeline, if any."""
        if self.exception is not None:
            raise self.exception
        if not self.success:
            raise RuntimeError("; ".join(self.errors) or "Analysis failed")
        return self

    def notes_as_dicts(self) -> list[dict[str, float]]:
        return [note.to_dict() for note in self.notes]
