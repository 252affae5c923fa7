"""Data models for Singalong."""

from singalong.models.analysis import (
    LyricSegment,
    Note,
    PitchSample,
    PitchSeries,
    SampleBuffer,
)
from singalong.models.pipeline import AnalysisContext, AnalysisResult, StageResult

__all__ = [
    "AnalysisContext",
    "AnalysisResult",
    "LyricSegment",
    "Note",
    "PitchSample",
    "PitchSeries",
    "SampleBuffer",
    "StageResult",
]
