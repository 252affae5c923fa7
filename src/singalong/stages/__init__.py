"""Pipeline stages for Singalong."""

from singalong.stages.ingest import IngestStage
from singalong.stages.note_segmentation import NoteSegmentationStage
from singalong.stages.pitch_detection import PitchDetectionStage

__all__ = [
    "IngestStage",
    "NoteSegmentationStage",
    "PitchDetectionStage",
]
