"""Note segmentation stage - groups pitch points into game notes."""

from singalong.audio.segmenter import NoteSegmenter
from singalong.config import Settings, get_settings
from singalong.models.pipeline import AnalysisContext, StageResult
from singalong.pipeline.base import PipelineStage


class NoteSegmentationStage(PipelineStage):
    """Stage 3: Note Segmentation.

    Clusters the pitch series into notes, keeps them inside the lyric
    lines supplied with the request, and guarantees ordered,
    non-overlapping output. An empty result is valid (nothing sung, or
    nothing sung during lyrics).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        segmenter: NoteSegmenter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.segmenter = segmenter or NoteSegmenter.from_settings(self.settings)

    @property
    def name(self) -> str:
        return "note_segmentation"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Execute note segmentation on the pitch series."""
        warnings: list[str] = []

        context.notes = self.segmenter.segment(context.pitch_series, context.segments)

        if context.notes:
            warnings.append(f"{len(context.notes)} notes generated")
        elif context.pitch_series:
            warnings.append("No notes survived segmentation")
        else:
            warnings.append("No notes: pitch series is empty")

        if context.segments is None:
            warnings.append("No lyric segments supplied, notes were not filtered")

        return StageResult(
            success=True,
            stage_name=self.name,
            duration_seconds=0,
            warnings=warnings,
        )
