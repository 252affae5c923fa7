"""Pipeline orchestrator for Singalong."""

import logging
import time
from collections.abc import Iterable

from singalong.config import Settings, get_settings
from singalong.models.analysis import LyricSegment
from singalong.models.pipeline import AnalysisContext, AnalysisResult
from singalong.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class Pipeline:
    """Runs the offline analysis stages in order.

    A run holds no state beyond its own context, so one pipeline can be
    shared by several worker threads.
    """

    def __init__(self, stages: list[PipelineStage], settings: Settings) -> None:
        """Initialize the pipeline.

        Args:
            stages: Ordered list of stages to execute.
            settings: Application settings.
        """
        self.stages = stages
        self.settings = settings

    def run(
        self,
        wav_bytes: bytes,
        segments: Iterable[LyricSegment] | None = None,
    ) -> AnalysisResult:
        """Run all stages on a vocals WAV buffer.

        Args:
            wav_bytes: Isolated vocals as a WAV file in memory.
            segments: Lyric lines used to keep notes inside sung sections.
                ``None`` keeps every note.

        Returns:
            AnalysisResult with notes, the pitch series, and stage details.
            Failures are reported in the result, not raised.
        """
        start_time = time.perf_counter()

        context = AnalysisContext(
            wav_bytes=wav_bytes,
            segments=list(segments) if segments is not None else None,
        )
        result = AnalysisResult(success=True)

        for stage in self.stages:
            stage_result = stage.run(context)

            if stage_result.success:
                result.stages_completed.append(stage.name)
                result.warnings.extend(stage_result.warnings)
            else:
                result.success = False
                result.errors.append(f"{stage.name}: {stage_result.error_message}")
                result.exception = stage_result.exception
                logger.error("%s failed: %s", stage.name, stage_result.error_message)
                break

        result.notes = context.notes
        result.pitch_series = context.pitch_series
        result.degraded = context.degraded
        result.total_duration = time.perf_counter() - start_time
        return result


def create_default_pipeline(settings: Settings | None = None) -> Pipeline:
    """Create a pipeline with all default stages.

    Args:
        settings: Application settings. Uses global settings if not provided.

    Returns:
        Configured Pipeline instance.
    """
    from singalong.stages import IngestStage, NoteSegmentationStage, PitchDetectionStage

    settings = settings or get_settings()

    stages: list[PipelineStage] = [
        IngestStage(settings),
        PitchDetectionStage(settings),
        NoteSegmentationStage(settings),
    ]

    return Pipeline(stages, settings)
