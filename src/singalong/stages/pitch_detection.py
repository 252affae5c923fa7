"""Pitch detection stage - extracts the pitch series of the vocals."""

from singalong.audio.offline_tracker import OfflinePitchTracker
from singalong.config import Settings, get_settings
from singalong.models.pipeline import AnalysisContext, StageResult
from singalong.pipeline.base import PipelineStage


class PitchDetectionStage(PipelineStage):
    """Stage 2: Pitch Detection.

    Runs the windowed autocorrelation tracker over the decoded vocals and
    stores the sparse pitch series on the context. The decoded samples are
    released afterwards; only the series is needed downstream.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        tracker: OfflinePitchTracker | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.tracker = tracker or OfflinePitchTracker.from_settings(self.settings)

    @property
    def name(self) -> str:
        return "pitch_detection"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Execute pitch detection on the decoded buffer."""
        warnings: list[str] = []

        if context.degraded:
            warnings.append("Skipping pitch detection: audio exceeds size limit")
            return StageResult(
                success=True,
                stage_name=self.name,
                duration_seconds=0,
                warnings=warnings,
            )

        if context.buffer is None:
            return StageResult(
                success=False,
                stage_name=self.name,
                duration_seconds=0,
                error_message="No decoded audio available. Run ingest stage first.",
            )

        series = self.tracker.track(context.buffer)
        context.pitch_series = series
        context.buffer = None

        if series.degraded:
            context.degraded = True
            warnings.append("Skipping pitch detection: audio exceeds size limit")
        else:
            warnings.append(f"{len(series)} pitch points detected")
            freq_range = series.frequency_range()
            if freq_range is not None:
                warnings.append(f"Pitch range: {freq_range[0]:.1f}Hz - {freq_range[1]:.1f}Hz")

        return StageResult(
            success=True,
            stage_name=self.name,
            duration_seconds=0,
            warnings=warnings,
        )
