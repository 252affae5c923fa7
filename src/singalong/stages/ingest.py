"""Ingest stage - validates and decodes the vocals WAV buffer."""

from singalong.audio.decoder import SampleDecoder
from singalong.config import Settings, get_settings
from singalong.errors import InputError, ResourceLimitError, UnsupportedFormatError
from singalong.models.pipeline import AnalysisContext, StageResult
from singalong.pipeline.base import PipelineStage


class IngestStage(PipelineStage):
    """Stage 1: Decode.

    - Rejects empty, malformed, truncated or unsupported WAV buffers
    - Decodes samples to mono float32 (first channel only)
    - Skips decoding of buffers above the size ceiling and marks the
      context as degraded instead of failing
    """

    def __init__(
        self,
        settings: Settings | None = None,
        decoder: SampleDecoder | None = None,
    ) -> None:
        """Initialize the ingest stage.

        Args:
            settings: Application settings. Uses global settings if not provided.
            decoder: Decoder to use. Built from settings if not provided.
        """
        self.settings = settings or get_settings()
        self.decoder = decoder or SampleDecoder.from_settings(self.settings)

    @property
    def name(self) -> str:
        return "ingest"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Execute the ingest stage."""
        warnings: list[str] = []

        if not context.wav_bytes:
            error = InputError("Empty audio buffer")
            return StageResult(
                success=False,
                stage_name=self.name,
                duration_seconds=0,
                error_message=str(error),
                exception=error,
            )

        try:
            context.buffer = self.decoder.decode(context.wav_bytes)
        except ResourceLimitError as e:
            context.degraded = True
            warnings.append(f"Skipping analysis: {e}")
            return StageResult(
                success=True,
                stage_name=self.name,
                duration_seconds=0,
                warnings=warnings,
            )
        except UnsupportedFormatError as e:
            return StageResult(
                success=False,
                stage_name=self.name,
                duration_seconds=0,
                error_message=f"Unsupported audio: {e}",
                exception=e,
            )

        buffer = context.buffer
        warnings.append(
            f"Decoded {buffer.duration:.1f}s at {buffer.sample_rate} Hz "
            f"({buffer.channel_count} channel(s))"
        )

        return StageResult(
            success=True,
            stage_name=self.name,
            duration_seconds=0,
            warnings=warnings,
        )
