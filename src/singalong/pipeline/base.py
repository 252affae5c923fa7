"""Base class for the offline analysis stages."""

from abc import ABC, abstractmethod
import logging
import time

from singalong.models.pipeline import AnalysisContext, StageResult

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """One step of the offline analysis.

    A stage reads what earlier stages left in the AnalysisContext and adds
    its own output to it: decoded samples, then the pitch series, then
    notes. Stages report failure through their StageResult.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stage name used in logs and in ``stages_completed``."""
        ...

    @abstractmethod
    def execute(self, context: AnalysisContext) -> StageResult:
        """Do the stage's work on ``context``.

        Bad input is reported as a failed StageResult. Anything raised is
        caught by ``run()`` and reported the same way.
        """
        ...

    def run(self, context: AnalysisContext) -> StageResult:
        """Time and log ``execute()``, converting exceptions to a failed result."""
        logger.info("Starting %s", self.name)
        start_time = time.perf_counter()
        try:
            result = self.execute(context)
        except Exception as e:
            result = StageResult(
                success=False,
                stage_name=self.name,
                duration_seconds=0.0,
                error_message=f"Unexpected error: {e}",
                exception=e,
            )
        result.duration_seconds = time.perf_counter() - start_time

        if result.success:
            logger.info("Finished %s in %.2fs", self.name, result.duration_seconds)
        else:
            logger.info(
                "Finished %s with an error after %.2fs",
                self.name,
                result.duration_seconds,
            )
        return result
