"""Async facade: isolate vocals once per song, then analyze them."""

import asyncio
import logging
from collections.abc import Iterable

from singalong.config import Settings, get_settings
from singalong.errors import SeparationError
from singalong.models.analysis import LyricSegment
from singalong.models.pipeline import AnalysisResult
from singalong.pipeline.orchestrator import Pipeline, create_default_pipeline
from singalong.separation import RetryPolicy, SeparationGate, Separator

logger = logging.getLogger(__name__)


class SongAnalyzer:
    """Turns a song's mix into game notes.

    Vocal isolation goes through a ``SeparationGate`` so concurrent
    requests for the same song share one external call; the CPU-bound
    offline pipeline runs in a worker thread.
    """

    def __init__(
        self,
        separator: Separator,
        gate: SeparationGate[bytes] | None = None,
        pipeline: Pipeline | None = None,
        retry_policy: RetryPolicy | None = None,
        settings: Settings | None = None,
        fallback_to_mix: bool = True,
    ) -> None:
        """Initialize the analyzer.

        Args:
            separator: Vocal isolation backend.
            gate: Shared gate. A private one is created if not provided.
            pipeline: Offline pipeline. Default stages if not provided.
            retry_policy: Applied inside the gated call.
            settings: Application settings. Uses global settings if not provided.
            fallback_to_mix: Analyze the full mix when isolation fails
                instead of raising.
        """
        self.settings = settings or get_settings()
        self.separator = separator
        self.gate = gate if gate is not None else SeparationGate()
        self.pipeline = pipeline or create_default_pipeline(self.settings)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.fallback_to_mix = fallback_to_mix

    async def isolate_vocals(self, song_id: str, mix_wav: bytes) -> bytes:
        """Isolated vocals for ``song_id``, sharing any call already running.

        Raises:
            SeparationError: Every attempt failed.
        """

        async def work() -> bytes:
            outcome = await self.retry_policy.run(lambda: self.separator.separate(mix_wav))
            return outcome.unwrap()

        return await self.gate.acquire_or_join(song_id, work)

    async def analyze(
        self,
        song_id: str,
        mix_wav: bytes,
        segments: Iterable[LyricSegment] | None = None,
    ) -> AnalysisResult:
        """Isolate vocals and extract notes.

        Raises:
            InputError: The audio could not be decoded.
            SeparationError: Isolation failed and ``fallback_to_mix`` is off.
        """
        warnings: list[str] = []
        try:
            vocals = await self.isolate_vocals(song_id, mix_wav)
        except SeparationError as e:
            if not self.fallback_to_mix:
                raise
            logger.warning("Vocal separation failed for %s, using full audio: %s", song_id, e)
            warnings.append(f"Vocal separation failed, analyzed full mix: {e}")
            vocals = mix_wav

        result = await asyncio.to_thread(self.pipeline.run, vocals, segments)
        result.warnings[:0] = warnings
        return result.raise_on_error()
