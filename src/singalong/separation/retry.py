"""Timeout and retry policy around separation attempts."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from singalong.config import Settings
from singalong.errors import TransientExternalError
from singalong.separation.results import SeparationErr, SeparationOk, SeparationOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with a per-attempt timeout and exponential backoff."""

    timeout: float | None = 600.0  # seconds per attempt, None = wait forever
    retries: int = 2  # attempts after the first
    backoff: float = 2.0  # seconds before the first retry
    max_backoff: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            timeout=settings.separation_timeout,
            retries=settings.separation_retries,
            backoff=settings.separation_backoff,
        )

    async def run(
        self, attempt: Callable[[], Awaitable[SeparationOutcome]]
    ) -> SeparationOutcome:
        """Call ``attempt`` until it succeeds or the attempts run out.

        Timeouts and ``TransientExternalError`` count as failed attempts.
        An attempt that overruns the timeout is still awaited before the
        next one starts: a separator running in a worker thread cannot be
        interrupted, and attempts for one song must never overlap. If it
        succeeds late, that result is used.

        Returns:
            The first ``SeparationOk``, or the last ``SeparationErr``.
        """
        delay = self.backoff
        outcome: SeparationOutcome = SeparationErr("No separation attempt was made")

        for number in range(1, self.retries + 2):
            task = asyncio.ensure_future(attempt())
            try:
                outcome = await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
            except asyncio.TimeoutError:
                outcome = await self._settle_overrun(task, number)
            except TransientExternalError as e:
                outcome = SeparationErr(str(e))

            if isinstance(outcome, SeparationOk):
                return outcome

            if number <= self.retries:
                logger.warning(
                    "Separation attempt %d/%d failed (%s), retrying in %.1fs",
                    number,
                    self.retries + 1,
                    outcome.reason,
                    delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_backoff)

        logger.error("All %d separation attempts failed", self.retries + 1)
        return outcome

    async def _settle_overrun(
        self, task: "asyncio.Future[SeparationOutcome]", number: int
    ) -> SeparationOutcome:
        logger.warning(
            "Separation attempt %d exceeded %ss, waiting for it to stop",
            number,
            self.timeout,
        )
        await asyncio.wait({task})

        try:
            late = task.result()
        except TransientExternalError:
            late = None
        if isinstance(late, SeparationOk):
            logger.info("Separation attempt %d finished after its timeout", number)
            return late
        return SeparationErr(f"Separation timed out after {self.timeout}s")
