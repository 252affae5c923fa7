"""Single-flight gate for expensive vocal-isolation calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SeparationGate(Generic[T]):
    """At most one in-flight call per song; concurrent callers share it.

    The first caller for a song id starts the work; later callers join the
    same call and observe the identical value or exception. The call is
    deregistered as soon as it settles, so a failure is retried fresh by
    the next caller instead of being cached.

    Instances are independent. Create one per process (or per test) and
    pass it to whatever needs it. All callers must share one event loop.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Future[T]] = {}
        # Strong references so running work is not garbage collected
        self._running: set[asyncio.Future[T]] = set()

    @property
    def in_flight(self) -> list[str]:
        """Song ids with a pending call."""
        return [song_id for song_id, task in self._tasks.items() if not task.done()]

    def is_pending(self, song_id: str) -> bool:
        task = self._tasks.get(song_id)
        return task is not None and not task.done()

    async def acquire_or_join(
        self,
        song_id: str,
        work_factory: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``work_factory`` for ``song_id`` unless a call is already pending.

        The song is registered before ``work_factory`` is called, so a
        caller arriving while the factory runs, or re-entering from inside
        it, joins instead of starting a second call. Cancelling one caller
        does not cancel the shared work.
        """
        shared = self._tasks.get(song_id)
        if shared is None or shared.done():
            shared = asyncio.get_running_loop().create_future()
            self._tasks[song_id] = shared
            shared.add_done_callback(partial(self._release, song_id))
            logger.info("Running vocal separation for %s", song_id)
            self._start(shared, work_factory)
        else:
            logger.info("Waiting for existing vocal separation for %s", song_id)

        return await asyncio.shield(shared)

    def _start(
        self,
        shared: asyncio.Future[T],
        work_factory: Callable[[], Awaitable[T]],
    ) -> None:
        try:
            work = asyncio.ensure_future(work_factory())
        except Exception as e:
            shared.set_exception(e)
            return
        self._running.add(work)
        work.add_done_callback(partial(self._settle, shared))

    def _settle(self, shared: asyncio.Future[T], work: asyncio.Future[T]) -> None:
        self._running.discard(work)
        if shared.done():
            return
        if work.cancelled():
            shared.cancel()
        elif work.exception() is not None:
            shared.set_exception(work.exception())
        else:
            shared.set_result(work.result())

    def _release(self, song_id: str, task: asyncio.Future[T]) -> None:
        if self._tasks.get(song_id) is task:
            del self._tasks[song_id]
        if task.cancelled():
            logger.warning("Vocal separation for %s was cancelled", song_id)
        elif task.exception() is not None:
            logger.warning("Vocal separation for %s failed: %s", song_id, task.exception())
        else:
            logger.info("Vocal separation for %s finished", song_id)
