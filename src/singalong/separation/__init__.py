"""Vocal isolation boundary: single-flight gate, retry policy, separators."""

from typing import Protocol

from singalong.separation.gate import SeparationGate
from singalong.separation.local import LocalSeparator
from singalong.separation.results import SeparationErr, SeparationOk, SeparationOutcome
from singalong.separation.retry import RetryPolicy


class Separator(Protocol):
    """Anything that isolates vocals from a WAV mix."""

    async def separate(self, audio_wav: bytes) -> SeparationOutcome: ...


__all__ = [
    "LocalSeparator",
    "RetryPolicy",
    "SeparationErr",
    "SeparationGate",
    "SeparationOk",
    "SeparationOutcome",
    "Separator",
]
