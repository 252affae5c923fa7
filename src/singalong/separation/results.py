"""Tagged results at the vocal-isolation boundary."""

from dataclasses import dataclass

from singalong.errors import SeparationError


@dataclass(frozen=True)
class SeparationOk:
    """Isolation succeeded."""

    vocals: bytes  # WAV
    accompaniment: bytes | None = None  # WAV, when the separator produced it

    def unwrap(self) -> bytes:
        return self.vocals


@dataclass(frozen=True)
class SeparationErr:
    """Isolation failed; ``reason`` is a human-readable message."""

    reason: str

    def unwrap(self) -> bytes:
        raise SeparationError(self.reason)


SeparationOutcome = SeparationOk | SeparationErr
