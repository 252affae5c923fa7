"""Exception hierarchy for Singalong."""


class SingalongError(Exception):
    """Base class for all Singalong errors."""


class InputError(SingalongError):
    """Caller supplied unusable input. Not retried."""


class UnsupportedFormatError(InputError):
    """WAV buffer is malformed, truncated, or uses an unsupported encoding."""


class ResourceLimitError(SingalongError):
    """Input exceeds a configured size ceiling.

    Callers degrade to an empty result instead of failing.
    """

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Decoded size {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class TransientExternalError(SingalongError):
    """An external collaborator failed. A later retry may succeed."""


class SeparationError(TransientExternalError):
    """Vocal isolation failed or returned no vocals."""


class SessionBusyError(SingalongError):
    """A live capture session is already active."""
