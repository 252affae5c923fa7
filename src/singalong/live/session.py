"""Microphone capture sessions for live pitch tracking."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import numpy as np

from singalong.config import Settings, get_settings
from singalong.errors import SessionBusyError
from singalong.live.tracker import LivePitchTracker

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """A capture device delivering fixed-size mono frames."""

    sample_rate: int

    def open(self) -> None: ...

    def read(self) -> np.ndarray: ...

    def close(self) -> None:
        """Release the device. Must be safe to call after a failed open()."""
        ...


class SoundDeviceSource:
    """Microphone input through sounddevice (PortAudio)."""

    def __init__(
        self,
        sample_rate: int = 44100,
        frame_size: int = 2048,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.device = device
        self._stream = None

    @classmethod
    def from_settings(
        cls, settings: Settings, device: int | str | None = None
    ) -> "SoundDeviceSource":
        return cls(
            sample_rate=settings.live_sample_rate,
            frame_size=settings.live_frame_size,
            device=device,
        )

    def open(self) -> None:
        import sounddevice as sd

        stream = sd.InputStream(
            samplerate=self.sample_rate,
            blocksize=self.frame_size,
            channels=1,
            dtype="float32",
            device=self.device,
        )
        stream.start()
        self._stream = stream

    def read(self) -> np.ndarray:
        if self._stream is None:
            raise RuntimeError("Microphone stream is not open")
        data, overflowed = self._stream.read(self.frame_size)
        if overflowed:
            logger.debug("Microphone input overflowed")
        return np.asarray(data[:, 0], dtype=np.float32)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()


class LiveSession:
    """One active capture: frames from a source, estimates from a tracker."""

    def __init__(self, source: FrameSource, tracker: LivePitchTracker) -> None:
        self.source = source
        self.tracker = tracker
        self._cancel = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop the frame and estimate loops after the current frame."""
        self._cancel.set()

    def frames(self) -> Iterator[np.ndarray]:
        while not self._cancel.is_set():
            yield self.source.read()

    def estimates(self) -> Iterator[float | None]:
        """One pitch estimate (or None) per captured frame until cancelled."""
        return self.tracker.stream(self.frames(), cancel=self._cancel)


class SessionManager:
    """Allows a single live session at a time.

    Starting a session while another is active raises ``SessionBusyError``.
    The source is closed and the slot released on every exit path.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._lock = threading.Lock()
        self._active: LiveSession | None = None

    @property
    def active(self) -> LiveSession | None:
        return self._active

    @contextmanager
    def session(self, source: FrameSource) -> Iterator[LiveSession]:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError("A live pitch session is already running")

        session: LiveSession | None = None
        try:
            source.open()
            tracker = LivePitchTracker.from_settings(
                self.settings, sample_rate=source.sample_rate
            )
            session = LiveSession(source, tracker)
            self._active = session
            logger.info("Live session started at %d Hz", source.sample_rate)
            yield session
        finally:
            if session is not None:
                session.cancel()
            self._active = None
            try:
                source.close()
            finally:
                self._lock.release()
                logger.info("Live session closed")
