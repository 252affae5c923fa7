"""Live microphone pitch tracking."""

from singalong.live.session import FrameSource, LiveSession, SessionManager, SoundDeviceSource
from singalong.live.tracker import LivePitchTracker

__all__ = [
    "FrameSource",
    "LivePitchTracker",
    "LiveSession",
    "SessionManager",
    "SoundDeviceSource",
]
