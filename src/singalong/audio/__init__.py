"""Offline audio analysis: WAV decoding, pitch tracking and note segmentation."""

from singalong.audio.decoder import SampleDecoder
from singalong.audio.offline_tracker import OfflinePitchTracker
from singalong.audio.segmenter import NoteSegmenter

__all__ = ["NoteSegmenter", "OfflinePitchTracker", "SampleDecoder"]
