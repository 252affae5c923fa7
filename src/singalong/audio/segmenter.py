"""Note segmentation - turns pitch observations into singable notes.

Consecutive observations with a similar pitch are grouped into one note.
Notes never overlap (a single voice sings one pitch at a time), are kept
within lyric lines, and have a bounded duration.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from singalong.config import Settings
from singalong.models.analysis import LyricSegment, Note, PitchSample

logger = logging.getLogger(__name__)

# Tolerance for float comparisons on note boundaries
EPSILON = 1e-9


@dataclass
class _Candidate:
    """A note being grown from consecutive observations."""

    start: float
    last_time: float
    observation_seconds: float
    frequencies: list[float] = field(default_factory=list)
    clarities: list[float] = field(default_factory=list)

    @property
    def end(self) -> float:
        return self.last_time + self.observation_seconds

    @property
    def mean_pitch(self) -> float:
        return sum(self.frequencies) / len(self.frequencies)

    @property
    def mean_clarity(self) -> float:
        return sum(self.clarities) / len(self.clarities)

    def add(self, sample: PitchSample) -> None:
        self.last_time = sample.time
        self.frequencies.append(sample.frequency_hz)
        self.clarities.append(sample.clarity)


class NoteSegmenter:
    """Groups a sparse pitch series into non-overlapping notes.

    All thresholds are configuration: earlier tunings of this algorithm
    disagree on them, so none is treated as canonical.
    """

    PITCH_TOLERANCE_HZ = 20.0
    MAX_GAP_SECONDS = 0.1
    MIN_NOTE_SECONDS = 0.2
    MAX_NOTE_SECONDS = 3.0
    MIN_NOTE_GAP_SECONDS = 0.0
    OBSERVATION_SECONDS = 0.25

    def __init__(
        self,
        pitch_tolerance_hz: float = PITCH_TOLERANCE_HZ,
        max_gap_seconds: float = MAX_GAP_SECONDS,
        min_note_seconds: float = MIN_NOTE_SECONDS,
        max_note_seconds: float = MAX_NOTE_SECONDS,
        min_note_gap_seconds: float = MIN_NOTE_GAP_SECONDS,
        observation_seconds: float = OBSERVATION_SECONDS,
    ) -> None:
        if min_note_seconds <= 0 or max_note_seconds < min_note_seconds:
            raise ValueError(
                f"Invalid note duration bounds: {min_note_seconds}-{max_note_seconds}s"
            )
        self.pitch_tolerance_hz = pitch_tolerance_hz
        self.max_gap_seconds = max_gap_seconds
        self.min_note_seconds = min_note_seconds
        self.max_note_seconds = max_note_seconds
        self.min_note_gap_seconds = min_note_gap_seconds
        self.observation_seconds = observation_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "NoteSegmenter":
        return cls(
            pitch_tolerance_hz=settings.pitch_tolerance_hz,
            max_gap_seconds=settings.max_gap_seconds,
            min_note_seconds=settings.min_note_seconds,
            max_note_seconds=settings.max_note_seconds,
            min_note_gap_seconds=settings.min_note_gap_seconds,
            observation_seconds=settings.observation_seconds,
        )

    def segment(
        self,
        samples: Iterable[PitchSample],
        segments: Sequence[LyricSegment] | None = None,
    ) -> list[Note]:
        """Produce the final, ordered note list.

        Args:
            samples: Pitch observations in ascending time order.
            segments: Lyric lines. Notes outside every line are dropped and
                notes running past their line are clipped. ``None`` skips
                this filtering.

        Returns:
            Notes sorted by start, non-overlapping, each within the
            configured duration bounds.
        """
        notes = self.cluster(samples)
        if segments is not None:
            notes = self.filter_by_segments(notes, segments)
        notes = self.enforce_order(notes)
        logger.info("Generated %d notes from pitch data", len(notes))
        return notes

    def cluster(self, samples: Iterable[PitchSample]) -> list[Note]:
        """Group consecutive similar observations into notes.

        A new note never starts before the previous kept note ends.
        """
        ordered = sorted(samples, key=lambda s: s.time)
        notes: list[Note] = []
        last_note_end = float("-inf")
        candidate: _Candidate | None = None

        for sample in ordered:
            if candidate is not None and self._continues(candidate, sample):
                candidate.add(sample)
                continue

            if candidate is not None:
                note = self._close(candidate)
                if note is not None:
                    notes.append(note)
                    last_note_end = note.end

            candidate = _Candidate(
                start=max(sample.time, last_note_end + self.min_note_gap_seconds),
                last_time=sample.time,
                observation_seconds=self.observation_seconds,
            )
            candidate.add(sample)

        if candidate is not None:
            note = self._close(candidate)
            if note is not None:
                notes.append(note)

        return notes

    def filter_by_segments(
        self, notes: Iterable[Note], segments: Sequence[LyricSegment]
    ) -> list[Note]:
        """Drop notes outside every lyric line; clip the rest to their line.

        A note touching several lines is clipped to the one it overlaps
        most. Clipped notes shorter than the minimum duration are dropped.
        """
        kept: list[Note] = []
        dropped = 0

        for note in notes:
            best_segment: LyricSegment | None = None
            best_overlap = 0.0
            for segment in segments:
                overlap = segment.overlap(note.start, note.end)
                if overlap > best_overlap:
                    best_segment, best_overlap = segment, overlap

            if best_segment is None:
                dropped += 1
                continue

            clipped = replace(
                note,
                start=max(note.start, best_segment.start),
                end=min(note.end, best_segment.end),
            )
            if clipped.duration < self.min_note_seconds - EPSILON:
                dropped += 1
                continue
            kept.append(clipped)

        if dropped:
            logger.debug("Dropped %d notes outside lyric segments", dropped)
        return kept

    def enforce_order(self, notes: Iterable[Note]) -> list[Note]:
        """Sort notes and shift any overlapping start to its predecessor's end.

        Notes left shorter than the minimum duration are dropped. Running
        this on its own output changes nothing.
        """
        ordered: list[Note] = []
        for note in sorted(notes, key=lambda n: (n.start, n.end)):
            if ordered and note.start < ordered[-1].end:
                note = replace(note, start=ordered[-1].end)
            if note.duration < self.min_note_seconds - EPSILON:
                continue
            ordered.append(note)
        return ordered

    def _continues(self, candidate: _Candidate, sample: PitchSample) -> bool:
        pitch_diff = abs(sample.frequency_hz - candidate.mean_pitch)
        close_in_pitch = pitch_diff <= self.pitch_tolerance_hz
        close_in_time = sample.time - candidate.end <= self.max_gap_seconds + EPSILON
        return close_in_pitch and close_in_time

    def _close(self, candidate: _Candidate) -> Note | None:
        end = min(candidate.end, candidate.start + self.max_note_seconds)
        if end - candidate.start < self.min_note_seconds - EPSILON:
            return None
        return Note(
            start=candidate.start,
            end=end,
            target_pitch_hz=round(candidate.mean_pitch, 2),
            confidence=round(candidate.mean_clarity, 3),
        )
