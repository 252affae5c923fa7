"""Tests for the individual pipeline stages."""

from unittest.mock import MagicMock

from singalong.errors import InputError
from singalong.models.analysis import LyricSegment, PitchSample, PitchSeries
from singalong.models.pipeline import AnalysisContext
from singalong.stages.ingest import IngestStage
from singalong.stages.note_segmentation import NoteSegmentationStage
from singalong.stages.pitch_detection import PitchDetectionStage


class TestIngestStage:
    """Tests for IngestStage."""

    def test_stage_name(self, settings):
        """Stage has correct name."""
        assert IngestStage(settings).name == "ingest"

    def test_empty_buffer(self, settings):
        """Returns error for an empty buffer."""
        result = IngestStage(settings).execute(AnalysisContext(wav_bytes=b""))

        assert result.success is False
        assert isinstance(result.exception, InputError)
        assert "empty" in result.error_message.lower()

    def test_unsupported_format(self, settings):
        """Returns error for bytes that are not a WAV file."""
        result = IngestStage(settings).execute(AnalysisContext(wav_bytes=b"ID3\x03mp3 data"))

        assert result.success is False
        assert "unsupported" in result.error_message.lower()

    def test_decodes_wav(self, settings, sine_wav):
        """Stores the decoded buffer on the context."""
        context = AnalysisContext(wav_bytes=sine_wav)

        result = IngestStage(settings).execute(context)

        assert result.success is True
        assert context.buffer is not None
        assert context.buffer.sample_rate == 16000
        assert context.buffer.duration == 2.0
        assert "Decoded 2.0s at 16000 Hz (1 channel(s))" in result.warnings

    def test_oversize_marks_degraded(self, settings, sine_wav):
        """Size-limit overruns succeed with a degraded context."""
        settings.max_decoded_bytes = 1000
        context = AnalysisContext(wav_bytes=sine_wav)

        result = IngestStage(settings).execute(context)

        assert result.success is True
        assert context.degraded is True
        assert context.buffer is None
        assert result.warnings[0].startswith("Skipping analysis: Decoded size")


class TestPitchDetectionStage:
    """Tests for PitchDetectionStage."""

    def test_stage_name(self, settings):
        """Stage has correct name."""
        assert PitchDetectionStage(settings).name == "pitch_detection"

    def test_no_decoded_audio(self, settings):
        """Returns error when ingest has not run."""
        result = PitchDetectionStage(settings).execute(AnalysisContext(wav_bytes=b"x"))

        assert result.success is False
        assert "no decoded audio" in result.error_message.lower()

    def test_degraded_context_skipped(self, settings):
        """A degraded context is passed through without tracking."""
        tracker = MagicMock()
        stage = PitchDetectionStage(settings, tracker=tracker)
        context = AnalysisContext(wav_bytes=b"x", degraded=True)

        result = stage.execute(context)

        assert result.success is True
        tracker.track.assert_not_called()

    def test_degraded_series_marks_context(self, settings):
        """A tracker that skips the buffer degrades the context."""
        tracker = MagicMock()
        tracker.track.return_value = PitchSeries(degraded=True)
        stage = PitchDetectionStage(settings, tracker=tracker)
        context = AnalysisContext(wav_bytes=b"x", buffer=MagicMock())

        stage.execute(context)

        assert context.degraded is True
        assert context.buffer is None

    def test_reports_pitch_range(self, settings):
        """Warnings summarize the detected series."""
        tracker = MagicMock()
        tracker.track.return_value = PitchSeries(
            samples=[
                PitchSample(time=0.0, frequency_hz=220.0),
                PitchSample(time=0.3, frequency_hz=247.5),
            ]
        )
        stage = PitchDetectionStage(settings, tracker=tracker)
        context = AnalysisContext(wav_bytes=b"x", buffer=MagicMock())

        result = stage.execute(context)

        assert result.warnings == ["2 pitch points detected", "Pitch range: 220.0Hz - 247.5Hz"]


class TestNoteSegmentationStage:
    """Tests for NoteSegmentationStage."""

    def test_stage_name(self, settings):
        """Stage has correct name."""
        assert NoteSegmentationStage(settings).name == "note_segmentation"

    def test_generates_notes(self, settings):
        """Clusters the pitch series into notes."""
        context = AnalysisContext(
            wav_bytes=b"x",
            segments=[LyricSegment(0.0, 5.0, "la la la")],
            pitch_series=PitchSeries(
                samples=[PitchSample(time=t, frequency_hz=330.0) for t in (0.0, 0.3, 0.6)]
            ),
        )

        result = NoteSegmentationStage(settings).execute(context)

        assert result.success is True
        assert len(context.notes) == 1
        assert result.warnings == ["1 notes generated"]

    def test_no_notes_survive(self, settings):
        """Notes outside the lyric lines leave an empty, successful result."""
        context = AnalysisContext(
            wav_bytes=b"x",
            segments=[LyricSegment(10.0, 12.0)],
            pitch_series=PitchSeries(
                samples=[PitchSample(time=t, frequency_hz=330.0) for t in (0.0, 0.3, 0.6)]
            ),
        )

        result = NoteSegmentationStage(settings).execute(context)

        assert result.success is True
        assert context.notes == []
        assert result.warnings == ["No notes survived segmentation"]
