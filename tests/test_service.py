"""Tests for the SongAnalyzer facade."""

import asyncio

import pytest

from singalong.errors import SeparationError, UnsupportedFormatError
from singalong.models.analysis import LyricSegment
from singalong.separation import RetryPolicy, SeparationErr, SeparationGate, SeparationOk
from singalong.service import SongAnalyzer

NO_RETRY = RetryPolicy(timeout=5.0, retries=0, backoff=0.0)


class FakeSeparator:
    """Returns canned vocals, or a failure, after a short delay."""

    def __init__(self, vocals: bytes | None = None, reason: str = "model crashed") -> None:
        self.vocals = vocals
        self.reason = reason
        self.calls = 0

    async def separate(self, audio_wav: bytes):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.vocals is None:
            return SeparationErr(self.reason)
        return SeparationOk(self.vocals)


class TestSongAnalyzer:
    """Tests for SongAnalyzer."""

    def test_concurrent_requests_share_separation(self, settings, sine_wav):
        """Three analyses of one song call the separator once."""
        separator = FakeSeparator(vocals=sine_wav)
        analyzer = SongAnalyzer(separator, retry_policy=NO_RETRY, settings=settings)

        async def scenario():
            return await asyncio.gather(
                *(analyzer.analyze("song-1", b"mix") for _ in range(3))
            )

        results = asyncio.run(scenario())

        assert separator.calls == 1
        for result in results:
            assert result.success
            assert result.notes[0].target_pitch_hz == pytest.approx(440.0, rel=0.02)

    def test_gate_shared_between_analyzers(self, settings, sine_wav):
        """Analyzers given the same gate share in-flight calls."""
        separator = FakeSeparator(vocals=sine_wav)
        gate = SeparationGate()
        first = SongAnalyzer(separator, gate=gate, retry_policy=NO_RETRY, settings=settings)
        second = SongAnalyzer(separator, gate=gate, retry_policy=NO_RETRY, settings=settings)

        async def scenario():
            await asyncio.gather(
                first.isolate_vocals("song-1", b"mix"),
                second.isolate_vocals("song-1", b"mix"),
            )

        asyncio.run(scenario())

        assert separator.calls == 1

    def test_falls_back_to_mix(self, settings, sine_wav):
        """When isolation fails the full mix is analyzed with a warning."""
        analyzer = SongAnalyzer(FakeSeparator(), retry_policy=NO_RETRY, settings=settings)

        result = asyncio.run(analyzer.analyze("song-1", sine_wav))

        assert result.success
        assert len(result.notes) == 1
        assert result.warnings[0] == "Vocal separation failed, analyzed full mix: model crashed"

    def test_no_fallback_raises(self, settings, sine_wav):
        """With fallback disabled the separation error propagates."""
        analyzer = SongAnalyzer(
            FakeSeparator(),
            retry_policy=NO_RETRY,
            settings=settings,
            fallback_to_mix=False,
        )

        with pytest.raises(SeparationError, match="model crashed"):
            asyncio.run(analyzer.analyze("song-1", sine_wav))

    def test_separation_retried(self, settings, sine_wav):
        """Failed attempts are retried inside the gated call."""
        separator = FakeSeparator()
        analyzer = SongAnalyzer(
            separator,
            retry_policy=RetryPolicy(retries=2, backoff=0.0),
            settings=settings,
            fallback_to_mix=False,
        )

        with pytest.raises(SeparationError):
            asyncio.run(analyzer.isolate_vocals("song-1", sine_wav))

        assert separator.calls == 3

    def test_bad_vocals_raise_input_error(self, settings):
        """Undecodable audio surfaces as an input error."""
        analyzer = SongAnalyzer(
            FakeSeparator(vocals=b"garbage"), retry_policy=NO_RETRY, settings=settings
        )

        with pytest.raises(UnsupportedFormatError):
            asyncio.run(analyzer.analyze("song-1", b"mix"))

    def test_segments_passed_through(self, settings, sine_wav):
        """Lyric lines reach the segmenter."""
        analyzer = SongAnalyzer(
            FakeSeparator(vocals=sine_wav), retry_policy=NO_RETRY, settings=settings
        )

        result = asyncio.run(
            analyzer.analyze("song-1", b"mix", [LyricSegment(5.0, 8.0)])
        )

        assert result.success
        assert result.notes == []
