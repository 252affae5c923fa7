"""Vocal isolation with audio-separator, run in-process."""

import asyncio
import re
import tempfile
from pathlib import Path

from singalong.config import Settings, get_settings
from singalong.separation.results import SeparationErr, SeparationOk, SeparationOutcome


class LocalSeparator:
    """Isolates vocals from a mix using audio-separator.

    Works well with 2-stem vocal models such as BS-RoFormer
    (model_bs_roformer_ep_317_sdr_12.9755.ckpt); Demucs models also work,
    only the vocals stem is kept. Every failure is returned as a
    ``SeparationErr`` rather than raised.
    """

    # audio-separator output pattern: {input}_(Vocals)_{model}.wav
    STEM_PATTERN = re.compile(r"\((\w+)\)", re.IGNORECASE)
    VOCAL_NAMES = {"vocal", "vocals"}
    ACCOMPANIMENT_NAMES = {"instrumental", "other", "no_vocals"}

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the separator.

        Args:
            settings: Application settings. Uses global settings if not provided.
        """
        self.settings = settings or get_settings()

    async def separate(self, audio_wav: bytes) -> SeparationOutcome:
        """Isolate vocals without blocking the event loop."""
        return await asyncio.to_thread(self.separate_sync, audio_wav)

    def separate_sync(self, audio_wav: bytes) -> SeparationOutcome:
        """Isolate vocals from a WAV mix.

        Args:
            audio_wav: Full mix as WAV bytes.

        Returns:
            ``SeparationOk`` with the vocals (and accompaniment when the
            model produces one), or ``SeparationErr``.
        """
        if not self._check_audio_separator():
            return SeparationErr(
                "audio-separator not found. Install with: pip install audio-separator"
            )

        with tempfile.TemporaryDirectory(prefix="singalong-") as temp:
            temp_dir = Path(temp)
            input_path = temp_dir / "mix.wav"
            input_path.write_bytes(audio_wav)

            stems_dir = temp_dir / "stems"
            stems_dir.mkdir()

            try:
                self._run_separator(input_path, stems_dir)
                stems = self._find_stems(stems_dir)
            except Exception as e:
                return SeparationErr(f"Stem separation failed: {e}")

            vocals_path = stems.get("vocals")
            if vocals_path is None:
                return SeparationErr(
                    f"Separator produced no vocals stem (found: {sorted(stems)})"
                )

            accompaniment_path = stems.get("accompaniment")
            return SeparationOk(
                vocals=vocals_path.read_bytes(),
                accompaniment=accompaniment_path.read_bytes() if accompaniment_path else None,
            )

    def _check_audio_separator(self) -> bool:
        """Check if audio-separator is available."""
        try:
            from audio_separator.separator import Separator  # noqa: F401

            return True
        except ImportError:
            return False

    def _run_separator(self, audio_path: Path, output_dir: Path) -> list[str]:
        """Run audio-separator on the input file.

        Args:
            audio_path: Path to input audio file
            output_dir: Directory for output stems

        Returns:
            List of output filenames
        """
        from audio_separator.separator import Separator

        # Ensure model directory exists
        self.settings.model_dir.mkdir(parents=True, exist_ok=True)

        separator = Separator(
            output_dir=str(output_dir),
            output_format="WAV",
            model_file_dir=str(self.settings.model_dir),
        )
        separator.load_model(self.settings.separation_model)

        return separator.separate(str(audio_path))

    def _find_stems(self, stems_dir: Path) -> dict[str, Path]:
        """Map separated files to ``vocals`` / ``accompaniment``.

        Raises:
            RuntimeError: No recognizable stem files were written.
        """
        stems: dict[str, Path] = {}

        for file_path in sorted(stems_dir.glob("*.wav")):
            match = self.STEM_PATTERN.search(file_path.name)
            if not match:
                continue
            stem_name = match.group(1).lower()
            if stem_name in self.VOCAL_NAMES:
                stems["vocals"] = file_path
            elif stem_name in self.ACCOMPANIMENT_NAMES:
                stems.setdefault("accompaniment", file_path)

        if not stems:
            found_files = list(stems_dir.glob("*"))
            raise RuntimeError(
                f"No stem files found in {stems_dir}. "
                f"Files present: {[f.name for f in found_files]}"
            )

        return stems
