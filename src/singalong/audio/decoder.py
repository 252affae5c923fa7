"""WAV decoding into mono float sample buffers."""

import io
import logging
import struct
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from singalong.config import Settings
from singalong.errors import ResourceLimitError, UnsupportedFormatError
from singalong.models.analysis import SampleBuffer

logger = logging.getLogger(__name__)

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_IEEE_FLOAT = 0x0003
WAVE_FORMAT_EXTENSIBLE = 0xFFFE

# Bit depths libsndfile decodes for each format tag
SUPPORTED_BIT_DEPTHS = {
    WAVE_FORMAT_PCM: {8, 16, 24, 32},
    WAVE_FORMAT_IEEE_FLOAT: {32, 64},
}

# Some streaming writers leave the data size unset
UNKNOWN_CHUNK_SIZE = 0xFFFFFFFF


@dataclass(frozen=True)
class WavFormat:
    """Fields of the ``fmt`` chunk we care about."""

    format_tag: int
    channels: int
    sample_rate: int
    block_align: int
    bits_per_sample: int
    frames: int


class SampleDecoder:
    """Decodes a RIFF/WAVE byte buffer into a mono ``SampleBuffer``.

    The RIFF chunk layout is validated here so malformed and truncated
    buffers fail with ``UnsupportedFormatError`` before any sample data is
    decoded. Sample conversion itself is done by soundfile. Multi-channel
    input is reduced to its first channel.
    """

    def __init__(self, max_decoded_bytes: int | None = None) -> None:
        """Initialize the decoder.

        Args:
            max_decoded_bytes: Ceiling on the float32 size of the decoded
                audio (all channels). ``None`` disables the check.
        """
        self.max_decoded_bytes = max_decoded_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "SampleDecoder":
        return cls(max_decoded_bytes=settings.max_decoded_bytes)

    def decode(self, data: bytes) -> SampleBuffer:
        """Decode a WAV buffer.

        Raises:
            UnsupportedFormatError: Header is malformed, the encoding is not
                supported, or the buffer is truncated or empty.
            ResourceLimitError: Decoded size would exceed the ceiling.
        """
        fmt = self.read_format(data)

        decoded_bytes = fmt.frames * fmt.channels * np.dtype(np.float32).itemsize
        if self.max_decoded_bytes is not None and decoded_bytes > self.max_decoded_bytes:
            raise ResourceLimitError(decoded_bytes, self.max_decoded_bytes)

        try:
            frames, sample_rate = sf.read(
                io.BytesIO(data), dtype="float32", always_2d=True
            )
        except sf.SoundFileError as e:
            raise UnsupportedFormatError(f"Could not decode WAV data: {e}") from e

        if frames.shape[0] == 0:
            raise UnsupportedFormatError("WAV data chunk contains no frames")

        # First channel only, no mixing
        mono = np.ascontiguousarray(frames[:, 0])
        np.clip(mono, -1.0, 1.0, out=mono)

        logger.debug(
            "Decoded %d frames at %d Hz (%d channel(s), %d-bit)",
            mono.shape[0],
            sample_rate,
            fmt.channels,
            fmt.bits_per_sample,
        )
        return SampleBuffer(
            samples=mono,
            sample_rate=int(sample_rate),
            channel_count=fmt.channels,
        )

    def read_format(self, data: bytes) -> WavFormat:
        """Walk the RIFF chunks and validate the ``fmt`` and ``data`` chunks."""
        if len(data) < 12 or data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
            raise UnsupportedFormatError("Not a RIFF/WAVE buffer")

        fmt_chunk: bytes | None = None
        data_size: int | None = None
        offset = 12

        while offset < len(data):
            if offset + 8 > len(data):
                raise UnsupportedFormatError("Truncated chunk header")
            chunk_id = data[offset:offset + 4]
            (chunk_size,) = struct.unpack_from("<I", data, offset + 4)
            body_start = offset + 8
            remaining = len(data) - body_start

            if chunk_id == b"data":
                if chunk_size == UNKNOWN_CHUNK_SIZE:
                    chunk_size = remaining
                elif chunk_size > remaining:
                    raise UnsupportedFormatError(
                        f"Truncated data chunk: header declares {chunk_size} bytes, "
                        f"{remaining} present"
                    )
                data_size = chunk_size
                # Chunks after the samples are irrelevant
                break

            if chunk_size > remaining:
                raise UnsupportedFormatError(
                    f"Truncated {chunk_id!r} chunk: declares {chunk_size} bytes, "
                    f"{remaining} present"
                )
            if chunk_id == b"fmt ":
                fmt_chunk = data[body_start:body_start + chunk_size]

            # Chunks are word aligned
            offset = body_start + chunk_size + (chunk_size & 1)

        if fmt_chunk is None:
            raise UnsupportedFormatError("Missing fmt chunk")
        if data_size is None:
            raise UnsupportedFormatError("Missing data chunk")

        return self._parse_fmt(fmt_chunk, data_size)

    def _parse_fmt(self, chunk: bytes, data_size: int) -> WavFormat:
        if len(chunk) < 16:
            raise UnsupportedFormatError(f"fmt chunk too short ({len(chunk)} bytes)")

        format_tag, channels, sample_rate, _byte_rate, block_align, bits = (
            struct.unpack_from("<HHIIHH", chunk, 0)
        )

        if format_tag == WAVE_FORMAT_EXTENSIBLE:
            if len(chunk) < 26:
                raise UnsupportedFormatError("Extensible fmt chunk too short")
            # First two bytes of the sub-format GUID hold the real tag
            (format_tag,) = struct.unpack_from("<H", chunk, 24)

        supported = SUPPORTED_BIT_DEPTHS.get(format_tag)
        if supported is None:
            raise UnsupportedFormatError(f"Unsupported WAV format tag 0x{format_tag:04x}")
        if bits not in supported:
            raise UnsupportedFormatError(
                f"Unsupported bit depth {bits} (supported: {sorted(supported)})"
            )
        if channels == 0 or sample_rate == 0:
            raise UnsupportedFormatError(
                f"Invalid format: {channels} channel(s) at {sample_rate} Hz"
            )
        if block_align != channels * (bits // 8):
            raise UnsupportedFormatError(
                f"Inconsistent block alignment {block_align} for "
                f"{channels} channel(s) of {bits}-bit samples"
            )
        if data_size == 0:
            raise UnsupportedFormatError("WAV data chunk is empty")
        if data_size % block_align:
            raise UnsupportedFormatError("Truncated data chunk: partial final frame")

        return WavFormat(
            format_tag=format_tag,
            channels=channels,
            sample_rate=sample_rate,
            block_align=block_align,
            bits_per_sample=bits,
            frames=data_size // block_align,
        )
