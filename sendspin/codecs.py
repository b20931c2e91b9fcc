"""Audio decoders and encoders working on 24-bit range integer samples.

Decoders turn wire bytes into samples; encoders turn samples into wire bytes.
PCM is handled in 16-bit and 24-bit little-endian form. FLAC and MP3
streams cannot be decoded chunk by chunk, so those codecs raise
``CodecError``.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from types import TracebackType

from .samples import (
    StreamFormat,
    sample_from_24bit,
    sample_from_int16,
    sample_to_24bit,
    sample_to_int16,
)

_PCM_BIT_DEPTHS = (16, 24)


class CodecError(ValueError):
    """Raised when a codec cannot be created or cannot process data."""


def _check_codec(fmt: StreamFormat, expected: str, role: str) -> None:
    if fmt.codec != expected:
        raise CodecError(f"invalid codec for {role}: {fmt.codec}")


def _check_pcm_depth(fmt: StreamFormat) -> None:
    if fmt.bit_depth not in _PCM_BIT_DEPTHS:
        raise CodecError(
            f"unsupported bit depth: {fmt.bit_depth} (supported: 16, 24)"
        )


class _Closable:
    """Context-manager support for codecs; ``closed`` tracks their state."""

    closed = False

    def close(self) -> None:
        """Mark the codec closed."""
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class PCMDecoder(_Closable):
    """Decodes 16-bit or 24-bit little-endian PCM bytes."""

    def __init__(self, fmt: StreamFormat) -> None:
        _check_codec(fmt, "pcm", "PCM decoder")
        _check_pcm_depth(fmt)
        self.bit_depth = fmt.bit_depth

    def decode(self, data: bytes) -> list[int]:
        """Convert PCM bytes to samples; a trailing partial sample is ignored."""
        if self.bit_depth == 24:
            usable = len(data) - len(data) % 3
            return [
                sample_from_24bit(data[offset : offset + 3])
                for offset in range(0, usable, 3)
            ]
        usable = len(data) - len(data) % 2
        return [
            sample_from_int16(value)
            for (value,) in struct.iter_unpack("<h", data[:usable])
        ]

    def close(self) -> None:
        """Mark the decoder closed."""
        self.closed = True


class FLACDecoder(_Closable):
    """FLAC decoder; chunked streaming decode is unsupported and raises."""

    def __init__(self, fmt: StreamFormat) -> None:
        _check_codec(fmt, "flac", "FLAC decoder")
        self.format = fmt

    def decode(self, data: bytes) -> list[int]:
        """Always raises: FLAC frames cannot be decoded chunk by chunk here."""
        raise CodecError("FLAC streaming decode is unsupported")

    def close(self) -> None:
        """Mark the decoder closed."""
        self.closed = True


def new_mp3_decoder(fmt: StreamFormat):
    """Create an MP3 decoder; streaming MP3 is unsupported, so this raises."""
    _check_codec(fmt, "mp3", "MP3 decoder")
    raise CodecError("MP3 streaming decode is unsupported")


class PCMEncoder(_Closable):
    """Encodes samples to 16-bit or 24-bit little-endian PCM bytes."""

    def __init__(self, fmt: StreamFormat) -> None:
        _check_codec(fmt, "pcm", "PCM encoder")
        _check_pcm_depth(fmt)
        self.bit_depth = fmt.bit_depth

    def encode(self, samples: Iterable[int]) -> bytes:
        """Convert samples to PCM bytes."""
        if self.bit_depth == 24:
            return b"".join(sample_to_24bit(sample) for sample in samples)
        values = [sample_to_int16(sample) for sample in samples]
        return struct.pack(f"<{len(values)}h", *values)

    def close(self) -> None:
        """Mark the encoder closed."""
        self.closed = True