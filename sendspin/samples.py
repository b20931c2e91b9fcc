"""Core audio types and sample conversions.

Samples are carried as Python ints in the signed 24-bit range. 16-bit
material is left-justified into that range by shifting it up eight bits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

MAX_24BIT = 8_388_607  # 2**23 - 1
MIN_24BIT = -8_388_608  # -2**23


def _wrap(value: int, bits: int) -> int:
    """Wrap an integer into the signed range of the given width."""
    half = 1 << (bits - 1)
    return ((value + half) & ((1 << bits) - 1)) - half


@dataclass
class StreamFormat:
    """Describes an audio stream: codec, rate, channel count and bit depth."""

    codec: str
    sample_rate: int
    channels: int
    bit_depth: int
    codec_header: bytes = b""


@dataclass
class AudioBuffer:
    """Decoded PCM audio with its server timestamp and local play time."""

    timestamp: int
    samples: list[int] = field(default_factory=list)
    format: StreamFormat | None = None
    play_at: datetime | None = None


def sample_to_int16(sample: int) -> int:
    """Reduce a 24-bit sample to the 16-bit range."""
    return _wrap(sample >> 8, 16)


def sample_from_int16(sample: int) -> int:
    """Left-justify a 16-bit sample into the 24-bit range."""
    return _wrap(_wrap(sample, 16) << 8, 32)


def sample_to_24bit(sample: int) -> bytes:
    """Pack the low 24 bits of a sample as three little-endian bytes."""
    return (sample & 0xFFFFFF).to_bytes(3, "little")


def sample_from_24bit(data: bytes) -> int:
    """Unpack three little-endian bytes into a sign-extended sample."""
    if len(data) != 3:
        raise ValueError(f"expected 3 bytes, got {len(data)}")
    return int.from_bytes(bytes(data), "little", signed=True)