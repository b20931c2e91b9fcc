"""Playback helpers: a sample ring buffer, software volume and sample packing."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Sequence

from .samples import MAX_24BIT, MIN_24BIT, sample_to_24bit, sample_to_int16

RING_BUFFER_MS = 80


class RingBuffer:
    """Thread-safe bounded FIFO of samples."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must not be negative: {capacity}")
        self.capacity = capacity
        self._items: deque[int] = deque()
        self._lock = threading.Lock()

    def write(self, samples: Iterable[int]) -> int:
        """Append as many samples as fit; return how many were stored."""
        written = 0
        with self._lock:
            for sample in samples:
                if len(self._items) >= self.capacity:
                    break
                self._items.append(sample)
                written += 1
        return written

    def read(self, count: int) -> list[int]:
        """Take up to ``count`` samples, padding an underrun with silence."""
        with self._lock:
            taken = min(count, len(self._items))
            out = [self._items.popleft() for _ in range(taken)]
        out.extend([0] * (count - taken))
        return out

    def available(self) -> int:
        """Number of samples waiting to be read."""
        with self._lock:
            return len(self._items)

    def free(self) -> int:
        """Number of free slots."""
        with self._lock:
            return self.capacity - len(self._items)


def ring_capacity(sample_rate: int, channels: int) -> int:
    """Ring-buffer size in samples for the playback buffer duration."""
    return (sample_rate * channels * RING_BUFFER_MS) // 1000


def clamp_volume(volume: int) -> int:
    """Clamp a volume to 0-100."""
    return max(0, min(100, volume))


def volume_multiplier(volume: int, muted: bool) -> float:
    """Gain factor for a 0-100 volume, zero when muted."""
    if muted:
        return 0.0
    return volume / 100.0


def apply_volume(samples: Iterable[int], volume: int, muted: bool) -> list[int]:
    """Scale samples by the volume, clipping to the 24-bit range."""
    gain = volume_multiplier(volume, muted)
    return [max(MIN_24BIT, min(MAX_24BIT, int(sample * gain))) for sample in samples]


def _pack_32(sample: int) -> bytes:
    return ((sample << 8) & 0xFFFFFFFF).to_bytes(4, "little")


def _pack_16(sample: int) -> bytes:
    return (sample_to_int16(sample) & 0xFFFF).to_bytes(2, "little")


_PACKERS = {16: _pack_16, 24: sample_to_24bit, 32: _pack_32}


def pack_samples(samples: Sequence[int], bit_depth: int) -> bytes:
    """Pack samples as little-endian device frames of the given depth.

    32-bit output places the 24-bit value in the upper bytes of the word.
    """
    packer = _PACKERS.get(bit_depth)
    if packer is None:
        raise ValueError(
            f"unsupported bit depth: {bit_depth} (supported: 16, 24, 32)"
        )
    return b"".join(packer(sample) for sample in samples)