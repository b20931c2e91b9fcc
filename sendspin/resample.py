"""Sample-rate conversion by linear interpolation."""

from __future__ import annotations

from collections.abc import Sequence


class Resampler:
    """Converts interleaved samples between rates, carrying phase across chunks."""

    def __init__(self, input_rate: int, output_rate: int, channels: int) -> None:
        self.input_rate = input_rate
        self.output_rate = output_rate
        self.channels = channels
        self._ratio = input_rate / output_rate
        self._position = 0.0

    def resample(self, samples: Sequence[int], max_output: int | None) -> list[int]:
        """Resample interleaved input, producing at most ``max_output`` samples.

        Pass ``None`` to produce as many samples as the input allows.
        """
        if not samples:
            return []

        channels = self.channels
        input_frames = len(samples) // channels
        output_frames = None if max_output is None else max_output // channels

        output: list[int] = []
        produced = 0
        while output_frames is None or produced < output_frames:
            index = int(self._position)
            if index >= input_frames - 1:
                break
            frac = self._position - index
            base = index * channels
            current = samples[base : base + channels]
            following = samples[base + channels : base + 2 * channels]
            output.extend(
                int(a * (1.0 - frac) + b * frac) for a, b in zip(current, following)
            )
            produced += 1
            self._position += self._ratio

        self._position -= int(self._position)
        return output

    def reset(self) -> None:
        """Forget the carried interpolation phase."""
        self._position = 0.0

    def output_samples_needed(self, input_samples: int) -> int:
        """Number of output samples that ``input_samples`` will yield."""
        input_frames = input_samples // self.channels
        return int(input_frames / self._ratio) * self.channels

    def input_samples_needed(self, output_samples: int) -> int:
        """Number of input samples needed for ``output_samples``."""
        output_frames = output_samples // self.channels
        return int(output_frames * self._ratio) * self.channels