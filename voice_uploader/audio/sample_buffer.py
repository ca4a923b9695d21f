"""
SampleBuffer: growable int16 buffer for one speaking turn.

- Pre-allocated to a capacity that covers a typical burst of speech
  (e.g. 10s of stereo 44.1kHz = 882,000 samples) so appends rarely reallocate.
- Append-only; samples keep the order in which chunks were appended.
- Grows by doubling when a chunk does not fit.
- Not thread-safe on its own; the registry guards it with the entry's shard lock.
"""
from __future__ import annotations

import numpy as np

SAMPLE_DTYPE = np.int16


def samples_for_seconds(seconds: float, sample_rate: int, channels: int) -> int:
    """Number of interleaved samples in `seconds` of audio."""
    return max(0, int(seconds * sample_rate * channels))


class SampleBuffer:
    """Contiguous int16 storage with amortized O(1) append."""

    def __init__(self, capacity: int = 0) -> None:
        self._data = np.empty(max(0, capacity), dtype=SAMPLE_DTYPE)
        self._length = 0

    def __len__(self) -> int:
        return self._length

    @property
    def capacity(self) -> int:
        return int(self._data.shape[0])

    def extend(self, samples: np.ndarray) -> None:
        """Append samples at the end. Values are cast to int16."""
        chunk = np.asarray(samples, dtype=SAMPLE_DTYPE).reshape(-1)
        n = chunk.shape[0]
        if n == 0:
            return
        needed = self._length + n
        if needed > self.capacity:
            self._grow(needed)
        self._data[self._length : needed] = chunk
        self._length = needed

    def _grow(self, needed: int) -> None:
        new_capacity = max(needed, self.capacity * 2)
        grown = np.empty(new_capacity, dtype=SAMPLE_DTYPE)
        grown[: self._length] = self._data[: self._length]
        self._data = grown

    def to_array(self) -> np.ndarray:
        """Copy of the filled part; independent of this buffer afterwards."""
        return self._data[: self._length].copy()
