"""
Value types passed between the media bridge, the tick processor and the dispatcher.

- TickBatch: one time window of decoded audio per speaking SSRC plus the SSRCs
  reported silent in that window. Consumed once, never retained.
- DispatchJob: one finished speaking turn, detached from the registry. Owned by
  the dispatch task that encodes and uploads it.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class TickBatch:
    """
    speaking: ssrc -> int16 samples decoded this window. A value of None means the
    media layer has decoding disabled for that source. SSRCs with no new audio
    may be absent.
    silent: SSRCs reported silent this window.
    """

    speaking: dict[int, np.ndarray | None] = field(default_factory=dict)
    silent: frozenset[int] = frozenset()


@dataclass(eq=False)
class DispatchJob:
    """Complete audio for one speaking turn. samples is a private copy (int16, interleaved stereo)."""

    ssrc: int
    user_id: str
    samples: np.ndarray

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])
