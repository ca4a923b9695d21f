"""
SpeakerRegistry: SSRC -> in-progress speaking turn (sample buffer + user id).

The registry is the only state shared between the join handler and the tick
processor. Entries are spread over a fixed number of shards keyed by SSRC, each
with its own lock, so appends for different speakers do not contend on one
lock. Every operation holds exactly one shard lock for its whole read-modify-write,
which makes append and remove atomic per SSRC: a removal can never interleave with
an append for the same SSRC, and a buffer is handed out at most once.

Safe to call from any thread or task; callers need no locking of their own.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np

from voice_uploader.audio.models import DispatchJob
from voice_uploader.audio.sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)

DEFAULT_SHARDS = 16


@dataclass
class SpeakerEntry:
    """One active speaking turn. user_id is fixed at creation."""

    user_id: str
    samples: SampleBuffer


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: dict[int, SpeakerEntry] = {}


class SpeakerRegistry:
    """Concurrent mapping of SSRC to SpeakerEntry with per-key atomic operations."""

    def __init__(self, buffer_capacity: int = 0, shards: int = DEFAULT_SHARDS) -> None:
        """
        buffer_capacity: samples pre-allocated for each new entry.
        shards: number of independently locked partitions (>= 1).
        """
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._buffer_capacity = buffer_capacity
        self._shards = tuple(_Shard() for _ in range(shards))

    def _shard(self, ssrc: int) -> _Shard:
        return self._shards[ssrc % len(self._shards)]

    def insert(self, ssrc: int, user_id: str) -> None:
        """Start a fresh turn for ssrc. Replaces any stale entry (last writer wins)."""
        entry = SpeakerEntry(user_id=user_id, samples=SampleBuffer(self._buffer_capacity))
        shard = self._shard(ssrc)
        with shard.lock:
            previous = shard.entries.get(ssrc)
            shard.entries[ssrc] = entry
        if previous is not None and len(previous.samples):
            logger.warning(
                "SSRC %d re-registered for user %s; dropped %d unflushed samples of user %s",
                ssrc,
                user_id,
                len(previous.samples),
                previous.user_id,
            )

    def append(self, ssrc: int, samples: np.ndarray) -> bool:
        """Append samples to ssrc's buffer. Returns False (and creates nothing) when ssrc has no entry."""
        shard = self._shard(ssrc)
        with shard.lock:
            entry = shard.entries.get(ssrc)
            if entry is None:
                return False
            entry.samples.extend(samples)
            return True

    def remove_if_nonempty(self, ssrc: int) -> DispatchJob | None:
        """Remove ssrc and return its turn as a DispatchJob, or None if absent or empty."""
        shard = self._shard(ssrc)
        with shard.lock:
            entry = shard.entries.get(ssrc)
            if entry is None or len(entry.samples) == 0:
                return None
            del shard.entries[ssrc]
        return DispatchJob(ssrc=ssrc, user_id=entry.user_id, samples=entry.samples.to_array())

    def discard_if_empty(self, ssrc: int) -> bool:
        """Drop ssrc's entry only if it holds no samples. Returns True if dropped."""
        shard = self._shard(ssrc)
        with shard.lock:
            entry = shard.entries.get(ssrc)
            if entry is None or len(entry.samples) != 0:
                return False
            del shard.entries[ssrc]
            return True

    def remove(self, ssrc: int) -> DispatchJob | None:
        """Remove ssrc unconditionally. Returns its turn as a DispatchJob (possibly empty) or None if absent."""
        shard = self._shard(ssrc)
        with shard.lock:
            entry = shard.entries.pop(ssrc, None)
        if entry is None:
            return None
        return DispatchJob(ssrc=ssrc, user_id=entry.user_id, samples=entry.samples.to_array())

    def source_ids_for(self, user_id: str) -> list[int]:
        """SSRCs currently held by user_id (snapshot)."""
        found: list[int] = []
        for shard in self._shards:
            with shard.lock:
                found.extend(ssrc for ssrc, entry in shard.entries.items() if entry.user_id == user_id)
        return found

    def buffered_samples(self, ssrc: int) -> np.ndarray | None:
        """Copy of ssrc's buffered samples, or None if absent. For inspection only."""
        shard = self._shard(ssrc)
        with shard.lock:
            entry = shard.entries.get(ssrc)
            if entry is None:
                return None
            return entry.samples.to_array()

    def __contains__(self, ssrc: object) -> bool:
        if not isinstance(ssrc, int):
            return False
        shard = self._shard(ssrc)
        with shard.lock:
            return ssrc in shard.entries

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total
