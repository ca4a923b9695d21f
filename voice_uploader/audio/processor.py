"""
TickProcessor: silence detection and flush for one tick batch.

Per tick, in delivery order:
1. Append each speaking SSRC's chunk to its registry entry. A chunk for an SSRC
   with no entry is dropped and logged (warning on the first miss, debug after,
   until that SSRC joins again).
2. For each SSRC reported silent: remove it if it holds audio; if it holds none,
   drop the entry (when discard_empty). A speaker with no new audio this tick but
   not reported silent is left alone.
3. Hand every removed turn to submit(); submit must not block.

Runs synchronously; it never awaits uploads.
"""
from __future__ import annotations

import logging
from typing import Callable

from voice_uploader.audio.models import DispatchJob, TickBatch
from voice_uploader.audio.registry import SpeakerRegistry

logger = logging.getLogger(__name__)


class TickProcessor:
    def __init__(
        self,
        registry: SpeakerRegistry,
        submit: Callable[[DispatchJob], None],
        discard_empty: bool = True,
    ) -> None:
        self._registry = registry
        self._submit = submit
        self._discard_empty = discard_empty
        # SSRCs already warned about (registry miss); reset on join
        self._missed: set[int] = set()

    def clear_miss(self, ssrc: int) -> None:
        """Forget an earlier registry miss for ssrc (called when it joins)."""
        self._missed.discard(ssrc)

    def process(self, batch: TickBatch) -> list[DispatchJob]:
        """Apply one tick. Returns the jobs handed to submit()."""
        for ssrc, chunk in batch.speaking.items():
            logger.debug("Tick: got ssrc %d", ssrc)
            if chunk is None:
                logger.error("Decode disabled for ssrc %d; no audio to buffer", ssrc)
                continue
            if not self._registry.append(ssrc, chunk):
                self._log_miss(ssrc, len(chunk))

        flushed: list[DispatchJob] = []
        for ssrc in batch.silent:
            job = self._registry.remove_if_nonempty(ssrc)
            if job is None:
                if self._discard_empty and self._registry.discard_if_empty(ssrc):
                    logger.debug("SSRC %d silent with no audio; entry dropped", ssrc)
                continue
            logger.info(
                "Speaking turn ended for user %s (ssrc %d): %d samples",
                job.user_id,
                ssrc,
                job.sample_count,
            )
            flushed.append(job)

        for job in flushed:
            self._submit(job)
        return flushed

    def _log_miss(self, ssrc: int, n_samples: int) -> None:
        if ssrc in self._missed:
            logger.debug("No speaker entry for ssrc %d; dropped %d samples", ssrc, n_samples)
            return
        self._missed.add(ssrc)
        logger.warning(
            "Decoded audio for ssrc %d but no speaker entry (join not seen); dropping its audio",
            ssrc,
        )
