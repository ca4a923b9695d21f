"""
VoiceReceiver: entry point for events from the media/session layer.

- on_speaker_join: a speaking-state update carrying a user id starts a fresh
  turn (new, pre-sized buffer) for that SSRC. Updates without a user id are ignored.
- on_tick: one batch per time window; delegated to TickProcessor.
- on_client_disconnect: no buffering action by default. With flush_on_disconnect,
  the user's buffered turns are removed and, when non-empty, dispatched.
"""
from __future__ import annotations

import logging

from voice_uploader.audio.encoder import WAV_FORMAT
from voice_uploader.audio.models import DispatchJob, TickBatch
from voice_uploader.audio.processor import TickProcessor
from voice_uploader.audio.registry import SpeakerRegistry
from voice_uploader.audio.sample_buffer import samples_for_seconds
from voice_uploader.config import Settings
from voice_uploader.upload.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class VoiceReceiver:
    def __init__(
        self,
        registry: SpeakerRegistry,
        dispatcher: Dispatcher,
        discard_empty: bool = True,
        flush_on_disconnect: bool = False,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.processor = TickProcessor(registry, dispatcher.submit, discard_empty=discard_empty)
        self._flush_on_disconnect = flush_on_disconnect

    @classmethod
    def from_settings(cls, settings: Settings, dispatcher: Dispatcher) -> "VoiceReceiver":
        capacity = samples_for_seconds(
            settings.BUFFER_PREALLOC_SECONDS, WAV_FORMAT.sample_rate, WAV_FORMAT.channels
        )
        registry = SpeakerRegistry(buffer_capacity=capacity, shards=settings.REGISTRY_SHARDS)
        return cls(
            registry,
            dispatcher,
            discard_empty=settings.DISCARD_EMPTY_ON_SILENCE,
            flush_on_disconnect=settings.FLUSH_ON_DISCONNECT,
        )

    def on_speaker_join(self, ssrc: int, user_id: str | None) -> None:
        if user_id is None:
            logger.debug("Speaking update for ssrc %d without user id; ignored", ssrc)
            return
        self.registry.insert(ssrc, user_id)
        self.processor.clear_miss(ssrc)
        logger.debug("Speaker joined: ssrc %d -> user %s", ssrc, user_id)

    def on_tick(self, batch: TickBatch) -> list[DispatchJob]:
        return self.processor.process(batch)

    def on_client_disconnect(self, user_id: str) -> list[DispatchJob]:
        """Returns the jobs dispatched because of the disconnect (empty unless flush_on_disconnect)."""
        if not self._flush_on_disconnect:
            logger.debug("User %s disconnected; buffered audio (if any) left in place", user_id)
            return []
        flushed: list[DispatchJob] = []
        for ssrc in self.registry.source_ids_for(user_id):
            job = self.registry.remove(ssrc)
            if job is None or job.sample_count == 0:
                continue
            logger.info(
                "User %s disconnected mid-turn; flushing ssrc %d (%d samples)",
                user_id,
                ssrc,
                job.sample_count,
            )
            self.dispatcher.submit(job)
            flushed.append(job)
        return flushed
