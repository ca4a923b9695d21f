"""
VoiceBridge: one WebSocket session from the media/session layer.

The media layer owns the voice connection, jitter buffering and decoding. It pushes
join / tick / disconnect events (see schemas/events.py) and this session forwards them
to the VoiceReceiver in arrival order. Ticks are applied synchronously; uploads run as
detached tasks, so a slow endpoint never holds up the receive loop.

A malformed message is answered with {"type": "error"} and the session continues.
A dropped connection is logged; reconnecting is the media layer's job.
"""
from __future__ import annotations

import json
import logging
import uuid

from fastapi import WebSocket
from pydantic import ValidationError

from voice_uploader.receiver import VoiceReceiver
from voice_uploader.schemas.events import (
    DisconnectEvent,
    JoinEvent,
    PingEvent,
    TickEvent,
    bridge_event_adapter,
)

logger = logging.getLogger(__name__)


class VoiceBridge:
    def __init__(self, websocket: WebSocket, receiver: VoiceReceiver) -> None:
        self._ws = websocket
        self._receiver = receiver
        self._session_id = uuid.uuid4().hex[:12]
        self._closed = False
        self._ticks = 0

    async def _send(self, payload: dict) -> None:
        if self._closed:
            return
        try:
            await self._ws.send_text(json.dumps(payload))
        except Exception as e:
            logger.info("Bridge %s: send failed, closing (%s)", self._session_id, e)
            self._closed = True

    def stats(self) -> dict:
        dispatcher = self._receiver.dispatcher
        return {
            "session_id": self._session_id,
            "ticks": self._ticks,
            "active_speakers": len(self._receiver.registry),
            "inflight_uploads": dispatcher.inflight,
            "uploaded": dispatcher.uploaded,
            "failed": dispatcher.failed,
        }

    async def handle_message(self, data: str | bytes) -> None:
        """Decode one event and apply it."""
        try:
            event = bridge_event_adapter.validate_json(data)
        except ValidationError as e:
            logger.warning(
                "Bridge %s: dropped malformed event (%d error(s)): %s",
                self._session_id,
                e.error_count(),
                e.errors(include_url=False, include_input=False)[:3],
            )
            await self._send({"type": "error", "detail": "invalid event", "errors": e.error_count()})
            return

        if isinstance(event, TickEvent):
            self._ticks += 1
            self._receiver.on_tick(event.to_batch())
        elif isinstance(event, JoinEvent):
            self._receiver.on_speaker_join(event.ssrc, event.user_id)
        elif isinstance(event, DisconnectEvent):
            self._receiver.on_client_disconnect(event.user_id)
        elif isinstance(event, PingEvent):
            await self._send({"type": "pong", **self.stats()})

    async def run(self) -> None:
        """Receive loop; returns when the peer disconnects."""
        logger.info("Bridge %s: media layer connected", self._session_id)
        await self._send({"type": "session", "session_id": self._session_id})
        try:
            while not self._closed:
                msg = await self._ws.receive()
                if msg.get("type") == "websocket.disconnect":
                    break
                data = msg.get("text")
                if data is None:
                    data = msg.get("bytes")
                if data is None:
                    continue
                await self.handle_message(data)
        finally:
            self._closed = True
            logger.info(
                "Bridge %s: media layer disconnected after %d tick(s); %d speaker(s) still buffered",
                self._session_id,
                self._ticks,
                len(self._receiver.registry),
            )
