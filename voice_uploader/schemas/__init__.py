"""Pydantic schemas for messages exchanged with the media bridge."""
from voice_uploader.schemas.events import (
    AudioChunk,
    BridgeEvent,
    DisconnectEvent,
    JoinEvent,
    PingEvent,
    TickEvent,
    bridge_event_adapter,
)

__all__ = [
    "AudioChunk",
    "BridgeEvent",
    "DisconnectEvent",
    "JoinEvent",
    "PingEvent",
    "TickEvent",
    "bridge_event_adapter",
]
