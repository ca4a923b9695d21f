"""
Events pushed by the media/session layer over /ws/voice (one JSON object per message).

- join:       {"type": "join", "ssrc": 7, "user_id": "alice"}
- tick:       {"type": "tick", "speaking": {"7": {"samples": [...]}}, "silent": [3]}
              a chunk is either {"samples": [int16, ...]} or {"pcm": "<base64 s16le>"};
              null means decoding is disabled for that source.
- disconnect: {"type": "disconnect", "user_id": "alice"}
- ping:       {"type": "ping"} -> server answers with a pong carrying stats.
"""
from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Literal, Union

import numpy as np
from pydantic import BaseModel, BeforeValidator, Field, TypeAdapter, field_validator, model_validator

from voice_uploader.audio.models import TickBatch

# SSRCs are 32-bit unsigned on the wire
SSRC = Annotated[int, Field(ge=0, le=0xFFFFFFFF)]
Int16 = Annotated[int, Field(ge=-32768, le=32767)]


def _as_user_id(value: Any) -> Any:
    """User ids may arrive as numbers (snowflakes); they are always handled as strings."""
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return str(value)
    return value


UserId = Annotated[str, BeforeValidator(_as_user_id)]


class AudioChunk(BaseModel):
    """Newly decoded samples for one source (interleaved stereo int16)."""

    samples: list[Int16] | None = Field(None, description="Samples as JSON integers")
    pcm: str | None = Field(None, description="Samples as base64 signed 16-bit little-endian PCM")

    @model_validator(mode="after")
    def check_exactly_one(self) -> "AudioChunk":
        if (self.samples is None) == (self.pcm is None):
            raise ValueError("chunk needs exactly one of 'samples' or 'pcm'")
        return self

    @field_validator("pcm")
    @classmethod
    def check_pcm(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as err:
            raise ValueError(f"pcm is not valid base64: {err}") from err
        if len(raw) % 2 != 0:
            raise ValueError(f"pcm length {len(raw)} is not a multiple of 2 (int16)")
        return value

    def to_array(self) -> np.ndarray:
        if self.samples is not None:
            return np.asarray(self.samples, dtype=np.int16)
        raw = base64.b64decode(self.pcm or "")
        return np.frombuffer(raw, dtype="<i2").astype(np.int16)


class JoinEvent(BaseModel):
    type: Literal["join"]
    ssrc: SSRC
    user_id: UserId | None = None


class TickEvent(BaseModel):
    type: Literal["tick"]
    speaking: dict[SSRC, AudioChunk | None] = Field(default_factory=dict)
    silent: list[SSRC] = Field(default_factory=list)

    def to_batch(self) -> TickBatch:
        return TickBatch(
            speaking={
                ssrc: (chunk.to_array() if chunk is not None else None)
                for ssrc, chunk in self.speaking.items()
            },
            silent=frozenset(self.silent),
        )


class DisconnectEvent(BaseModel):
    type: Literal["disconnect"]
    user_id: UserId


class PingEvent(BaseModel):
    type: Literal["ping"]


BridgeEvent = Annotated[
    Union[JoinEvent, TickEvent, DisconnectEvent, PingEvent],
    Field(discriminator="type"),
]

bridge_event_adapter: TypeAdapter[BridgeEvent] = TypeAdapter(BridgeEvent)
