"""Shared pytest fixtures.

Uploads go through httpx.MockTransport so tests need no network; every request
the service makes is recorded on an UploadRecorder.
"""
from __future__ import annotations

import asyncio
import io
import wave

import httpx
import numpy as np
import pytest

from voice_uploader.config import Settings

ENDPOINT = "https://uploads.example.test/voice"
TOKEN = "test-endpoint-token"


class UploadRecorder:
    """
    Fake upload endpoint. Responds 200 unless status_for[user_id] says otherwise;
    a status of None simulates a transport failure. Users in hold_for block until
    release(user_id) is called.
    """

    def __init__(self, status_for: dict[str, int | None] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.status_for = status_for or {}
        self.hold_for: dict[str, asyncio.Event] = {}

    def hold(self, user_id: str) -> None:
        self.hold_for[user_id] = asyncio.Event()

    def release(self, user_id: str) -> None:
        self.hold_for[user_id].set()

    async def _handler(self, request: httpx.Request) -> httpx.Response:
        user_id = request.headers.get("User-Id", "")
        if user_id in self.hold_for:
            await self.hold_for[user_id].wait()
        self.requests.append(request)
        status = self.status_for.get(user_id, 200)
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handler)

    def for_user(self, user_id: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.headers.get("User-Id") == user_id]


def read_wav(payload: bytes) -> tuple:
    """Parse a WAV payload into (params, int16 samples)."""
    with wave.open(io.BytesIO(payload), "rb") as wav:
        params = wav.getparams()
        frames = wav.readframes(params.nframes)
    return params, np.frombuffer(frames, dtype="<i2").astype(np.int16)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        ENDPOINT=ENDPOINT,
        ENDPOINT_TOKEN=TOKEN,
        BUFFER_PREALLOC_SECONDS=0.01,
        REGISTRY_SHARDS=4,
        SHUTDOWN_DRAIN_SECONDS=5.0,
        _env_file=None,
    )


@pytest.fixture()
def recorder() -> UploadRecorder:
    return UploadRecorder()
