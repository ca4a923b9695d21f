"""
FastAPI app: WebSocket endpoint for the media bridge, health check.

The media/session layer connects to /ws/voice and pushes join/tick/disconnect
events as JSON. Finished speaking turns are uploaded as WAV to ENDPOINT.

Run with: python -m voice_uploader  (or uvicorn voice_uploader.main:app)
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from voice_uploader.bridge import VoiceBridge
from voice_uploader.config import Settings, get_settings
from voice_uploader.logging_config import configure_logging
from voice_uploader.receiver import VoiceReceiver
from voice_uploader.upload import Dispatcher, Uploader, create_http_client

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """
    Build the app. Settings are read from the environment at startup when not given;
    missing or malformed settings fail startup. transport overrides the HTTP transport
    used for uploads (tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or get_settings()
        if configure_logs:
            configure_logging(app_settings)
        client = create_http_client(app_settings, transport=transport)
        uploader = Uploader(client, app_settings)
        dispatcher = Dispatcher(uploader, max_concurrent=app_settings.MAX_CONCURRENT_UPLOADS)
        app.state.settings = app_settings
        app.state.receiver = VoiceReceiver.from_settings(app_settings, dispatcher)
        logger.info(
            "Uploading speaking turns to %s (%s, identity header %s)",
            app_settings.ENDPOINT,
            app_settings.UPLOAD_METHOD,
            app_settings.IDENTITY_HEADER,
        )
        try:
            yield
        finally:
            await dispatcher.close(timeout=app_settings.SHUTDOWN_DRAIN_SECONDS)
            await client.aclose()
            logger.info(
                "Shutdown: %d turn(s) uploaded, %d failed",
                dispatcher.uploaded,
                dispatcher.failed,
            )

    app = FastAPI(
        title="Voice turn uploader",
        description="Buffers each speaker's turn from a live voice channel and uploads it as WAV",
        lifespan=lifespan,
    )

    @app.websocket("/ws/voice")
    async def websocket_voice(websocket: WebSocket) -> None:
        """Media layer pushes join / tick / disconnect events; see schemas/events.py."""
        await websocket.accept()
        bridge = VoiceBridge(websocket, websocket.app.state.receiver)
        try:
            await bridge.run()
        except WebSocketDisconnect:
            logger.info("Media bridge connection dropped")

    @app.get("/health")
    async def health() -> dict:
        receiver: VoiceReceiver = app.state.receiver
        return {
            "status": "ok",
            "active_speakers": len(receiver.registry),
            "inflight_uploads": receiver.dispatcher.inflight,
            "uploaded": receiver.dispatcher.uploaded,
            "failed": receiver.dispatcher.failed,
        }

    return app


app = create_app()
