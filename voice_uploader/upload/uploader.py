"""
Uploader: sends one encoded speaking turn to the configured HTTP endpoint.

One request per turn, no retry. Failures (non-2xx status, transport error) are
logged with the user id and cause and reported as False; they never raise, so a
failed upload cannot disturb other jobs or the tick loop.
"""
from __future__ import annotations

import logging

import httpx

from voice_uploader.audio.encoder import WAV_CONTENT_TYPE
from voice_uploader.config import Settings

logger = logging.getLogger(__name__)


def create_http_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Shared client (connection pool) for all uploads; closed at shutdown."""
    return httpx.AsyncClient(timeout=settings.UPLOAD_TIMEOUT_SECONDS, transport=transport)


class Uploader:
    """Issues authorized upload requests on a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._endpoint = settings.ENDPOINT
        self._method = settings.UPLOAD_METHOD
        self._identity_header = settings.IDENTITY_HEADER
        self._authorization = f"Bearer {settings.ENDPOINT_TOKEN.get_secret_value()}"

    def _headers(self, user_id: str) -> dict[str, str]:
        return {
            self._identity_header: str(user_id),
            "Authorization": self._authorization,
            "Content-Type": WAV_CONTENT_TYPE,
        }

    async def upload(self, user_id: str, payload: bytes, ssrc: int | None = None) -> bool:
        """Send payload for user_id. Returns True on any 2xx response."""
        try:
            resp = await self._client.request(
                self._method,
                self._endpoint,
                content=payload,
                headers=self._headers(user_id),
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Upload rejected for user %s (ssrc %s): HTTP %d from %s",
                user_id,
                ssrc,
                e.response.status_code,
                self._endpoint,
                extra={"user_id": user_id, "ssrc": ssrc, "status_code": e.response.status_code},
            )
            return False
        except httpx.HTTPError as e:
            logger.error(
                "Upload failed for user %s (ssrc %s): %s: %s",
                user_id,
                ssrc,
                type(e).__name__,
                e,
                extra={"user_id": user_id, "ssrc": ssrc},
            )
            return False
        logger.info(
            "Uploaded %d bytes for user %s (ssrc %s): HTTP %d",
            len(payload),
            user_id,
            ssrc,
            resp.status_code,
            extra={"user_id": user_id, "ssrc": ssrc, "status_code": resp.status_code, "bytes": len(payload)},
        )
        return True
