"""App-level tests: lifespan wiring, /health, and the /ws/voice bridge protocol."""
from __future__ import annotations

import base64

import numpy as np
import pytest
from fastapi.testclient import TestClient

from conftest import UploadRecorder, read_wav
from voice_uploader.config import Settings
from voice_uploader.main import create_app


@pytest.fixture()
def client(settings: Settings, recorder: UploadRecorder):
    app = create_app(settings, transport=recorder.transport, configure_logs=False)
    with TestClient(app) as test_client:
        yield test_client


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "active_speakers": 0,
        "inflight_uploads": 0,
        "uploaded": 0,
        "failed": 0,
    }


def test_session_message_on_connect(client: TestClient) -> None:
    with client.websocket_connect("/ws/voice") as ws:
        hello = ws.receive_json()
    assert hello["type"] == "session"
    assert hello["session_id"]


def test_ping_reports_stats(client: TestClient) -> None:
    with client.websocket_connect("/ws/voice") as ws:
        ws.receive_json()
        ws.send_json({"type": "join", "ssrc": 7, "user_id": "alice"})
        ws.send_json({"type": "tick", "speaking": {"7": {"samples": [1, 2]}}, "silent": []})
        ws.send_json({"type": "ping"})
        pong = ws.receive_json()

    assert pong["type"] == "pong"
    assert pong["ticks"] == 1
    assert pong["active_speakers"] == 1


def test_malformed_event_gets_error_and_session_continues(client: TestClient) -> None:
    with client.websocket_connect("/ws/voice") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        error = ws.receive_json()
        ws.send_json({"type": "ping"})
        pong = ws.receive_json()

    assert error["type"] == "error"
    assert pong["type"] == "pong"


def test_speaking_turn_is_uploaded_end_to_end(settings: Settings, recorder: UploadRecorder) -> None:
    app = create_app(settings, transport=recorder.transport, configure_logs=False)
    pcm = np.array([50, -50], dtype="<i2").tobytes()
    with TestClient(app) as client:
        with client.websocket_connect("/ws/voice") as ws:
            ws.receive_json()
            ws.send_json({"type": "join", "ssrc": 7, "user_id": "alice"})
            ws.send_json({"type": "join", "ssrc": 3, "user_id": "bob"})
            ws.send_json({"type": "tick", "speaking": {"7": {"samples": [100, -100]}}})
            ws.send_json(
                {"type": "tick", "speaking": {"7": {"pcm": base64.b64encode(pcm).decode("ascii")}}}
            )
            ws.send_json({"type": "tick", "speaking": {}, "silent": [7, 3]})
            ws.send_json({"type": "ping"})
            pong = ws.receive_json()
        assert pong["active_speakers"] == 0
    # leaving the TestClient runs shutdown, which drains in-flight uploads

    [request] = recorder.requests
    assert request.headers["User-Id"] == "alice"
    assert request.headers["Authorization"] == f"Bearer {settings.ENDPOINT_TOKEN.get_secret_value()}"
    assert request.headers["Content-Type"] == "audio/wav"
    _, samples = read_wav(request.content)
    np.testing.assert_array_equal(samples, [100, -100, 50, -50])


def test_startup_fails_without_configuration(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ENDPOINT", raising=False)
    monkeypatch.delenv("ENDPOINT_TOKEN", raising=False)
    app = create_app(configure_logs=False)
    with pytest.raises(Exception):
        with TestClient(app):
            pass
