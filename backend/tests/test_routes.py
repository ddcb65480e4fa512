"""API tests through FastAPI's TestClient with the session swapped for fakes."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from main import app
from services.errors import CameraNotFound
from services.speller import get_session


@pytest.fixture
def client_for(make_session):
    def _client(results=None, classifier=None):
        session = make_session(results=results, classifier=classifier)
        app.dependency_overrides[get_session] = lambda: session
        # No context manager: the lifespan (real model load) is not run.
        return TestClient(app), session

    yield _client
    app.dependency_overrides.clear()


def test_healthz(client_for):
    client, _ = client_for(results=[])
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "model": "ready"}


def test_start_capture_reset_flow(client_for):
    client, _ = client_for(results=[("A", 0.9), ("M", 0.9), ("O", 0.9), ("R", 0.9), ("?", 0.2)])

    body = client.post("/session/start").json()
    assert body["state"] == "ready"
    assert body["actions"] == {"start": False, "capture": True, "reset": False}

    body = client.post("/session/capture", json={"letter_count": "5"}).json()
    assert body["state"] == "frozen"
    assert body["output"] == "Palabra detectada: AMOR?"
    assert body["actions"] == {"start": False, "capture": False, "reset": True}
    assert {"kind": "speech", "message": "La palabra es AMOR?"} in body["notices"]

    still = client.get("/session/still.jpg")
    assert still.status_code == 200
    assert still.headers["content-type"] == "image/jpeg"

    body = client.post("/session/reset").json()
    assert body["state"] == "ready"
    assert body["output"] == "Esperando..."
    assert client.get("/session/still.jpg").status_code == 404


def test_capture_invalid_count_is_422(client_for):
    client, session = client_for(results=[("A", 0.9)])
    client.post("/session/start")

    resp = client.post("/session/capture", json={"letter_count": "abc"})

    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["session"]["state"] == "ready"
    assert detail["session"]["notices"][0]["message"] == "Por favor, indica un número válido de letras."
    assert session.still is None


def test_capture_before_start_is_409(client_for):
    client, _ = client_for(results=[("A", 0.9)])
    resp = client.post("/session/capture", json={"letter_count": "1"})
    assert resp.status_code == 409


def test_capture_without_model_is_503(client_for):
    client, _ = client_for()
    client.post("/session/start")
    resp = client.post("/session/capture", json={"letter_count": "1"})
    assert resp.status_code == 503


def test_camera_missing_is_reported_in_view(client_for, camera):
    client, _ = client_for(results=[])
    camera.error = CameraNotFound()

    body = client.post("/session/start").json()

    assert body["state"] == "idle"
    assert body["instructions"] == "No se encontró cámara."
    assert body["actions"]["capture"] is False


def test_reset_when_not_frozen_is_409(client_for):
    client, _ = client_for(results=[])
    assert client.post("/session/reset").status_code == 409


def test_preview_streams_still_after_capture(client_for):
    client, _ = client_for(results=[("A", 0.9)])
    client.post("/session/start")
    client.post("/session/capture", json={"letter_count": "1"})

    with client.websocket_connect("/ws/preview") as ws:
        msg = ws.receive_json()

    assert msg["type"] == "preview"
    assert (msg["width"], msg["height"]) == (643, 10)


def test_preview_reports_idle_state(client_for):
    client, _ = client_for(results=[])
    with client.websocket_connect("/ws/preview") as ws:
        msg = ws.receive_json()
    assert msg == {"type": "status", "state": "idle", "ts": msg["ts"]}


@patch("routers.tts.gTTS")
def test_tts_uses_mexican_spanish(mock_gtts, client_for):
    client, _ = client_for(results=[])

    resp = client.post("/tts", json={"text": "La palabra es AMOR"})

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/mpeg"
    kwargs = mock_gtts.call_args.kwargs
    assert (kwargs["lang"], kwargs["tld"]) == ("es", "com.mx")


def test_tts_rejects_empty_text(client_for):
    client, _ = client_for(results=[])
    assert client.post("/tts", json={"text": "  "}).status_code == 400


def test_get_session_leaves_notices_for_action_response(client_for):
    client, session = client_for(results=[])
    session.notifier.speak("Hola")

    polled = client.get("/session").json()
    assert {"kind": "speech", "message": "Hola"} in polled["notices"]

    body = client.post("/session/start").json()
    assert {"kind": "speech", "message": "Hola"} in body["notices"]


def test_capture_count_wider_than_frame_is_422(client_for):
    client, session = client_for(results=[])
    client.post("/session/start")

    resp = client.post("/session/capture", json={"letter_count": "2000000"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["session"]["state"] == "ready"
    assert session.classifier.segments == []


def test_capture_classifier_failure_returns_view(client_for, failing_classifier):
    client, _ = client_for(classifier=failing_classifier)
    client.post("/session/start")

    resp = client.post("/session/capture", json={"letter_count": "5"})

    assert resp.status_code == 500
    view = resp.json()["detail"]["session"]
    assert view["state"] == "frozen"
    assert view["output"] == "No se pudo reconocer la palabra."
    assert view["actions"]["reset"] is True
    assert any(n["kind"] == "speech" for n in view["notices"])
    reset_notices = client.post("/session/reset").json()["notices"]
    assert all(n["kind"] != "alert" for n in reset_notices)
