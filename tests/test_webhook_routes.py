from fastapi import FastAPI
from fastapi.testclient import TestClient

from orderbot.middleware.observability import ObservabilityMiddleware
from orderbot.routers import webhook as webhook_module
from orderbot.routers.webhook import router as webhook_router
from tests.fixtures_data import SENDER_ID, messenger_text_payload


class FakeProcessor:
    def __init__(self):
        self.batches = []

    async def handle_events(self, events):
        self.batches.append(events)
        return []


def _build_client(monkeypatch, verify_token="secret-token"):
    monkeypatch.setattr(webhook_module, "FACEBOOK_VERIFY_TOKEN", verify_token)
    processor = FakeProcessor()

    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(webhook_router)
    app.state.processor = processor

    return TestClient(app), processor


def test_verify_returns_challenge_for_matching_token(monkeypatch):
    client, _processor = _build_client(monkeypatch)

    response = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "secret-token", "hub.challenge": "12345"},
    )

    assert response.status_code == 200
    assert response.text == "12345"
    assert response.headers["X-Request-ID"]


def test_verify_rejects_wrong_token(monkeypatch):
    client, _processor = _build_client(monkeypatch)

    response = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "12345"},
    )

    assert response.status_code == 403


def test_verify_rejects_when_no_token_is_configured(monkeypatch):
    client, _processor = _build_client(monkeypatch, verify_token="")

    response = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "1"})
    configured = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "x", "hub.challenge": "1"})

    assert response.status_code == 400
    assert configured.status_code == 403


def test_verify_requires_parameters(monkeypatch):
    client, _processor = _build_client(monkeypatch)

    response = client.get("/webhook")

    assert response.status_code == 400


def test_post_acknowledges_and_schedules_processing(monkeypatch):
    client, processor = _build_client(monkeypatch)

    response = client.post("/webhook", json=messenger_text_payload("сайн уу", mid="m_7"))

    assert response.status_code == 200
    assert response.text == "EVENT_RECEIVED"
    assert len(processor.batches) == 1
    assert processor.batches[0][0].sender_id == SENDER_ID
    assert processor.batches[0][0].event_id == "m_7"


def test_post_without_events_is_acknowledged(monkeypatch):
    client, processor = _build_client(monkeypatch)

    response = client.post("/webhook", json={"object": "page", "entry": []})

    assert response.status_code == 200
    assert processor.batches == []


def test_post_rejects_non_page_objects(monkeypatch):
    client, processor = _build_client(monkeypatch)

    response = client.post("/webhook", json={"object": "instagram", "entry": []})

    assert response.status_code == 404
    assert processor.batches == []


def test_post_rejects_invalid_json(monkeypatch):
    client, _processor = _build_client(monkeypatch)

    response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
