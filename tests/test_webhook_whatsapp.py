"""Tests for GET/POST /webhook."""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from botgate.api.factory import create_app
from botgate.domain.models import Category
from botgate.whatsapp.templates import render_fallback

from helpers import (
    DOWNSTREAM_BASE,
    GRAPH_BASE,
    SENDER,
    TENANT_ID,
    FakeHttp,
    change,
    envelope,
    make_response,
    status_item,
    text_message,
)


@pytest.fixture
def client(settings, http):
    return TestClient(create_app(settings, http_post=http))


class TestVerification:
    def test_matching_token_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-secret", "hub.challenge": "abc123"},
        )

        assert response.status_code == 200
        assert response.text == "abc123"

    def test_wrong_token_is_403_with_empty_body(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "WRONG", "hub.challenge": "abc"},
        )

        assert response.status_code == 403
        assert response.content == b""

    def test_wrong_mode_is_403(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "unsubscribe", "hub.verify_token": "verify-secret", "hub.challenge": "abc"},
        )

        assert response.status_code == 403

    def test_unconfigured_token_never_verifies(self, settings, http):
        client = TestClient(create_app(replace(settings, verify_token=""), http_post=http))

        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "anything", "hub.challenge": "abc"},
        )

        assert response.status_code == 403

    def test_without_params_is_liveness(self, client):
        response = client.get("/webhook")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "message": "Webhook is running"}

    def test_empty_token_is_liveness(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "abc"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "message": "Webhook is running"}


class TestReceive:
    def test_quiz_message_forwarded(self, client, http):
        payload = envelope([change(messages=[text_message("I need help with a quiz")])])

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"
        assert http.urls == [f"{DOWNSTREAM_BASE}/api/chatbot/quiz"]
        body = http.calls[0]["json"]
        assert body["phoneNumberId"] == TENANT_ID
        assert body["from"] == SENDER
        assert body["category"] == "quiz"

    def test_unset_downstream_sends_one_auto_reply(self, settings, http):
        client = TestClient(create_app(replace(settings, downstream_base_url=""), http_post=http))
        payload = envelope([change(messages=[text_message("I need help with a quiz")])])

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert len(http.calls) == 1
        assert http.urls[0].startswith(f"{GRAPH_BASE}/")
        assert http.calls[0]["json"]["to"] == SENDER
        assert http.calls[0]["json"]["text"]["body"] == render_fallback(Category.QUIZ)

    def test_denylisted_downstream_behaves_like_unset(self, settings, http):
        client = TestClient(
            create_app(replace(settings, downstream_base_url="http://localhost:54321"), http_post=http)
        )
        payload = envelope([change(messages=[text_message("I need help with a quiz")])])

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert http.calls_to("/api/chatbot/") == []
        assert len(http.calls) == 1
        assert http.urls[0] == f"{GRAPH_BASE}/v19.0/{TENANT_ID}/messages"
        assert http.calls[0]["json"]["text"]["body"] == render_fallback(Category.QUIZ)

    def test_delivered_status_relayed_once(self, client, http):
        response = client.post("/webhook", json=envelope([change(statuses=[status_item("delivered")])]))

        assert response.status_code == 200
        assert http.urls == [f"{DOWNSTREAM_BASE}/api/whatsapp/status"]
        assert http.calls[0]["json"]["status"] == "delivered"

    def test_unexpected_object_is_404_without_calls(self, client, http):
        payload = envelope([change(messages=[text_message("hi")])], object_type="page")

        response = client.post("/webhook", json=payload)

        assert response.status_code == 404
        assert http.calls == []

    def test_invalid_json_is_500(self, client, http):
        response = client.post(
            "/webhook", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 500
        assert response.text == "Error processing webhook"
        assert http.calls == []

    def test_per_event_failures_still_return_200(self, settings):
        http = FakeHttp(lambda url, **kw: make_response(500))
        client = TestClient(create_app(settings, http_post=http))
        payload = envelope(
            [change(messages=[text_message("a", message_id="m1")], statuses=[status_item()])]
        )

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"

    def test_unexpected_dispatch_error_is_500(self, settings):
        relay = MagicMock()
        relay.dispatch.side_effect = RuntimeError("boom")
        client = TestClient(create_app(settings, relay=relay))

        response = client.post("/webhook", json=envelope([]))

        assert response.status_code == 500
        assert response.text == "Error processing webhook"

    def test_empty_entry_list_is_acknowledged(self, client, http):
        response = client.post("/webhook", json=envelope())

        assert response.status_code == 200
        assert http.calls == []
