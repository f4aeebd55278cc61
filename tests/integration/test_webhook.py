"""Integration tests for the webhook endpoint."""

import pytest
from starlette.testclient import TestClient

from quote_bot.menu import Reply, main_keyboard
from quote_bot.models import SessionState
from quote_bot.router import SessionRouter
from quote_bot.updates import create_webhook_app

TOKEN = "123:ABC"


@pytest.fixture
def client(handlers, store, pool):
    router = SessionRouter(handlers, store, pool, timeout=1.0)
    return TestClient(create_webhook_app(router, TOKEN))


def update_payload(text: str, chat_id: int = 1, update_id: int = 1) -> dict:
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "date": 1700000000,
            "from": {"id": chat_id, "first_name": "Test"},
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
        },
    }


class TestWebhook:
    """Tests for POST /<token>."""

    def test_update_is_handled(self, client, telegram, store):
        response = client.post(f"/{TOKEN}", json=update_payload("/start"))

        assert response.status_code == 200
        assert response.json() == {"ok": True, "handled": True}
        telegram.send_text_with_keyboard.assert_called_once_with(
            1, Reply.WHAT_SEND.value, main_keyboard()
        )
        assert store.get_state(1) is SessionState.DEFAULT

    def test_handler_error_still_answers_200(self, client, quotes):
        quotes.get_quotes.side_effect = Exception("unexpected")

        response = client.post(f"/{TOKEN}", json=update_payload("Случайную"))

        assert response.status_code == 200
        assert response.json() == {"ok": True, "handled": False}

    def test_update_without_message(self, client, telegram):
        response = client.post(f"/{TOKEN}", json={"update_id": 9, "edited_message": {}})

        assert response.status_code == 200
        assert response.json()["handled"] is False
        telegram.send_text_with_keyboard.assert_not_called()

    def test_bad_json(self, client):
        response = client.post(
            f"/{TOKEN}", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_payload_without_update_id(self, client):
        response = client.post(f"/{TOKEN}", json={"message": {}})
        assert response.status_code == 400

    def test_payload_not_an_object(self, client):
        response = client.post(f"/{TOKEN}", json=[1, 2, 3])
        assert response.status_code == 400

    def test_wrong_token_path(self, client, telegram):
        response = client.post("/wrong-token", json=update_payload("/start"))

        assert response.status_code == 404
        telegram.send_text_with_keyboard.assert_not_called()

    def test_get_not_allowed(self, client):
        response = client.get(f"/{TOKEN}")
        assert response.status_code == 405
