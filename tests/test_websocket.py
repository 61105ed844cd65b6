import pytest
from sqlalchemy.exc import SQLAlchemyError
from starlette.websockets import WebSocketDisconnect

from app.models.enums import ApplicationStatus
from app.services.auth_service import AuthService

WS = "/ws"


def assert_closed_with(client, url, reason):
    with client.websocket_connect(url) as ws:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()
    assert excinfo.value.code == 1008
    assert excinfo.value.reason == reason


def wait_until_registered(ws):
    ws.send_json({"type": "ping"})
    assert ws.receive_json()["type"] == "pong"


def test_missing_token_is_rejected(client):
    assert_closed_with(client, WS, "Token required")


def test_invalid_token_is_rejected(client):
    assert_closed_with(client, f"{WS}?token=garbage", "Invalid token")


def test_unapproved_user_is_rejected(client, make_user, token_for):
    pending = make_user(status=ApplicationStatus.PENDING)

    assert_closed_with(client, f"{WS}?token={token_for(pending.id)}", "User not approved")


def test_message_is_delivered_live_and_kept_in_history(client, make_user, make_conversation, token_for, auth_headers):
    alice, bob = make_user(), make_user()
    conversation = make_conversation(alice, bob)

    with client.websocket_connect(f"{WS}?token={token_for(alice.id)}") as alice_ws, \
            client.websocket_connect(f"{WS}?token={token_for(bob.id)}") as bob_ws:
        wait_until_registered(alice_ws)
        wait_until_registered(bob_ws)

        alice_ws.send_json({"type": "new_message", "conversationId": conversation.id, "content": "hi"})

        for ws in (alice_ws, bob_ws):
            event = ws.receive_json()
            assert event["type"] == "message_received"
            assert event["conversationId"] == conversation.id
            assert event["message"]["content"] == "hi"
            assert event["message"]["sender"]["id"] == alice.id

    history = client.get(f"/api/v1/conversations/{conversation.id}/messages", headers=auth_headers(bob))
    assert [m["content"] for m in history.json()] == ["hi"]

    [summary] = client.get("/api/v1/conversations/", headers=auth_headers(bob)).json()
    assert summary["lastMessage"] == "hi"
    assert summary["lastMessageAt"] is not None


def test_malformed_frame_keeps_connection_open(client, make_user, token_for):
    alice = make_user()

    with client.websocket_connect(f"{WS}?token={token_for(alice.id)}") as ws:
        ws.send_text("{not json")
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["error"] == "Invalid JSON format"

        wait_until_registered(ws)


def test_error_event_for_unknown_conversation(client, make_user, token_for):
    alice = make_user()

    with client.websocket_connect(f"{WS}?token={token_for(alice.id)}") as ws:
        ws.send_json({"type": "new_message", "conversationId": "missing", "content": "hello?"})
        error = ws.receive_json()

    assert error["type"] == "error"
    assert error["error"] == "Conversation not found"


def test_store_error_during_handshake_closes_with_internal_error(client, make_user, token_for, monkeypatch):
    alice = make_user()

    def unavailable(self, token):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(AuthService, "authenticate", unavailable)

    with client.websocket_connect(f"{WS}?token={token_for(alice.id)}") as ws:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()

    assert excinfo.value.code == 1011
