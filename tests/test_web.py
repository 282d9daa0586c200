"""
Tests for the HTTP endpoints using FastAPI's TestClient with a mocked
NotificationService.
"""

import base64
import json
from types import SimpleNamespace

import pytest
from unittest.mock import Mock

from fastapi.testclient import TestClient

from mailbridge.core.config import AppConfig, DatabaseConfig, GmailConfig, LineConfig
from mailbridge.core.exceptions import DatabaseError, GmailAuthenticationError, LineAPIError
from mailbridge.notifications.pending_auth import PendingAuthRegistry
from mailbridge.notifications.service import NotificationService
from mailbridge.web.app import create_app
from mailbridge.web.routers.pubsub import decode_gmail_notification
from tests.factories import LineTestFactory


SECRET = "channel-secret"


@pytest.fixture
def config():
    return SimpleNamespace(
        line=LineConfig(channel_token="token", channel_secret=SECRET),
        gmail=GmailConfig(credentials_path="credentials.json"),
        database=DatabaseConfig(url="sqlite://"),
        app=AppConfig(recent_list_limit=10),
    )


@pytest.fixture
def service():
    service = Mock(spec=NotificationService)
    service.is_auth_pending.return_value = False
    service.pending_auth = PendingAuthRegistry()
    service.mailbox = Mock()
    service.chat = Mock()
    return service


@pytest.fixture
def client(service, config, test_db):
    app = create_app(service=service, config=config, db=test_db)
    return TestClient(app)


def post_line(client, events, secret=SECRET):
    body = LineTestFactory.create_body(events)
    return client.post(
        "/webhook/line",
        content=body,
        headers={"X-Line-Signature": LineTestFactory.sign(secret, body), "Content-Type": "application/json"},
    )


def pubsub_body(data=None):
    payload = {"emailAddress": "user@example.com", "historyId": "12345"} if data is None else data
    return {
        "message": {
            "data": base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii"),
            "messageId": "136969346945",
            "attributes": {},
            "publishTime": "2024-01-15T09:30:00Z",
        },
        "subscription": "projects/p/subscriptions/gmail-push",
    }


class TestLineWebhook:
    """Tests for POST/GET /webhook/line."""

    def test_get_returns_ok(self, client):
        response = client.get("/webhook/line")

        assert response.status_code == 200
        assert response.text == "OK"

    def test_missing_signature_is_rejected(self, client, service):
        response = client.post("/webhook/line", content=LineTestFactory.create_body([]))

        assert response.status_code == 400
        assert service.method_calls == []

    def test_wrong_signature_is_rejected(self, client, service):
        response = post_line(client, [LineTestFactory.text_event("U1", "未読mail")], secret="wrong")

        assert response.status_code == 400
        service.send_unread_list.assert_not_called()

    def test_unconfigured_secret_rejects_everything(self, service, config, test_db):
        config.line = LineConfig(channel_token="token", channel_secret="")
        client = TestClient(create_app(service=service, config=config, db=test_db))

        response = post_line(client, [LineTestFactory.text_event("U1", "未読mail")], secret="")

        assert response.status_code == 400
        service.send_unread_list.assert_not_called()

    def test_malformed_body_is_rejected(self, client, service):
        body = b"not json"
        response = client.post(
            "/webhook/line", content=body, headers={"X-Line-Signature": LineTestFactory.sign(SECRET, body)}
        )

        assert response.status_code == 400
        assert service.method_calls == []

    def test_empty_events_verification(self, client):
        response = post_line(client, [])

        assert response.status_code == 200
        assert response.text == "OK"

    @pytest.mark.parametrize("text, method, args", [
        ("Gmail連携", "start_auth", ("U1",)),
        ("未読mail", "send_unread_list", ("U1",)),
        (" mail一覧 ", "send_recent_list", ("U1", 10)),
    ])
    def test_commands_are_dispatched(self, client, service, text, method, args):
        response = post_line(client, [LineTestFactory.text_event("U1", text)])

        assert response.status_code == 200
        getattr(service, method).assert_called_once_with(*args)

    def test_free_text_while_pending_completes_auth(self, client, service):
        service.is_auth_pending.return_value = True

        post_line(client, [LineTestFactory.text_event("U1", " 4/0AX4XfWh-code ")])

        service.complete_auth.assert_called_once_with("U1", "4/0AX4XfWh-code")
        service.send_help.assert_not_called()

    def test_free_text_otherwise_gets_help(self, client, service):
        post_line(client, [LineTestFactory.text_event("U1", "こんにちは")])

        service.send_help.assert_called_once_with("U1")
        service.complete_auth.assert_not_called()

    def test_command_wins_over_pending_auth(self, client, service):
        service.is_auth_pending.return_value = True

        post_line(client, [LineTestFactory.text_event("U1", "未読mail")])

        service.send_unread_list.assert_called_once_with("U1")
        service.complete_auth.assert_not_called()

    def test_event_failure_still_returns_ok_and_continues(self, client, service):
        service.send_unread_list.side_effect = LineAPIError("push failed")

        response = post_line(client, [
            LineTestFactory.text_event("U1", "未読mail"),
            LineTestFactory.text_event("U2", "mail一覧"),
        ])

        assert response.status_code == 200
        assert response.text == "OK"
        service.send_recent_list.assert_called_once_with("U2", 10)

    def test_failed_auth_code_still_returns_ok(self, client, service):
        service.is_auth_pending.return_value = True
        service.complete_auth.side_effect = GmailAuthenticationError("invalid_grant")

        response = post_line(client, [LineTestFactory.text_event("U1", "bad-code")])

        assert response.status_code == 200


class TestPubSubWebhook:
    """Tests for POST /webhook/pubsub."""

    def test_triggers_notification_pass(self, client, service):
        response = client.post("/webhook/pubsub", json=pubsub_body())

        assert response.status_code == 200
        assert response.text == "OK"
        service.process_push_notification.assert_called_once_with()

    def test_undecodable_data_still_processes(self, client, service):
        body = pubsub_body()
        body["message"]["data"] = "%%%not-base64%%%"

        response = client.post("/webhook/pubsub", json=body)

        assert response.status_code == 200
        service.process_push_notification.assert_called_once_with()

    @pytest.mark.parametrize("data", [12345, "plain string", ["a", "b"]])
    def test_non_object_data_still_processes(self, client, service, data):
        response = client.post("/webhook/pubsub", json=pubsub_body(data))

        assert response.status_code == 200
        service.process_push_notification.assert_called_once_with()

    def test_decode_rejects_non_object_payload(self):
        encoded = base64.b64encode(b"12345").decode("ascii")

        assert decode_gmail_notification(encoded) is None
        assert decode_gmail_notification(pubsub_body()["message"]["data"]) == {
            "emailAddress": "user@example.com",
            "historyId": "12345",
        }

    @pytest.mark.parametrize("body", [b"not json", b"{}", b'{"message": "nope"}'])
    def test_malformed_body_is_rejected(self, client, service, body):
        response = client.post("/webhook/pubsub", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        service.process_push_notification.assert_not_called()

    def test_processing_failure_returns_500(self, client, service):
        service.process_push_notification.side_effect = DatabaseError("connection lost")

        response = client.post("/webhook/pubsub", json=pubsub_body())

        assert response.status_code == 500


class TestOAuthCallback:
    """Tests for GET /oauth/gmail/callback."""

    def test_success_page(self, client, service):
        response = client.get("/oauth/gmail/callback", params={"code": "4/0AX", "state": "U1"})

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "認証完了" in response.text
        service.complete_auth.assert_called_once_with("U1", "4/0AX")

    def test_failure_page_is_200(self, client, service):
        service.complete_auth.side_effect = GmailAuthenticationError("invalid_grant")

        response = client.get("/oauth/gmail/callback", params={"code": "bad", "state": "U1"})

        assert response.status_code == 200
        assert "認証失敗" in response.text

    @pytest.mark.parametrize("params", [{"code": "4/0AX"}, {"state": "U1"}, {}, {"error": "access_denied", "state": "U1"}])
    def test_missing_parameters(self, client, service, params):
        response = client.get("/oauth/gmail/callback", params=params)

        assert response.status_code == 400
        service.complete_auth.assert_not_called()


class TestHealth:
    """Tests for the health endpoints."""

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.text == "OK"

    def test_detailed_all_healthy(self, client, service):
        service.chat.test_connection.return_value = True

        data = client.get("/health/detailed").json()

        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["gmail"]["status"] == "healthy"
        assert data["components"]["line"]["status"] == "healthy"
        assert data["pending_auth"] == 0

    def test_detailed_degraded(self, client, service):
        service.mailbox = None
        service.chat.test_connection.side_effect = LineAPIError("401 Unauthorized")

        data = client.get("/health/detailed").json()

        assert data["status"] == "degraded"
        assert data["components"]["gmail"]["status"] == "disabled"
        assert data["components"]["line"]["status"] == "unhealthy"
