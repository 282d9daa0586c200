"""
Unit tests for LineMessagingClient with a mocked requests session.
"""

import pytest
from unittest.mock import Mock, patch

import requests

from mailbridge.core.config import LineConfig
from mailbridge.core.exceptions import LineAPIError, LineRateLimitError
from mailbridge.line.client import LineMessagingClient


def make_response(status_code, json_data=None, headers=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    response.json.return_value = json_data or {}
    return response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.request.return_value = make_response(200)
    return session


@pytest.fixture
def client(session):
    return LineMessagingClient(LineConfig(channel_token="token", channel_secret="secret"), session=session)


class TestPush:
    """Tests for push messages."""

    def test_push_text_message(self, client, session):
        client.push_message("U1", "こんにちは")

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://api.line.me/v2/bot/message/push"
        assert kwargs["headers"]["Authorization"] == "Bearer token"
        assert kwargs["json"] == {"to": "U1", "messages": [{"type": "text", "text": "こんにちは"}]}

    def test_send_text_message_is_push(self, client, session):
        client.send_text_message("U1", "hi")

        assert session.request.call_args.kwargs["json"]["messages"] == [{"type": "text", "text": "hi"}]

    def test_empty_user_id_is_rejected(self, client, session):
        with pytest.raises(LineAPIError):
            client.push_message("", "hi")

        session.request.assert_not_called()

    def test_button_message(self, client, session):
        client.send_button_message("U1", "Gmailを連携してください", "認証する" * 10, "https://example.com/auth")

        message = session.request.call_args.kwargs["json"]["messages"][0]
        assert message["type"] == "template"
        assert message["template"]["type"] == "buttons"
        action = message["template"]["actions"][0]
        assert action == {"type": "uri", "label": ("認証する" * 10)[:20], "uri": "https://example.com/auth"}

    def test_empty_token_is_rejected(self):
        with pytest.raises(LineAPIError):
            LineMessagingClient(LineConfig(channel_token="", channel_secret="secret"))


class TestRetries:
    """Tests for rate limit and server error handling."""

    @patch("mailbridge.line.client.time.sleep")
    def test_rate_limit_honours_retry_after(self, mock_sleep, client, session):
        session.request.side_effect = [make_response(429, headers={"Retry-After": "7"}), make_response(200)]

        client.push_message("U1", "hi")

        mock_sleep.assert_called_once_with(7)
        assert session.request.call_count == 2

    @patch("mailbridge.line.client.time.sleep")
    def test_rate_limit_with_http_date_retry_after_uses_backoff(self, mock_sleep, client, session):
        session.request.side_effect = [
            make_response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            make_response(200),
        ]

        client.push_message("U1", "hi")

        mock_sleep.assert_called_once_with(1)
        assert session.request.call_count == 2

    @patch("mailbridge.line.client.time.sleep")
    def test_rate_limit_gives_up(self, mock_sleep, client, session):
        session.request.return_value = make_response(429)

        with pytest.raises(LineRateLimitError):
            client.push_message("U1", "hi")

        assert session.request.call_count == 4

    @patch("mailbridge.line.client.time.sleep")
    def test_server_error_is_retried(self, mock_sleep, client, session):
        session.request.side_effect = [make_response(500), make_response(502), make_response(200)]

        client.push_message("U1", "hi")

        assert session.request.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_client_error_is_not_retried(self, client, session):
        session.request.return_value = make_response(400, json_data={"message": "Invalid reply token"})

        with pytest.raises(LineAPIError, match="Invalid reply token"):
            client.push_message("U1", "hi")

        assert session.request.call_count == 1

    def test_connection_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(LineAPIError):
            client.push_message("U1", "hi")


class TestConnection:
    def test_bot_info(self, client, session):
        session.request.return_value = make_response(200, json_data={"displayName": "Mail Bot"})

        assert client.test_connection() is True
        assert session.request.call_args.kwargs["url"] == "https://api.line.me/v2/bot/info"
