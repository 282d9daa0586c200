"""
LINE Messaging API Client

Sends push messages (plain text and buttons templates) to LINE users.
Handles rate limiting and transient server errors with retries.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ..core.config import LineConfig
from ..core.exceptions import LineAPIError, LineRateLimitError
from ..core.interfaces import ChatClient


logger = logging.getLogger(__name__)

# LINE caps the alt text of template messages at 400 characters
MAX_ALT_TEXT_LENGTH = 400
# Buttons template text is capped at 160 characters when no title or image is set
MAX_BUTTON_TEXT_LENGTH = 160
MAX_BUTTON_LABEL_LENGTH = 20


class LineMessagingClient(ChatClient):
    """
    LINE Messaging API client authenticated with a long-lived channel token.

    Usage:
        client = LineMessagingClient(config.line)
        client.push_message("U4af4980629...", "Hello")
    """

    BASE_URL = "https://api.line.me/v2/bot"

    def __init__(self, config: LineConfig, session: Optional[requests.Session] = None):
        """
        Initialize LINE client.

        Args:
            config: LineConfig with the channel access token
            session: Optional requests session (tests inject a mock)

        Raises:
            LineAPIError: If the channel token is empty
        """
        if not config.channel_token:
            raise LineAPIError("LINE channel token is empty")

        self.config = config
        self.session = session or requests.Session()

        logger.info("LineMessagingClient initialized")

    def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        retry_count: int = 0,
        max_retries: int = 3,
    ) -> requests.Response:
        """
        Make authenticated request to the Messaging API with retry logic.

        Raises:
            LineRateLimitError: If still rate limited after max_retries
            LineAPIError: On any other failure
        """
        url = f"{self.BASE_URL}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.config.channel_token}",
            "Content-Type": "application/json",
        }

        try:
            logger.debug(f"{method} {url} (retry {retry_count}/{max_retries})")
            response = self.session.request(method=method, url=url, json=json, headers=headers, timeout=30)
        except requests.RequestException as e:
            raise LineAPIError(f"LINE API request failed: {e}") from e

        if response.status_code == 429:
            if retry_count < max_retries:
                retry_after = _retry_after_seconds(response, default=2 ** retry_count)
                logger.warning(f"Rate limited (429), waiting {retry_after}s before retry {retry_count + 1}/{max_retries}")
                time.sleep(retry_after)
                return self._request(method, endpoint, json, retry_count + 1, max_retries)
            raise LineRateLimitError(f"Rate limit exceeded after {max_retries} retries")

        if 500 <= response.status_code < 600:
            if retry_count < max_retries:
                wait_time = min(2 ** retry_count, 30)
                logger.warning(f"Server error ({response.status_code}), waiting {wait_time}s before retry {retry_count + 1}/{max_retries}")
                time.sleep(wait_time)
                return self._request(method, endpoint, json, retry_count + 1, max_retries)
            raise LineAPIError(f"Server error after {max_retries} retries: {response.status_code} {response.text}")

        if 400 <= response.status_code < 500:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.error(f"{method} {url} failed: {response.status_code} - {detail}")
            raise LineAPIError(f"LINE API request failed: {response.status_code} - {detail}")

        return response

    def _push(self, user_id: str, messages: List[Dict[str, Any]]):
        if not user_id:
            raise LineAPIError("user ID is empty")

        self._request("POST", "/message/push", json={"to": user_id, "messages": messages})

    def push_message(self, user_id: str, message: str):
        """
        Push a plain text message to a user.

        Raises:
            LineAPIError: If the push fails
        """
        self._push(user_id, [{"type": "text", "text": message}])
        logger.debug(f"Pushed text message to {user_id}")

    def send_text_message(self, user_id: str, message: str):
        """Alias of push_message."""
        self.push_message(user_id, message)

    def send_button_message(self, user_id: str, text: str, button_label: str, button_url: str):
        """
        Push a buttons template with a single URI action.

        Args:
            user_id: LINE user ID
            text: Body text of the template (also used as alt text)
            button_label: Label of the button
            button_url: URL opened by the button
        """
        message = {
            "type": "template",
            "altText": text[:MAX_ALT_TEXT_LENGTH],
            "template": {
                "type": "buttons",
                "text": text[:MAX_BUTTON_TEXT_LENGTH],
                "actions": [
                    {"type": "uri", "label": button_label[:MAX_BUTTON_LABEL_LENGTH], "uri": button_url}
                ],
            },
        }
        self._push(user_id, [message])
        logger.debug(f"Pushed button message to {user_id}")

    def test_connection(self) -> bool:
        """
        Verify the channel token by fetching the bot profile.

        Raises:
            LineAPIError: If the token is rejected
        """
        info = self._request("GET", "/info").json()
        logger.info(f"LINE API connection successful (bot: {info.get('displayName', 'unknown')})")
        return True


def _retry_after_seconds(response: requests.Response, default: int) -> int:
    """Retry-After as whole seconds; HTTP-date or garbage values fall back to `default`."""
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric Retry-After header: {value!r}")
        return default
