"""
LINE Webhook Parsing

Signature validation and event extraction for LINE webhook deliveries.
Only the fields the bridge uses are modelled; everything else is ignored.
"""

import base64
import hashlib
import hmac
import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.exceptions import InvalidSignatureError


logger = logging.getLogger(__name__)


class EventSource(BaseModel):
    """Sender of a webhook event (user, group or room)."""

    model_config = ConfigDict(extra="ignore")

    type: str
    userId: Optional[str] = None


class EventMessage(BaseModel):
    """Message content of a message event."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: str
    text: Optional[str] = None


class WebhookEvent(BaseModel):
    """A single webhook event."""

    model_config = ConfigDict(extra="ignore")

    type: str
    timestamp: Optional[int] = None
    replyToken: Optional[str] = None
    source: Optional[EventSource] = None
    message: Optional[EventMessage] = None


class WebhookPayload(BaseModel):
    """Top-level webhook request body."""

    model_config = ConfigDict(extra="ignore")

    destination: Optional[str] = None
    events: List[WebhookEvent] = []


class TextMessageEvent(BaseModel):
    """A text message sent by a user, reduced to what dispatch needs."""

    user_id: str
    text: str


def verify_signature(channel_secret: str, body: bytes, signature: Optional[str]) -> None:
    """
    Check the X-Line-Signature header against the raw request body.

    The signature is base64(HMAC-SHA256(channel_secret, body)).

    Raises:
        InvalidSignatureError: If no channel secret is configured, or the
            signature is missing or does not match
    """
    if not channel_secret:
        raise InvalidSignatureError("LINE channel secret is not configured")

    if not signature:
        raise InvalidSignatureError("Missing X-Line-Signature header")

    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")

    if not hmac.compare_digest(expected, signature):
        raise InvalidSignatureError("Invalid X-Line-Signature")


def parse_events(body: bytes) -> WebhookPayload:
    """
    Parse a webhook body.

    Raises:
        ValueError: If the body is not a valid webhook payload
    """
    try:
        return WebhookPayload.model_validate_json(body)
    except ValidationError as e:
        raise ValueError(f"Malformed webhook payload: {e.error_count()} validation errors") from e


def text_message_events(payload: WebhookPayload) -> List[TextMessageEvent]:
    """
    Extract text message events that carry a user ID.

    Non-message events, non-text messages and events without a user ID
    (e.g. group sources without consent) are skipped.
    """
    events = []
    for event in payload.events:
        if event.type != "message" or event.message is None or event.message.type != "text":
            continue

        user_id = event.source.userId if event.source else None
        if not user_id:
            logger.error("Could not extract user ID from event source")
            continue

        events.append(TextMessageEvent(user_id=user_id, text=event.message.text or ""))

    return events
