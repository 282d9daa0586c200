"""
Pub/Sub Push Router

Receives Gmail mailbox-change notifications pushed by Cloud Pub/Sub and
runs one notification pass.
"""

import base64
import binascii
import json
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from ...notifications.service import NotificationService
from ..dependencies import get_notification_service


logger = logging.getLogger(__name__)

router = APIRouter()


class PubSubMessage(BaseModel):
    """Pub/Sub message (data is base64 JSON from Gmail)."""

    data: str = ""
    messageId: Optional[str] = None
    attributes: Dict[str, str] = {}
    publishTime: Optional[str] = None


class PubSubPushRequest(BaseModel):
    """Pub/Sub push envelope."""

    message: PubSubMessage
    subscription: str = ""


def decode_gmail_notification(data: str) -> Optional[dict]:
    """
    Decode the Gmail payload ({"emailAddress", "historyId"}) of a push message.

    Returns:
        Decoded dict, or None if the data is empty or not a base64 JSON object
    """
    if not data:
        return None
    try:
        decoded = json.loads(base64.b64decode(data))
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Undecodable Pub/Sub message data: {e}")
        return None

    if not isinstance(decoded, dict):
        logger.warning(f"Pub/Sub message data is not a JSON object: {type(decoded).__name__}")
        return None
    return decoded


@router.post("/webhook/pubsub", response_class=PlainTextResponse)
async def pubsub_webhook(
    request: Request,
    service: NotificationService = Depends(get_notification_service),
):
    """
    Handle a Pub/Sub push delivery.

    Every active user is processed; the email address in the payload is only
    logged. Returns 500 on a processing failure so Pub/Sub redelivers.
    """
    body = await request.body()

    try:
        push = PubSubPushRequest.model_validate_json(body)
    except ValidationError as e:
        logger.warning(f"Rejected Pub/Sub push: {e.error_count()} validation errors")
        raise HTTPException(status_code=400, detail="Malformed request body")

    notification = decode_gmail_notification(push.message.data)
    if notification:
        logger.info(
            f"Gmail notification received (message {push.message.messageId}, "
            f"email: {notification.get('emailAddress')}, historyId: {notification.get('historyId')})"
        )
    else:
        logger.info(f"Pub/Sub push received (message {push.message.messageId})")

    try:
        await run_in_threadpool(service.process_push_notification)
    except Exception as e:
        logger.error(f"Failed to process push notification: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process notification")

    return "OK"
