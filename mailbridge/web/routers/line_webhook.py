"""
LINE Webhook Router

Receives LINE webhook deliveries, validates the signature and dispatches
each text message to the notification service.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from ...core.config import ConfigManager
from ...core.exceptions import InvalidSignatureError
from ...line.commands import CommandType, parse_command
from ...line.webhook import TextMessageEvent, parse_events, text_message_events, verify_signature
from ...notifications.service import NotificationService
from ..dependencies import get_app_config, get_notification_service


logger = logging.getLogger(__name__)

router = APIRouter()


def dispatch_event(service: NotificationService, event: TextMessageEvent, recent_limit: int):
    """
    Route one text message to the matching service operation.

    Exact command matches win. Any other text is an authorization code when
    the user is mid-handshake, otherwise the user gets the help message.
    """
    command = parse_command(event.user_id, event.text)
    user_id = command.user_id

    if command.command_type == CommandType.GMAIL_AUTH:
        service.start_auth(user_id)
    elif command.command_type == CommandType.UNREAD_MAIL:
        service.send_unread_list(user_id)
    elif command.command_type == CommandType.MAIL_LIST:
        service.send_recent_list(user_id, recent_limit)
    elif command.text and service.is_auth_pending(user_id):
        service.complete_auth(user_id, command.text)
    else:
        service.send_help(user_id)


def dispatch_events(service: NotificationService, events: List[TextMessageEvent], recent_limit: int):
    """Dispatch every event; a failing event is logged and does not stop the rest."""
    for event in events:
        try:
            dispatch_event(service, event, recent_limit)
        except Exception as e:
            logger.error(f"Failed to handle message from {event.user_id}: {e}", exc_info=True)


@router.get("/webhook/line", response_class=PlainTextResponse)
def line_webhook_check():
    """Reachability check for the LINE console."""
    return "OK"


@router.post("/webhook/line", response_class=PlainTextResponse)
async def line_webhook(
    request: Request,
    x_line_signature: Optional[str] = Header(None),
    service: NotificationService = Depends(get_notification_service),
    config: ConfigManager = Depends(get_app_config),
):
    """
    Handle a LINE webhook delivery.

    Returns 400 for a missing/invalid signature or a malformed body, and
    200 "OK" once the body is accepted, regardless of per-event failures.
    """
    body = await request.body()

    try:
        verify_signature(config.line.channel_secret, body, x_line_signature)
    except InvalidSignatureError as e:
        logger.warning(f"Rejected LINE webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        payload = parse_events(body)
    except ValueError as e:
        logger.warning(f"Rejected LINE webhook: {e}")
        raise HTTPException(status_code=400, detail="Malformed request body")

    events = text_message_events(payload)
    logger.info(f"LINE webhook received ({len(payload.events)} events, {len(events)} text messages)")

    # Handlers call Gmail/LINE synchronously
    await run_in_threadpool(dispatch_events, service, events, config.app.recent_list_limit)

    return "OK"
