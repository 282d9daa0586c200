"""
FastAPI Dependencies

Builds the notification service from configuration and exposes the shared
instances stored on app.state to the routers.
"""

import logging
from typing import Optional

from fastapi import Request

from ..core.config import ConfigManager
from ..core.database import DatabaseManager
from ..core.exceptions import ConfigurationError
from ..gmail.client import GmailClient
from ..line.client import LineMessagingClient
from ..notifications.pending_auth import PendingAuthRegistry
from ..notifications.service import NotificationService
from ..storage.emails import EmailRepository
from ..storage.users import UserRepository


logger = logging.getLogger(__name__)


def build_gmail_client(config: ConfigManager) -> Optional[GmailClient]:
    """
    Create the Gmail client, or None when Gmail is not usable.

    The bridge still serves LINE commands without Gmail; they answer with an
    "unavailable" message.
    """
    if not config.gmail.is_configured():
        logger.warning("GMAIL_CREDENTIALS_PATH not set, Gmail features disabled")
        return None

    try:
        return GmailClient(config.gmail, snippet_length=config.app.snippet_length)
    except ConfigurationError as e:
        logger.warning(f"Failed to initialize Gmail client, Gmail features disabled: {e}")
        return None


def build_notification_service(config: ConfigManager, db: DatabaseManager) -> NotificationService:
    """
    Wire the clients and repositories into a NotificationService.

    Raises:
        LineAPIError: If the LINE channel token is not configured
    """
    return NotificationService(
        mailbox=build_gmail_client(config),
        chat=LineMessagingClient(config.line),
        users=UserRepository(db),
        emails=EmailRepository(db),
        pubsub_topic=config.gmail.pubsub_topic,
        pending_auth=PendingAuthRegistry(ttl_minutes=config.app.pending_auth_ttl_minutes),
        unread_limit=config.app.unread_limit,
        push_limit=config.app.push_limit,
    )


def get_notification_service(request: Request) -> NotificationService:
    """Dependency returning the app-wide NotificationService."""
    return request.app.state.service


def get_app_config(request: Request) -> ConfigManager:
    """Dependency returning the configuration the app was created with."""
    return request.app.state.config


def get_db(request: Request) -> DatabaseManager:
    """Dependency returning the app-wide DatabaseManager."""
    return request.app.state.db
