"""
Capability interfaces for the collaborators of NotificationService.

The concrete implementations are GmailClient, LineMessagingClient,
UserRepository and EmailRepository. Tests substitute doubles for all four.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .database import User, TrackedEmail
from ..gmail.models import GmailMessage, OAuthToken


class MailboxClient(ABC):
    """Gmail-side operations."""

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """Provider-hosted authorization URL carrying `state` back to the callback."""

    @abstractmethod
    def exchange_code(self, code: str) -> OAuthToken:
        """Exchange an authorization code for tokens."""

    @abstractmethod
    def get_unread_messages(self, token: OAuthToken, max_results: int) -> List[GmailMessage]:
        pass

    @abstractmethod
    def get_latest_messages(self, token: OAuthToken, max_results: int) -> List[GmailMessage]:
        pass

    @abstractmethod
    def get_message(self, token: OAuthToken, message_id: str) -> GmailMessage:
        pass

    @abstractmethod
    def get_history_messages(self, token: OAuthToken, start_history_id: int) -> List[GmailMessage]:
        pass

    @abstractmethod
    def watch_mailbox(self, token: OAuthToken, topic_name: str) -> dict:
        """Register a mailbox-change watch publishing to `topic_name`."""


class ChatClient(ABC):
    """LINE-side operations."""

    @abstractmethod
    def push_message(self, user_id: str, message: str):
        pass

    @abstractmethod
    def send_button_message(self, user_id: str, text: str, button_label: str, button_url: str):
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Raise if the channel credentials are rejected."""


class UserStore(ABC):
    """Persistence of LINE user to Gmail credential links."""

    @abstractmethod
    def create_user(self, line_user_id: str) -> User:
        pass

    @abstractmethod
    def get_user_by_line_user_id(self, line_user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def update_gmail_tokens(self, line_user_id: str, token: OAuthToken, activate: bool = False):
        pass

    @abstractmethod
    def get_all_active_users(self) -> List[User]:
        pass


class MessageStore(ABC):
    """Dedup ledger of observed Gmail messages."""

    @abstractmethod
    def create_email(self, user_id: int, message: GmailMessage) -> Optional[TrackedEmail]:
        """Insert a ledger row; None when the message is already tracked."""

    @abstractmethod
    def get_email_by_gmail_message_id(self, user_id: int, gmail_message_id: str) -> Optional[TrackedEmail]:
        pass

    @abstractmethod
    def get_unnotified_emails_by_user_id(self, user_id: int) -> List[TrackedEmail]:
        pass

    @abstractmethod
    def get_recent_emails(self, user_id: int, since: datetime) -> List[TrackedEmail]:
        pass

    @abstractmethod
    def mark_email_as_notified(self, user_id: int, gmail_message_id: str):
        pass
