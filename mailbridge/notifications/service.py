"""
Notification Service

Coordinates the Gmail client, the LINE client and the two stores in
response to chat commands, OAuth callbacks and mailbox-change notifications.
"""

import logging
from typing import Optional

from ..core.database import User
from ..core.exceptions import GmailAuthenticationError, GmailUnavailableError
from ..core.interfaces import ChatClient, MailboxClient, MessageStore, UserStore
from ..gmail.models import GmailMessage, OAuthToken
from .messages import (
    MSG_AUTH_COMPLETE,
    MSG_AUTH_FAILED,
    MSG_AUTH_REQUIRED,
    MSG_AUTH_START,
    MSG_GMAIL_UNAVAILABLE,
    MSG_GMAIL_UNAVAILABLE_AUTH,
    MSG_HELP,
    MSG_NO_EMAILS,
    MSG_NO_UNREAD_EMAILS,
    TITLE_LATEST_EMAILS,
    TITLE_UNREAD_EMAILS,
    format_email_list,
    format_new_email,
)
from .pending_auth import PendingAuthRegistry


logger = logging.getLogger(__name__)

MAX_UNREAD_EMAILS = 10
MAX_PUSH_EMAILS = 5


class NotificationService:
    """
    Orchestrates Gmail to LINE notifications.

    Every operation either completes or raises; chat-visible failures such
    as a missing Gmail link are answered with a LINE message instead.

    Usage:
        service = NotificationService(gmail, line, UserRepository(db), EmailRepository(db), topic)
        service.start_auth(line_user_id)
        service.complete_auth(line_user_id, code)
        service.process_push_notification()
    """

    def __init__(
        self,
        mailbox: Optional[MailboxClient],
        chat: ChatClient,
        users: UserStore,
        emails: MessageStore,
        pubsub_topic: str,
        pending_auth: Optional[PendingAuthRegistry] = None,
        unread_limit: int = MAX_UNREAD_EMAILS,
        push_limit: int = MAX_PUSH_EMAILS,
    ):
        """
        Args:
            mailbox: Gmail client, or None when Gmail is not configured
            chat: LINE client
            users: User store
            emails: Tracked email store
            pubsub_topic: Cloud Pub/Sub topic Gmail watches publish to
            pending_auth: Registry of users mid-handshake (a fresh one by default)
            unread_limit: Cap for the unread list command
            push_limit: Unread messages scanned per user per push notification
        """
        self.mailbox = mailbox
        self.chat = chat
        self.users = users
        self.emails = emails
        self.pubsub_topic = pubsub_topic
        self.pending_auth = pending_auth if pending_auth is not None else PendingAuthRegistry()
        self.unread_limit = unread_limit
        self.push_limit = push_limit

    # ========================================================================
    # AUTH
    # ========================================================================

    def is_auth_pending(self, user_id: str) -> bool:
        return self.pending_auth.contains(user_id)

    def start_auth(self, user_id: str):
        """
        Begin the Gmail OAuth handshake for a LINE user.

        Sends the instructions and the consent URL as two separate messages
        so LINE renders the bare URL as a tappable link.
        """
        if self.mailbox is None:
            self.chat.push_message(user_id, MSG_GMAIL_UNAVAILABLE_AUTH)
            return

        self.pending_auth.add(user_id)
        auth_url = self.mailbox.get_auth_url(user_id)

        self.chat.push_message(user_id, MSG_AUTH_START)
        self.chat.push_message(user_id, auth_url)

        logger.info(f"Gmail auth started for user {user_id}")

    def complete_auth(self, user_id: str, code: str):
        """
        Finish the handshake with an authorization code.

        The code arrives either from the OAuth redirect callback (state = LINE
        user ID) or pasted into the chat while the user is pending.

        Raises:
            GmailUnavailableError: If Gmail is not configured
            GmailAuthenticationError: If the code is rejected
        """
        if self.mailbox is None:
            raise GmailUnavailableError("Gmail client not initialized")

        try:
            try:
                token = self.mailbox.exchange_code(code)
            except GmailAuthenticationError:
                self._notify_auth_failed(user_id)
                raise

            user = self.users.get_user_by_line_user_id(user_id)
            if user is None:
                user = self.users.create_user(user_id)

            self.users.update_gmail_tokens(user_id, token, activate=True)

            try:
                self.mailbox.watch_mailbox(token, self.pubsub_topic)
                logger.info(f"Gmail watch set up for user {user_id}")
            except Exception as e:
                # Manual list commands still work without push notifications
                logger.warning(f"Failed to set up Gmail watch for user {user_id}: {e}")
        finally:
            self.pending_auth.discard(user_id)

        self.chat.push_message(user_id, MSG_AUTH_COMPLETE)
        logger.info(f"Gmail auth completed for user {user_id}")

    def _notify_auth_failed(self, user_id: str):
        try:
            self.chat.push_message(user_id, MSG_AUTH_FAILED)
        except Exception as e:
            logger.error(f"Failed to send auth failure message to {user_id}: {e}")

    # ========================================================================
    # LIST COMMANDS
    # ========================================================================

    def _authenticated_user(self, user_id: str) -> Optional[User]:
        user = self.users.get_user_by_line_user_id(user_id)
        if user is None or not user.gmail_access_token:
            return None
        return user

    def send_unread_list(self, user_id: str):
        """Push the user's unread messages (at most unread_limit) as one list."""
        if self.mailbox is None:
            self.chat.push_message(user_id, MSG_GMAIL_UNAVAILABLE)
            return

        user = self._authenticated_user(user_id)
        if user is None:
            self.chat.push_message(user_id, MSG_AUTH_REQUIRED)
            return

        token = token_for(user)
        messages = self.mailbox.get_unread_messages(token, self.unread_limit)
        self._persist_refreshed_token(user, token)

        if not messages:
            self.chat.push_message(user_id, MSG_NO_UNREAD_EMAILS)
            return

        self.chat.push_message(user_id, format_email_list(TITLE_UNREAD_EMAILS, messages))
        logger.info(f"Unread email list sent to {user_id} ({len(messages)} messages)")

    def send_recent_list(self, user_id: str, limit: int):
        """Push the user's latest `limit` messages as one list."""
        if self.mailbox is None:
            self.chat.push_message(user_id, MSG_GMAIL_UNAVAILABLE)
            return

        user = self._authenticated_user(user_id)
        if user is None:
            self.chat.push_message(user_id, MSG_AUTH_REQUIRED)
            return

        token = token_for(user)
        messages = self.mailbox.get_latest_messages(token, limit)
        self._persist_refreshed_token(user, token)

        if not messages:
            self.chat.push_message(user_id, MSG_NO_EMAILS)
            return

        self.chat.push_message(user_id, format_email_list(TITLE_LATEST_EMAILS, messages))
        logger.info(f"Email list sent to {user_id} ({len(messages)} messages)")

    def send_help(self, user_id: str):
        self.chat.push_message(user_id, MSG_HELP)

    # ========================================================================
    # PUSH NOTIFICATIONS
    # ========================================================================

    def process_push_notification(self):
        """
        Scan every active, linked user for new unread mail and push it.

        New messages are first recorded as not notified, then every
        not-yet-notified record is pushed and marked notified right after its
        push succeeds. A crash between the two steps re-sends that message on
        the next run (at-least-once delivery). Failures are logged per
        user/message and never stop the remaining work.

        Raises:
            Exception: Only if the active users cannot be listed
        """
        if self.mailbox is None:
            logger.warning("Gmail not configured, ignoring push notification")
            return

        users = self.users.get_all_active_users()
        logger.info(f"Processing push notification for {len(users)} active users")

        for user in users:
            if not user.gmail_access_token:
                continue
            try:
                self._process_user(user)
            except Exception as e:
                logger.error(f"Failed to process push notification for user {user.line_user_id}: {e}", exc_info=True)

    def _process_user(self, user: User):
        token = token_for(user)
        try:
            messages = self.mailbox.get_unread_messages(token, self.push_limit)
        except Exception as e:
            logger.error(f"Failed to get unread messages for user {user.line_user_id}: {e}")
            return
        self._persist_refreshed_token(user, token)

        for msg in messages:
            try:
                if self.emails.get_email_by_gmail_message_id(user.id, msg.id) is not None:
                    continue
                self.emails.create_email(user.id, msg)
            except Exception as e:
                logger.error(f"Failed to track email {msg.id} for user {user.line_user_id}: {e}")
                continue

        for email in self.emails.get_unnotified_emails_by_user_id(user.id):
            msg = GmailMessage(
                id=email.gmail_message_id,
                sender=email.sender_email,
                subject=email.subject or "",
                snippet=email.body_preview or "",
                date=email.received_at,
            )

            try:
                self.chat.push_message(user.line_user_id, format_new_email(msg))
            except Exception as e:
                logger.error(f"Failed to send LINE notification to {user.line_user_id} for message {msg.id}: {e}")
                continue

            try:
                self.emails.mark_email_as_notified(user.id, email.gmail_message_id)
            except Exception as e:
                logger.error(f"Failed to mark email {email.gmail_message_id} as notified: {e}")
                continue

            logger.info(f"Push notification sent to {user.line_user_id} (message {msg.id}, subject: {msg.subject})")

    # ========================================================================
    # WATCH RENEWAL
    # ========================================================================

    def renew_watches(self) -> int:
        """
        Re-register the Gmail watch for every active, linked user.

        Gmail stops publishing after a watch expires (7 days), so this is
        meant to run periodically from the CLI.

        Returns:
            Number of watches successfully renewed
        """
        if self.mailbox is None:
            raise GmailUnavailableError("Gmail client not initialized")

        renewed = 0
        for user in self.users.get_all_active_users():
            if not user.gmail_access_token:
                continue
            token = token_for(user)
            try:
                self.mailbox.watch_mailbox(token, self.pubsub_topic)
                renewed += 1
            except Exception as e:
                logger.error(f"Failed to renew Gmail watch for user {user.line_user_id}: {e}")
                continue
            self._persist_refreshed_token(user, token)

        logger.info(f"Renewed {renewed} Gmail watches")
        return renewed

    def _persist_refreshed_token(self, user: User, token: OAuthToken):
        """Store the access token if the Gmail client refreshed it."""
        if token.access_token == user.gmail_access_token:
            return
        try:
            self.users.update_gmail_tokens(user.line_user_id, token)
        except Exception as e:
            logger.warning(f"Failed to persist refreshed token for user {user.line_user_id}: {e}")


def token_for(user: User) -> OAuthToken:
    """OAuth token stored on a user row."""
    return OAuthToken(
        access_token=user.gmail_access_token or "",
        refresh_token=user.gmail_refresh_token,
        expiry=user.gmail_token_expires_at,
    )
