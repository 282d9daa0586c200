"""
Gmail API Client

Wraps the Google OAuth authorization code flow and the Gmail v1 API
(message listing, message fetch, history, mailbox watch) behind the
MailboxClient interface.
"""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.config import GmailConfig
from ..core.exceptions import ConfigurationError, GmailAPIError, GmailAuthenticationError
from ..core.interfaces import MailboxClient
from .models import GmailMessage, OAuthToken


logger = logging.getLogger(__name__)

UNREAD_LABEL = "UNREAD"
INBOX_LABEL = "INBOX"


class GmailClient(MailboxClient):
    """
    Gmail API client for per-user OAuth tokens.

    One client serves every LINE user: the OAuth client config (client id,
    secret, redirect URI) is shared, and each call builds a Gmail service from
    the caller's token.

    Usage:
        client = GmailClient(config.gmail)
        url = client.get_auth_url(state=line_user_id)
        token = client.exchange_code(code)
        messages = client.get_unread_messages(token, max_results=10)
    """

    USER_ID = "me"

    def __init__(self, config: GmailConfig, snippet_length: int = 100):
        """
        Initialize Gmail client.

        Args:
            config: GmailConfig with the OAuth client secrets file path
            snippet_length: Body previews longer than this are truncated

        Raises:
            ConfigurationError: If the credentials file is missing or invalid
        """
        self.config = config
        self.snippet_length = snippet_length

        try:
            flow = self._new_flow()
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Unable to load Gmail credentials file: {e}") from e

        self._client_config: Dict = flow.client_config
        self.redirect_uri = flow.redirect_uri

        logger.info(f"GmailClient initialized (redirect_uri: {self.redirect_uri})")

    def _new_flow(self) -> Flow:
        """Fresh OAuth flow; flows hold per-exchange state so they are never shared."""
        flow = Flow.from_client_secrets_file(
            self.config.credentials_path,
            scopes=self.config.scopes,
            autogenerate_code_verifier=False,
        )
        redirect_uris = flow.client_config.get("redirect_uris") or []
        flow.redirect_uri = self.config.redirect_uri or (redirect_uris[0] if redirect_uris else None)
        return flow

    # ========================================================================
    # OAUTH
    # ========================================================================

    def get_auth_url(self, state: str) -> str:
        """
        Get authorization URL for the user to grant Gmail read access.

        Args:
            state: Opaque value echoed back to the callback (the LINE user ID)

        Returns:
            Google-hosted consent URL
        """
        flow = self._new_flow()
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
            state=state,
        )
        return auth_url

    def exchange_code(self, code: str) -> OAuthToken:
        """
        Exchange authorization code for access and refresh tokens.

        Raises:
            GmailAuthenticationError: If Google rejects the code
        """
        flow = self._new_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.warning(f"Failed to exchange authorization code: {e}")
            raise GmailAuthenticationError(f"Failed to exchange code: {e}") from e

        credentials = flow.credentials
        return OAuthToken(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry=credentials.expiry,
        )

    # ========================================================================
    # SERVICE CONSTRUCTION
    # ========================================================================

    def _credentials(self, token: OAuthToken) -> Credentials:
        """Build google-auth credentials able to refresh themselves."""
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=self._client_config.get("token_uri", "https://oauth2.googleapis.com/token"),
            client_id=self._client_config.get("client_id"),
            client_secret=self._client_config.get("client_secret"),
            scopes=self.config.scopes,
            expiry=token.expiry,
        )

    def _service(self, token: OAuthToken):
        """
        Build a Gmail service for `token`, refreshing it first if expired.

        A refreshed access token is written back into `token`.
        """
        credentials = self._credentials(token)

        if credentials.expired and credentials.refresh_token:
            try:
                credentials.refresh(Request())
            except Exception as e:
                raise GmailAuthenticationError(f"Failed to refresh Gmail token: {e}") from e

            token.access_token = credentials.token
            token.expiry = credentials.expiry
            logger.info("Refreshed Gmail access token")

        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    # ========================================================================
    # MESSAGES
    # ========================================================================

    def get_latest_messages(self, token: OAuthToken, max_results: int) -> List[GmailMessage]:
        """
        Get the most recent messages regardless of read state.

        Raises:
            GmailAPIError: If listing or fetching fails
        """
        service = self._service(token)
        try:
            result = service.users().messages().list(userId=self.USER_ID, maxResults=max_results).execute()
        except HttpError as e:
            raise GmailAPIError(f"Unable to retrieve messages: {e}") from e

        return [self._fetch_message(service, m["id"]) for m in result.get("messages", [])]

    def get_unread_messages(self, token: OAuthToken, max_results: int) -> List[GmailMessage]:
        """
        Get unread messages.

        The label filter on list() can lag behind; each candidate is re-checked
        with a minimal fetch and messages that are no longer unread, or that
        cannot be read, are skipped.

        Raises:
            GmailAPIError: If listing fails
        """
        service = self._service(token)
        try:
            result = (
                service.users()
                .messages()
                .list(userId=self.USER_ID, labelIds=[UNREAD_LABEL], maxResults=max_results)
                .execute()
            )
        except HttpError as e:
            raise GmailAPIError(f"Unable to retrieve unread messages: {e}") from e

        messages = []
        for m in result.get("messages", []):
            try:
                minimal = (
                    service.users().messages().get(userId=self.USER_ID, id=m["id"], format="minimal").execute()
                )
                if UNREAD_LABEL not in minimal.get("labelIds", []):
                    continue
                messages.append(self._fetch_message(service, m["id"]))
            except (HttpError, GmailAPIError) as e:
                logger.warning(f"Skipping unreadable message {m['id']}: {e}")
                continue

        return messages

    def get_message(self, token: OAuthToken, message_id: str) -> GmailMessage:
        """Get a single message by ID."""
        return self._fetch_message(self._service(token), message_id)

    def get_history_messages(self, token: OAuthToken, start_history_id: int) -> List[GmailMessage]:
        """
        Get unread messages added to the mailbox since `start_history_id`.

        Raises:
            GmailAPIError: If the history listing fails
        """
        service = self._service(token)
        try:
            history = (
                service.users().history().list(userId=self.USER_ID, startHistoryId=start_history_id).execute()
            )
        except HttpError as e:
            raise GmailAPIError(f"Unable to retrieve history: {e}") from e

        message_ids = []
        for record in history.get("history", []):
            for added in record.get("messagesAdded", []):
                msg = added.get("message", {})
                if UNREAD_LABEL in msg.get("labelIds", []) and msg.get("id") not in message_ids:
                    message_ids.append(msg["id"])

        messages = []
        for message_id in message_ids:
            try:
                messages.append(self._fetch_message(service, message_id))
            except GmailAPIError as e:
                logger.warning(f"Skipping unreadable message {message_id}: {e}")

        return messages

    def _fetch_message(self, service, message_id: str) -> GmailMessage:
        """Fetch a full message and reduce it to its headers and snippet."""
        try:
            msg = service.users().messages().get(userId=self.USER_ID, id=message_id, format="full").execute()
        except HttpError as e:
            raise GmailAPIError(f"Unable to retrieve message {message_id}: {e}") from e

        headers = {h["name"]: h["value"] for h in msg.get("payload", {}).get("headers", [])}

        snippet = msg.get("snippet", "")
        if len(snippet) > self.snippet_length:
            snippet = snippet[: self.snippet_length] + "..."

        return GmailMessage(
            id=msg.get("id", message_id),
            thread_id=msg.get("threadId", ""),
            sender=headers.get("From", ""),
            to=headers.get("To", ""),
            subject=headers.get("Subject", ""),
            snippet=snippet,
            date=parse_message_date(headers.get("Date")),
        )

    # ========================================================================
    # WATCH
    # ========================================================================

    def watch_mailbox(self, token: OAuthToken, topic_name: str) -> dict:
        """
        Ask Gmail to publish INBOX changes to a Cloud Pub/Sub topic.

        Returns:
            Watch response with historyId and expiration

        Raises:
            GmailAPIError: If the watch request fails
        """
        service = self._service(token)
        body = {
            "topicName": topic_name,
            "labelIds": [INBOX_LABEL],
            "labelFilterAction": "include",
        }
        try:
            response = service.users().watch(userId=self.USER_ID, body=body).execute()
        except HttpError as e:
            raise GmailAPIError(f"Unable to watch mailbox: {e}") from e

        logger.info(f"Gmail watch registered (historyId: {response.get('historyId')}, expiration: {response.get('expiration')})")
        return response

    def test_connection(self) -> bool:
        """The client has no app-level token; a valid credentials file is all that can be checked."""
        return bool(self._client_config.get("client_id"))


def parse_message_date(value: Optional[str]) -> datetime:
    """
    Parse an RFC 2822 Date header into a naive UTC datetime.

    Missing or unparsable dates fall back to the current time.
    """
    if value:
        try:
            parsed = parsedate_to_datetime(value)
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except (TypeError, ValueError):
            logger.debug(f"Unparsable Date header: {value!r}")
    return datetime.utcnow()
