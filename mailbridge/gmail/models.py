"""
Plain data types exchanged with the Gmail client.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class GmailMessage:
    """Header summary of a single Gmail message."""

    id: str
    thread_id: str = ""
    sender: str = ""
    to: str = ""
    subject: str = ""
    snippet: str = ""
    date: Optional[datetime] = None


@dataclass
class OAuthToken:
    """
    Gmail OAuth credentials as persisted on the users table.

    GmailClient updates access_token and expiry in place when google-auth
    refreshes the credentials during a call, so callers can persist the
    new values afterwards.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None  # Naive UTC
