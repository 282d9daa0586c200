"""
Custom exceptions for the Gmail to LINE notification bridge.
"""


class MailBridgeException(Exception):
    """Base exception for all custom exceptions."""

    pass


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(MailBridgeException):
    """Configuration is invalid or missing."""

    pass


# ============================================================================
# Gmail API Exceptions
# ============================================================================


class GmailAPIError(MailBridgeException):
    """Error communicating with the Gmail API."""

    pass


class GmailAuthenticationError(GmailAPIError):
    """OAuth code exchange or token refresh failed."""

    pass


class GmailUnavailableError(GmailAPIError):
    """Gmail credentials are not configured, so no mailbox client exists."""

    pass


# ============================================================================
# LINE Messaging API Exceptions
# ============================================================================


class LineAPIError(MailBridgeException):
    """Error communicating with the LINE Messaging API."""

    pass


class LineRateLimitError(LineAPIError):
    """LINE API rate limit exceeded."""

    pass


class InvalidSignatureError(MailBridgeException):
    """Webhook request signature is missing or does not match."""

    pass


# ============================================================================
# Database Exceptions
# ============================================================================


class DatabaseError(MailBridgeException):
    """Database operation failed."""

    pass
