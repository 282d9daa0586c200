"""
Chat Command Parser

Maps LINE text messages to bridge commands. Commands are exact matches
after trimming surrounding whitespace.
"""

import logging
from dataclasses import dataclass
from enum import Enum


logger = logging.getLogger(__name__)


CMD_GMAIL_AUTH = "Gmail連携"
CMD_UNREAD_MAIL = "未読mail"
CMD_MAIL_LIST = "mail一覧"


class CommandType(Enum):
    """Supported command types."""
    GMAIL_AUTH = "gmail_auth"  # Start the Gmail OAuth handshake
    UNREAD_MAIL = "unread_mail"  # List unread messages
    MAIL_LIST = "mail_list"  # List latest messages
    OTHER = "other"  # Free text: an auth code while pending, otherwise help


@dataclass
class Command:
    """
    Parsed chat command.

    Attributes:
        command_type: Type of command
        user_id: LINE user who sent the message
        text: Message text with surrounding whitespace removed
    """
    command_type: CommandType
    user_id: str
    text: str


COMMANDS = {
    CMD_GMAIL_AUTH: CommandType.GMAIL_AUTH,
    CMD_UNREAD_MAIL: CommandType.UNREAD_MAIL,
    CMD_MAIL_LIST: CommandType.MAIL_LIST,
}


def parse_command(user_id: str, text: str) -> Command:
    """
    Parse a text message into a Command.

    Args:
        user_id: LINE user ID
        text: Raw message text

    Returns:
        Command (OTHER when the text is not a known command)
    """
    stripped = (text or "").strip()
    command_type = COMMANDS.get(stripped, CommandType.OTHER)
    logger.debug(f"Parsed message from {user_id} as {command_type.value}")
    return Command(command_type=command_type, user_id=user_id, text=stripped)
