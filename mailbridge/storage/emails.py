"""
Tracked email repository.

The (user_id, gmail_message_id) pair is unique, so the same Gmail message is
tracked (and therefore pushed to LINE) at most once per user.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.database import DatabaseManager, TrackedEmail
from ..core.exceptions import DatabaseError
from ..core.interfaces import MessageStore
from ..gmail.models import GmailMessage


logger = logging.getLogger(__name__)


class EmailRepository(MessageStore):
    """SQLAlchemy-backed MessageStore."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def create_email(self, user_id: int, message: GmailMessage) -> Optional[TrackedEmail]:
        """
        Track a newly observed Gmail message as not yet notified.

        Returns:
            The new row, or None if the message was already tracked for this
            user (a concurrent delivery may have inserted it first)
        """
        session = self.db.get_session()
        try:
            email = TrackedEmail(
                user_id=user_id,
                gmail_message_id=message.id,
                sender_email=message.sender or "",
                subject=message.subject,
                body_preview=message.snippet,
                received_at=message.date,
                is_notified=False,
            )
            session.add(email)
            session.commit()
            session.refresh(email)
            logger.debug(f"Tracked email {message.id} for user_id={user_id}")
            return email
        except IntegrityError:
            session.rollback()
            logger.info(f"Email {message.id} already tracked for user_id={user_id}")
            return None
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create email record {message.id}: {e}")
            raise DatabaseError(f"Failed to create email: {e}") from e
        finally:
            session.close()

    def get_email_by_gmail_message_id(self, user_id: int, gmail_message_id: str) -> Optional[TrackedEmail]:
        """Find a tracked email by its Gmail message ID."""
        session = self.db.get_session()
        try:
            return (
                session.query(TrackedEmail)
                .filter(TrackedEmail.user_id == user_id, TrackedEmail.gmail_message_id == gmail_message_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up email {gmail_message_id}: {e}")
            raise DatabaseError(f"Failed to get email by gmail message id: {e}") from e
        finally:
            session.close()

    def get_emails_by_user_id(self, user_id: int) -> List[TrackedEmail]:
        """All tracked emails of a user, newest first."""
        session = self.db.get_session()
        try:
            return (
                session.query(TrackedEmail)
                .filter(TrackedEmail.user_id == user_id)
                .order_by(TrackedEmail.received_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get emails for user_id={user_id}: {e}")
            raise DatabaseError(f"Failed to get emails by user id: {e}") from e
        finally:
            session.close()

    def get_unnotified_emails_by_user_id(self, user_id: int) -> List[TrackedEmail]:
        """Tracked emails not yet pushed to LINE, oldest first."""
        session = self.db.get_session()
        try:
            return (
                session.query(TrackedEmail)
                .filter(TrackedEmail.user_id == user_id, TrackedEmail.is_notified == False)
                .order_by(TrackedEmail.received_at.asc(), TrackedEmail.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get unnotified emails for user_id={user_id}: {e}")
            raise DatabaseError(f"Failed to get unnotified emails: {e}") from e
        finally:
            session.close()

    def get_recent_emails(self, user_id: int, since: datetime) -> List[TrackedEmail]:
        """Tracked emails received at or after `since`, newest first."""
        session = self.db.get_session()
        try:
            return (
                session.query(TrackedEmail)
                .filter(TrackedEmail.user_id == user_id, TrackedEmail.received_at >= since)
                .order_by(TrackedEmail.received_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get recent emails for user_id={user_id}: {e}")
            raise DatabaseError(f"Failed to get recent emails: {e}") from e
        finally:
            session.close()

    def mark_email_as_notified(self, user_id: int, gmail_message_id: str):
        """Flip is_notified for one tracked email."""
        session = self.db.get_session()
        try:
            updated = (
                session.query(TrackedEmail)
                .filter(TrackedEmail.user_id == user_id, TrackedEmail.gmail_message_id == gmail_message_id)
                .update({TrackedEmail.is_notified: True}, synchronize_session=False)
            )
            session.commit()
            if updated == 0:
                logger.warning(f"No tracked email {gmail_message_id} for user_id={user_id} to mark notified")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to mark email {gmail_message_id} as notified: {e}")
            raise DatabaseError(f"Failed to mark email as notified: {e}") from e
        finally:
            session.close()

    def delete_emails_by_user_id(self, user_id: int) -> int:
        """
        Forget every tracked email of a user (forced reset).

        Returns:
            Number of rows deleted
        """
        session = self.db.get_session()
        try:
            deleted = session.query(TrackedEmail).filter(TrackedEmail.user_id == user_id).delete()
            session.commit()
            logger.info(f"Deleted {deleted} tracked emails for user_id={user_id}")
            return deleted
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete emails for user_id={user_id}: {e}")
            raise DatabaseError(f"Failed to delete emails: {e}") from e
        finally:
            session.close()
