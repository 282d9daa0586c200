"""
User repository.

Persists the association between a LINE user and their Gmail OAuth tokens.
Users are never hard-deleted; deactivate_user only flips is_active.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..core.database import DatabaseManager, User
from ..core.exceptions import DatabaseError
from ..core.interfaces import UserStore
from ..gmail.models import OAuthToken


logger = logging.getLogger(__name__)


class UserRepository(UserStore):
    """SQLAlchemy-backed UserStore."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def create_user(self, line_user_id: str) -> User:
        """Create an active user with no Gmail tokens yet."""
        session = self.db.get_session()
        try:
            user = User(line_user_id=line_user_id, is_active=True)
            session.add(user)
            session.commit()
            session.refresh(user)
            logger.info(f"Created user: {line_user_id}")
            return user
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create user {line_user_id}: {e}")
            raise DatabaseError(f"Failed to create user: {e}") from e
        finally:
            session.close()

    def get_user_by_line_user_id(self, line_user_id: str) -> Optional[User]:
        """Find user by LINE user ID."""
        session = self.db.get_session()
        try:
            return session.query(User).filter(User.line_user_id == line_user_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to get user {line_user_id}: {e}")
            raise DatabaseError(f"Failed to get user by LINE user id: {e}") from e
        finally:
            session.close()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Find user by internal ID."""
        session = self.db.get_session()
        try:
            return session.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get user id={user_id}: {e}")
            raise DatabaseError(f"Failed to get user by id: {e}") from e
        finally:
            session.close()

    def update_gmail_tokens(self, line_user_id: str, token: OAuthToken, activate: bool = False):
        """
        Store (or replace) the Gmail tokens of a user.

        An empty refresh token in `token` keeps the stored one: Google only
        returns a refresh token on the first consent and never on refresh.

        activate=True also clears a previous deactivation (a fresh Gmail link).
        """
        session = self.db.get_session()
        try:
            user = session.query(User).filter(User.line_user_id == line_user_id).first()
            if user is None:
                raise DatabaseError(f"User not found: {line_user_id}")

            user.gmail_access_token = token.access_token or None
            if token.refresh_token:
                user.gmail_refresh_token = token.refresh_token
            user.gmail_token_expires_at = token.expiry
            if activate:
                user.is_active = True
            session.commit()
            logger.info(f"Updated Gmail tokens for user: {line_user_id}")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to update Gmail tokens for {line_user_id}: {e}")
            raise DatabaseError(f"Failed to update gmail tokens: {e}") from e
        finally:
            session.close()

    def get_all_active_users(self) -> List[User]:
        """Get all users with is_active set."""
        session = self.db.get_session()
        try:
            return session.query(User).filter(User.is_active == True).order_by(User.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to get active users: {e}")
            raise DatabaseError(f"Failed to get all active users: {e}") from e
        finally:
            session.close()

    def get_all_users(self) -> List[User]:
        """Get every user, active or not."""
        session = self.db.get_session()
        try:
            return session.query(User).order_by(User.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to get users: {e}")
            raise DatabaseError(f"Failed to get all users: {e}") from e
        finally:
            session.close()

    def deactivate_user(self, line_user_id: str) -> bool:
        """
        Mark a user inactive so push notifications skip them.

        Returns:
            True if the user existed and was active
        """
        session = self.db.get_session()
        try:
            user = session.query(User).filter(User.line_user_id == line_user_id).first()
            if user is None or not user.is_active:
                return False

            user.is_active = False
            session.commit()
            logger.info(f"Deactivated user: {line_user_id}")
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to deactivate user {line_user_id}: {e}")
            raise DatabaseError(f"Failed to deactivate user: {e}") from e
        finally:
            session.close()
