"""
Database models and management for the Gmail to LINE notification bridge.

This module contains the SQLAlchemy models and the DatabaseManager class
that owns the engine and session factory. Row-level operations live in
mailbridge.storage.
"""

from sqlalchemy import (
    create_engine,
    text,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import sessionmaker, relationship, declarative_base
from sqlalchemy.sql import func
from typing import Optional
import logging

Base = declarative_base()


# ============================================================================
# USERS
# ============================================================================


class User(Base):
    """LINE user linked (or being linked) to a Gmail mailbox."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    line_user_id = Column(String(255), unique=True, nullable=False, index=True)

    # Gmail OAuth credentials
    gmail_access_token = Column(Text)
    gmail_refresh_token = Column(Text)
    gmail_token_expires_at = Column(DateTime)  # Naive UTC, as returned by google-auth

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    emails = relationship("TrackedEmail", back_populates="user")

    @property
    def is_authenticated(self) -> bool:
        """True when the user holds a non-empty Gmail access token."""
        return bool(self.gmail_access_token)

    def __repr__(self):
        return f"<User(id={self.id}, line_user_id='{self.line_user_id}', active={self.is_active})>"


# ============================================================================
# TRACKED EMAILS
# ============================================================================


class TrackedEmail(Base):
    """
    Dedup ledger of Gmail messages already seen for a user.

    A row is created the first time a message is observed and is only ever
    updated to flip is_notified once the LINE push for it succeeded.
    """

    __tablename__ = "emails"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    gmail_message_id = Column(String(255), nullable=False)

    sender_email = Column(String(500), nullable=False, default="")
    subject = Column(Text)
    body_preview = Column(Text)
    received_at = Column(DateTime)

    is_notified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="emails")

    __table_args__ = (
        UniqueConstraint("user_id", "gmail_message_id", name="uq_emails_user_message"),
        Index("idx_emails_user_notified", "user_id", "is_notified"),
        Index("idx_emails_user_received", "user_id", "received_at"),
    )

    def __repr__(self):
        return f"<TrackedEmail(user_id={self.user_id}, gmail_message_id='{self.gmail_message_id}', notified={self.is_notified})>"


# ============================================================================
# DATABASE MANAGER
# ============================================================================


class DatabaseManager:
    """Owns the SQLAlchemy engine and session factory."""

    def __init__(self, connection_string: str):
        """Initialize database manager with connection string."""
        self.logger = logging.getLogger(__name__)
        self.connection_string = connection_string

        engine_kwargs = {"pool_pre_ping": True, "echo": False}
        if not connection_string.startswith("sqlite"):
            # SQLite's default pool doesn't accept sizing arguments
            engine_kwargs.update(pool_size=10, max_overflow=20)

        self.engine = create_engine(connection_string, **engine_kwargs)

        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(self.engine)
        self.logger.info("Database tables created successfully")

    def drop_tables(self):
        """Drop all database tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)
        self.logger.warning("All database tables dropped")

    def get_session(self):
        """Get a new database session."""
        return self.SessionLocal()

    def ping(self) -> bool:
        """Run a trivial query to verify connectivity."""
        session = self.get_session()
        try:
            session.execute(text("SELECT 1"))
            return True
        finally:
            session.close()

    def get_stats(self) -> dict:
        """Row counts for the status command and detailed health check."""
        session = self.get_session()
        try:
            return {
                "total_users": session.query(func.count(User.id)).scalar(),
                "active_users": session.query(func.count(User.id)).filter(User.is_active == True).scalar(),
                "tracked_emails": session.query(func.count(TrackedEmail.id)).scalar(),
                "pending_notifications": (
                    session.query(func.count(TrackedEmail.id)).filter(TrackedEmail.is_notified == False).scalar()
                ),
            }
        finally:
            session.close()


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

_db_manager_instance: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Get or create a shared DatabaseManager instance.

    Uses the connection string from the application config.
    Thread-safe due to SQLAlchemy's built-in connection pooling.

    Returns:
        DatabaseManager instance
    """
    global _db_manager_instance

    if _db_manager_instance is None:
        from .config import get_config
        config = get_config()
        _db_manager_instance = DatabaseManager(config.database.connection_string)

    return _db_manager_instance
