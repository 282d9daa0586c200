"""
Shared pytest fixtures.
"""

import logging

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mailbridge.core.database import Base, DatabaseManager


@pytest.fixture
def test_db():
    """Create temporary in-memory database for testing."""
    # One shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    # Create DatabaseManager manually without calling __init__
    db = object.__new__(DatabaseManager)
    db.logger = logging.getLogger(__name__)
    db.connection_string = "sqlite://"
    db.engine = engine
    db.SessionLocal = Session

    yield db

    Base.metadata.drop_all(engine)
    engine.dispose()
