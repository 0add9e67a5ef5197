"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

import sys

import pytest
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from periodization.db.models import Base


@pytest.fixture(autouse=True)
def quiet_logger():
    """Keep test output readable: only warnings and above reach stderr."""
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    yield
    logger.remove()


@pytest.fixture(scope="function")
def db_engine(monkeypatch):
    """
    Provides an isolated in-memory SQLite database per test.

    This fixture:
    - Creates one in-memory SQLite connection shared across threads (StaticPool)
    - Creates all engine tables
    - Patches the engine getter so get_session() binds to the test database
    - Resets the cached session factory so it is rebuilt against the test engine

    Usage:
        def test_something(db_engine):
            with get_session() as session:
                ...
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    def mock_get_engine():
        return engine

    monkeypatch.setattr("periodization.db.session._get_engine", mock_get_engine)
    monkeypatch.setattr("periodization.db.session._SessionLocal", None)

    try:
        yield engine
    finally:
        engine.dispose()
