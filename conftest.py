"""
Root conftest.py for pytest configuration and shared fixtures.
"""
import os
import pytest
from typing import Generator
from unittest.mock import Mock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test environment BEFORE importing any app code
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"

# Background loops are driven explicitly by the tests
os.environ["INGESTION_ENABLED"] = "false"
os.environ["ASSIGNMENT_ENABLED"] = "false"


@pytest.fixture(scope="session")
def test_db_engine():
    """
    Create a test database engine using SQLite in-memory.
    Session-scoped so it's created once for all tests.
    """
    from services.bridge.app.db import Base
    # Import all models so they're registered with Base.metadata
    from services.bridge.app.models.identity_mappings import IdentityMapping
    from services.bridge.app.models.update_offsets import UpdateOffset

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Required for SQLite in-memory
        echo=False,
    )

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.
    Function-scoped so each test gets a fresh session with rollback.
    """
    connection = test_db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(bind=connection)
    session = SessionLocal()

    # Begin a nested transaction (using SAVEPOINT)
    nested = connection.begin_nested()

    # If the application code calls session.commit(), it will only commit
    # the nested transaction (SAVEPOINT), not the outer transaction
    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(session, transaction):
        if transaction.nested and not transaction._parent.nested:
            session.expire_all()
            session.begin_nested()

    yield session

    # Rollback everything (test changes are discarded)
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(test_db_engine, db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a FastAPI test client with database overrides.
    """
    import services.bridge.app.db as db_module
    from services.bridge.app.main import app
    from services.bridge.app.api.deps import get_db_session

    original_engine = db_module._engine
    original_sessionmaker = db_module._SessionLocal

    # The app gets its own engine: with StaticPool, closing an app connection
    # issues ROLLBACK on the DBAPI connection shared with db_session, which
    # would discard the test's outer transaction and savepoints.
    from services.bridge.app.db import Base
    app_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(app_engine)

    db_module._engine = app_engine
    db_module._SessionLocal = sessionmaker(bind=app_engine, expire_on_commit=False)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close, managed by db_session fixture

    app.dependency_overrides[get_db_session] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    db_module._engine = original_engine
    db_module._SessionLocal = original_sessionmaker
    app_engine.dispose()


@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_telegram():
    """TelegramClient stand-in recording sent messages."""
    telegram = Mock()
    telegram.get_updates.return_value = []
    telegram.send_message.return_value = {"ok": True}
    return telegram


@pytest.fixture
def mock_gitlab():
    """GitLabClient stand-in; tests fill in users, merge requests and members."""
    return Mock()
