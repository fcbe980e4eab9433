"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from services.preference_store import PreferenceStore
from services.result_cache import ResultCache
from services.value_policy import ValueClassPolicy
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import NOW, preferences  # noqa: F401


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine with the schema."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="db")
def db_fixture(engine):
    """Create a session on the in-memory SQLite database for testing."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="policy")
def policy_fixture():
    """A value class policy private to the test, with the default whitelist."""
    return ValueClassPolicy()


@pytest.fixture(name="cache")
def cache_fixture():
    """An empty in-memory result cache."""
    return ResultCache()


@pytest.fixture(name="store")
def store_fixture(cache, policy):
    """A PreferenceStore whose clock is frozen at NOW."""
    return PreferenceStore(cache=cache, policy=policy, clock=lambda: NOW)
