"""
Pytest configuration and fixtures for Sheetsync tests.

Every test gets its own in-memory SQLite database with the importer tables
created, so ledger, schema profile and record assertions never leak between
tests and no Postgres server is needed.
"""

import os

# The app must not try to reach the configured Postgres server while tests import it.
os.environ["SKIP_DB_INIT"] = "1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sheetsync.api.dependencies import mapping_assistant_dependency
from sheetsync.db import models  # noqa: F401  registers the tables on Base.metadata
from sheetsync.db.session import Base, get_db
from sheetsync.domain.imports.llm_mapper import NullMappingAssistant
from sheetsync.main import app


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """
    TestClient wired to the test database with LLM mapping switched off.

    Tests that need a scripted assistant override
    ``mapping_assistant_dependency`` themselves.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[mapping_assistant_dependency] = lambda: NullMappingAssistant()
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()

