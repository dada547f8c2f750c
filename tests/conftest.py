"""
Shared fixtures: a fresh SQLite database per test, built from the ORM metadata.
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SIMILARITY_API_URL"] = ""
os.environ["SIMILARITY_UNAVAILABLE_POLICY"] = "pass"
os.environ["API_KEY"] = "test-api-key"

import pytest
from sqlalchemy.orm import sessionmaker

from cleanup_trust.db.database import Base, build_engine
from tests.support import FakeDispatcher


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'cleanup_trust.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()
