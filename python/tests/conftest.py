"""Pytest configuration and fixtures for precious tests.

Test isolation strategy:
- Every test gets a fresh in-memory SQLite database (StaticPool, so every
  session and the TestClient's worker threads share the one connection)
- The schema is created from the ORM metadata, not from migrations
- External services are replaced with in-process fakes: FakePushGateway for
  FCM, FakeIdentityVerifier for Apple/Google, a fixed-secret token service
"""

import os
import random
import sys
from collections.abc import Generator
from pathlib import Path

# Test defaults must be in place before precious.config is first read
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("PRECIOUS_ENV", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-000")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from precious.app import add_request_id_middleware, create_app
from precious.auth.tokens import SessionTokenService
from precious.config import clear_settings_cache
from precious.db.models import Base
from precious.db.session import create_session_factory
from precious.services.messages import MessageBank, default_message_bank
from tests.helpers import TEST_JWT_SECRET
from tests.support.fake_push import FakePushGateway
from tests.support.identity_keys import FakeIdentityVerifier


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Re-read settings for every test so env overrides never leak."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session for service-level tests."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def message_bank() -> MessageBank:
    """Shipped catalog with a seeded randomness source."""
    return default_message_bank(rng=random.Random(1234))


@pytest.fixture
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture
def token_service() -> SessionTokenService:
    return SessionTokenService(secret=TEST_JWT_SECRET)


@pytest.fixture
def apple_identity() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
def google_identity() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
def app(
    session_factory: sessionmaker[Session],
    token_service: SessionTokenService,
    apple_identity: FakeIdentityVerifier,
    google_identity: FakeIdentityVerifier,
    push_gateway: FakePushGateway,
    message_bank: MessageBank,
) -> FastAPI:
    """Fully wired app with auth and request-id middleware and test collaborators."""
    app = create_app(
        session_factory=session_factory,
        token_service=token_service,
        apple_identity_verifier=apple_identity,
        google_identity_verifier=google_identity,
        push_gateway=push_gateway,
        message_bank=message_bank,
    )
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client (runs the app lifespan)."""
    with TestClient(app) as client:
        yield client
