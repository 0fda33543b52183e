"""
Root test configuration and fixtures.

Every test gets a fresh SQLite database. Services commit their own
transactions, so the database is recreated rather than rolled back.

Shared fixtures:
- db_session: Session on a fresh in-memory database
- file_session_factory: Session factory on a file database, for tests that
  run work on background threads
- webhook_secret / sign_webhook: Svix-compatible signing helpers
- hubspot: MockHubSpotClient
- make_user: Factory for persisted users
"""

import base64
import os
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

from wealthiq.config.settings import reset_settings_cache
from wealthiq.db_base import Base
from wealthiq.models import HubSpotSyncLog, User  # noqa: F401 - registers tables
from wealthiq.tests.helpers.mock_hubspot_client import MockHubSpotClient
from wealthiq.tests.helpers.svix_signing import compute_svix_signature


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: tests that wait on background threads")


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Session factory on a file database shared safely across threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'wealthiq_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_settings():
    """Settings are cached per process; clear them around every test."""
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def hubspot():
    return MockHubSpotClient()


@pytest.fixture
def make_user(db_session):
    """Factory that persists a user and returns it."""

    def _make_user(
        email: str = None,
        first_name: str = "Jane",
        last_name: str = "Doe",
        hubspot_contact_id: str = None,
        created_at: datetime = None,
        clerk_user_id: str = None,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            clerk_user_id=clerk_user_id or f"user_{suffix}",
            email=email or f"{suffix}@example.com",
            first_name=first_name,
            last_name=last_name,
            hubspot_contact_id=hubspot_contact_id,
        )
        if created_at is not None:
            user.created_at = created_at
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def staggered_times():
    """Strictly increasing creation times, oldest first."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return [base + timedelta(minutes=i) for i in range(20)]


@pytest.fixture
def webhook_secret():
    """Test webhook secret."""
    return "whsec_" + base64.b64encode(b"test_secret_key_12345").decode()


@pytest.fixture
def sign_webhook(webhook_secret):
    """Return (headers) for a payload signed now, or at an explicit timestamp."""

    def _sign(payload: bytes, timestamp: int = None, svix_id: str = None) -> dict:
        svix_id = svix_id or f"msg_{uuid.uuid4().hex}"
        svix_timestamp = str(int(time.time()) if timestamp is None else timestamp)
        return {
            "svix-id": svix_id,
            "svix-timestamp": svix_timestamp,
            "svix-signature": compute_svix_signature(payload, svix_id, svix_timestamp, webhook_secret),
        }

    return _sign


@pytest.fixture
def sample_user_data():
    """Sample Clerk user data."""
    return {
        "id": "user_clerk_123",
        "email_addresses": [
            {"id": "idn_secondary", "email_address": "old@example.com"},
            {"id": "idn_primary", "email_address": "jane@example.com"},
        ],
        "primary_email_address_id": "idn_primary",
        "first_name": "Jane",
        "last_name": "Doe",
    }
