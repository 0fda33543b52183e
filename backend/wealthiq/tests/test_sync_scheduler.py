"""
Tests for fire-and-forget HubSpot reconciliation.

Tests cover:
- User creation returns before the background reconciliation finishes
- Background failures are contained and leave a failed audit entry
- Client construction failures are contained
"""

import threading

import pytest

from wealthiq.integrations.hubspot.exceptions import HubSpotConnectionError
from wealthiq.models.hubspot_sync_log import HubSpotSyncLog
from wealthiq.models.user import User
from wealthiq.services.user_lifecycle import ClerkIdentity, UserLifecycleManager
from wealthiq.tests.helpers.mock_hubspot_client import MockHubSpotClient
from wealthiq.workers.hubspot_sync_scheduler import HubSpotSyncScheduler

pytestmark = pytest.mark.slow


class BlockingHubSpotClient(MockHubSpotClient):
    """Search blocks until released, to prove the caller does not wait."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def search_contact_by_email(self, email):
        assert self.release.wait(timeout=5), "search was never released"
        return super().search_contact_by_email(email)


@pytest.fixture
def make_scheduler(file_session_factory):
    schedulers = []

    def _make(client):
        scheduler = HubSpotSyncScheduler(file_session_factory, lambda: client, max_workers=1)
        schedulers.append(scheduler)
        return scheduler

    yield _make
    for scheduler in schedulers:
        scheduler.shutdown(wait=True)


class TestHubSpotSyncScheduler:

    def test_create_does_not_wait_for_reconciliation(self, file_session_factory, make_scheduler, sample_user_data):
        client = BlockingHubSpotClient()
        scheduler = make_scheduler(client)
        futures = []
        original_schedule = scheduler.schedule

        def capture(*args, **kwargs):
            future = original_schedule(*args, **kwargs)
            futures.append(future)
            return future

        scheduler.schedule = capture
        session = file_session_factory()

        user = UserLifecycleManager(session, scheduler=scheduler).create(
            ClerkIdentity.from_event_data(sample_user_data)
        )

        # create() returned while the remote search is still blocked
        assert len(futures) == 1
        assert not futures[0].done()

        client.release.set()
        result = futures[0].result(timeout=5)

        assert result.is_new_contact is True
        session.expire_all()
        assert session.get(User, user.id).hubspot_contact_id == result.contact_id
        assert client.closed is True
        session.close()

    def test_background_failure_is_contained_and_logged(self, file_session_factory, make_scheduler):
        client = MockHubSpotClient()
        client.fail("search", "down@example.com", HubSpotConnectionError("Connection error: refused"))
        scheduler = make_scheduler(client)
        session = file_session_factory()
        user = User(clerk_user_id="user_down", email="down@example.com")
        session.add(user)
        session.commit()

        future = scheduler.schedule(user.id, user.email, None, None)

        assert future.result(timeout=5) is None
        statuses = [
            row.status
            for row in session.query(HubSpotSyncLog)
            .filter(HubSpotSyncLog.user_id == user.id)
            .order_by(HubSpotSyncLog.id)
        ]
        assert statuses == ["started", "failed"]
        session.close()

    def test_client_factory_failure_is_contained(self, file_session_factory):
        def no_client():
            raise ValueError("HubSpot API key is required")

        scheduler = HubSpotSyncScheduler(file_session_factory, no_client, max_workers=1)
        try:
            future = scheduler.schedule("user-1", "a@example.com")
            assert future.result(timeout=5) is None
        finally:
            scheduler.shutdown()
