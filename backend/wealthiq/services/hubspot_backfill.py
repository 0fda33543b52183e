"""
Bulk backfill of HubSpot contacts for users that were never linked.

Users created before the integration existed, or whose signup sync
failed, have no hubspot_contact_id. The backfill runner reconciles them
one at a time, oldest first, spacing remote calls so the batch stays
under HubSpot's rate limit (100 requests per 10 seconds for private apps).

Pacing applies to remote calls only; local database work never sleeps.
One user's failure is recorded and the batch continues.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from wealthiq.models.hubspot_sync_log import SyncAction
from wealthiq.models.user import User
from wealthiq.services.hubspot_sync import HubSpotSyncService, missing_contact_filter

logger = logging.getLogger(__name__)

DEFAULT_MIN_REQUEST_INTERVAL = 0.1
DEFAULT_BACKFILL_LIMIT = 50


class ThrottledContactClient:
    """
    Wraps a HubSpot client so consecutive calls are at least
    min_interval seconds apart.
    """

    def __init__(
        self,
        client,
        min_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None

    def _wait_turn(self) -> None:
        if self._last_call is not None and self.min_interval > 0:
            remaining = self.min_interval - (self._clock() - self._last_call)
            if remaining > 0:
                self._sleep(remaining)
        self._last_call = self._clock()

    def search_contact_by_email(self, email: str):
        self._wait_turn()
        return self._client.search_contact_by_email(email)

    def create_contact(self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None):
        self._wait_turn()
        return self._client.create_contact(email, first_name, last_name)

    def update_contact(self, contact_id: str, properties: Dict[str, Any]):
        self._wait_turn()
        return self._client.update_contact(contact_id, properties)


@dataclass
class BackfillItemResult:
    user_id: str
    email: str
    status: str
    contact_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "userId": self.user_id,
            "email": self.email,
            "status": self.status,
        }
        if self.contact_id:
            result["contactId"] = self.contact_id
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class BackfillSummary:
    processed: int = 0
    synced: int = 0
    errors: int = 0
    results: List[BackfillItemResult] = field(default_factory=list)

    @property
    def success_rate(self) -> str:
        if self.processed == 0:
            return "0%"
        return f"{self.synced / self.processed * 100:.2f}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "synced": self.synced,
            "errors": self.errors,
            "successRate": self.success_rate,
        }


class HubSpotBackfillRunner:
    """
    Reconciles users without a HubSpot contact in a paced sequential batch.

    Usage:
        runner = HubSpotBackfillRunner(session, get_hubspot_client())
        summary = runner.run(limit=50)
    """

    def __init__(
        self,
        session: Session,
        client,
        min_request_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        lock_ttl_seconds: Optional[int] = None,
    ):
        self.session = session
        self.client = ThrottledContactClient(client, min_request_interval, sleep, clock)
        service_kwargs = {}
        if lock_ttl_seconds is not None:
            service_kwargs["lock_ttl_seconds"] = lock_ttl_seconds
        self.sync_service = HubSpotSyncService(session, self.client, **service_kwargs)

    def users_without_contact(self, limit: int) -> List[User]:
        return (
            self.session.query(User)
            .filter(missing_contact_filter())
            .order_by(User.created_at.asc(), User.id.asc())
            .limit(limit)
            .all()
        )

    def run(self, limit: int = DEFAULT_BACKFILL_LIMIT) -> BackfillSummary:
        # Snapshot identities up front; each reconcile commits and expires the ORM rows
        targets = [
            (user.id, user.email, user.first_name, user.last_name)
            for user in self.users_without_contact(limit)
        ]
        summary = BackfillSummary()

        logger.info("Starting HubSpot backfill", extra={"limit": limit, "users": len(targets)})

        for user_id, email, first_name, last_name in targets:
            summary.processed += 1
            try:
                result = self.sync_service.reconcile(
                    user_id,
                    email,
                    first_name,
                    last_name,
                    action=SyncAction.BULK_BACKFILL,
                )
            except Exception as e:
                summary.errors += 1
                message = getattr(e, "message", None) or str(e)
                summary.results.append(
                    BackfillItemResult(user_id=user_id, email=email, status="error", error=message)
                )
                logger.warning(
                    "HubSpot backfill failed for user",
                    extra={"user_id": user_id, "error": message},
                )
                continue

            summary.synced += 1
            summary.results.append(
                BackfillItemResult(
                    user_id=user_id,
                    email=email,
                    status="success",
                    contact_id=result.contact_id,
                )
            )

        logger.info(
            "HubSpot backfill completed",
            extra={
                "processed": summary.processed,
                "synced": summary.synced,
                "errors": summary.errors,
            },
        )
        return summary
