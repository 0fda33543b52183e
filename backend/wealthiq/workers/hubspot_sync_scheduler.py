"""
Fire-and-forget scheduling of HubSpot reconciliation after signup.

The webhook request must not wait on HubSpot. A new user's reconciliation
is submitted to a small thread pool; each job opens its own database
session and HubSpot client, and contains every exception. Failures are
already recorded as failed rows in the sync audit log, so the job only
logs them.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from sqlalchemy.orm import Session

from wealthiq.config.settings import get_settings
from wealthiq.database.session import get_session_factory, session_scope
from wealthiq.integrations.hubspot.client import get_hubspot_client
from wealthiq.services.hubspot_sync import (
    DEFAULT_LOCK_TTL_SECONDS,
    HubSpotSyncService,
    ReconcileResult,
)

logger = logging.getLogger(__name__)


class HubSpotSyncScheduler:
    """
    Runs reconciliation jobs on background threads.

    Usage:
        scheduler = HubSpotSyncScheduler(session_factory, get_hubspot_client)
        scheduler.schedule(user.id, user.email, user.first_name, user.last_name)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client_factory: Callable[[], object],
        max_workers: int = 2,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ):
        self._session_factory = session_factory
        self._client_factory = client_factory
        self._lock_ttl_seconds = lock_ttl_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="hubspot-sync",
        )

    def schedule(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> "Future[Optional[ReconcileResult]]":
        """Submit a reconciliation and return immediately."""
        logger.info("Scheduling HubSpot sync", extra={"user_id": user_id})
        return self._executor.submit(self._run, user_id, email, first_name, last_name)

    def _run(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Optional[ReconcileResult]:
        try:
            client = self._client_factory()
        except Exception as e:
            logger.error(
                "HubSpot client unavailable, sync not attempted",
                extra={"user_id": user_id, "error": str(e)},
            )
            return None

        try:
            with session_scope(self._session_factory) as session:
                service = HubSpotSyncService(
                    session, client, lock_ttl_seconds=self._lock_ttl_seconds
                )
                return service.reconcile(user_id, email, first_name, last_name)
        except Exception as e:
            logger.error(
                "Background HubSpot sync failed",
                extra={"user_id": user_id, "error": str(e), "error_type": e.__class__.__name__},
            )
            return None
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                close()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_scheduler: Optional[HubSpotSyncScheduler] = None
_scheduler_lock = threading.Lock()


def _open_session() -> Session:
    return get_session_factory()()


def get_sync_scheduler() -> HubSpotSyncScheduler:
    """Get the process-wide scheduler, creating it on first use."""
    global _scheduler
    with _scheduler_lock:
        if _scheduler is None:
            settings = get_settings()
            _scheduler = HubSpotSyncScheduler(
                session_factory=_open_session,
                client_factory=get_hubspot_client,
                max_workers=settings.sync_workers,
                lock_ttl_seconds=settings.sync_lock_ttl_seconds,
            )
        return _scheduler


def shutdown_sync_scheduler(wait: bool = True) -> None:
    """Stop the process-wide scheduler, if one was started."""
    global _scheduler
    with _scheduler_lock:
        if _scheduler is not None:
            _scheduler.shutdown(wait=wait)
            _scheduler = None
