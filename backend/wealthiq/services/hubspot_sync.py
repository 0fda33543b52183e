"""
HubSpot contact reconciliation for local users.

This service handles:
- Reconciliation: find-or-create the HubSpot contact for a user's email
  and link its ID on the user record
- Explicit retries of a user's reconciliation
- Read-only projections over the sync audit trail (status, history,
  statistics, users still missing a contact)

Email is the natural deduplication key across systems this application
does not control. Every attempt searches HubSpot by email before creating,
so re-running reconciliation is idempotent: it never creates a second
contact for an email that already has one, as long as HubSpot's search is
consistent at call time.

There are no automatic retries here. Callers decide whether a failure is
fatal (admin-triggered sync) or only logged (post-signup trigger).

Data flows:
1. user.created webhook -> scheduler (background) -> reconcile
2. Admin/user retry -> retry_sync_for_user -> reconcile
3. Bulk backfill -> HubSpotBackfillRunner -> reconcile
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from wealthiq.integrations.hubspot.exceptions import HubSpotConflictError, HubSpotError
from wealthiq.integrations.hubspot.models import build_contact_properties
from wealthiq.models.base import utcnow
from wealthiq.models.hubspot_sync_log import HubSpotSyncLog, SyncAction, SyncStatus
from wealthiq.models.user import User
from wealthiq.services.sync_audit_log import SqlSyncAuditLog, SyncAuditLog

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 120


# =============================================================================
# Errors
# =============================================================================

class HubSpotSyncError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        cause: Optional[HubSpotError] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.cause = cause
        self.status_code = cause.status_code if cause else None
        self.correlation_id = cause.correlation_id if cause else None
        self.response = cause.response if cause else {}


class RemoteSearchFailed(HubSpotSyncError):
    """HubSpot contact search failed (network or API error)."""
    pass


class RemoteCreateFailed(HubSpotSyncError):
    """HubSpot contact creation failed (network or validation error)."""
    pass


class RemoteUpdateFailed(HubSpotSyncError):
    """HubSpot contact update failed. Non-fatal during reconciliation."""
    pass


class SyncUserNotFound(HubSpotSyncError):
    """No local user with the requested internal ID."""
    pass


class SyncInProgress(HubSpotSyncError):
    """Another reconciliation for this user holds the sync lease."""
    pass


# =============================================================================
# Results
# =============================================================================

@dataclass
class ReconcileResult:
    """Outcome of a successful reconciliation."""
    contact_id: str
    is_new_contact: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"contactId": self.contact_id, "isNewContact": self.is_new_contact}


@dataclass
class UserSyncStatus:
    """Current HubSpot linkage of a user plus the most recent audit row."""
    has_hubspot_contact: bool
    hubspot_contact_id: Optional[str]
    last_sync_log: Optional[HubSpotSyncLog] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasHubSpotContact": self.has_hubspot_contact,
            "hubspotContactId": self.hubspot_contact_id,
            "lastSyncLog": self.last_sync_log.to_dict() if self.last_sync_log else None,
        }


@dataclass
class SyncStatistics:
    """Aggregate linkage and audit counts for operators."""
    total_users: int
    users_with_contact: int
    status_counts: Dict[str, int] = field(default_factory=dict)
    recent_logs: List[HubSpotSyncLog] = field(default_factory=list)

    @property
    def users_without_contact(self) -> int:
        return self.total_users - self.users_with_contact

    @property
    def sync_percentage(self) -> str:
        if self.total_users == 0:
            return "0%"
        return f"{self.users_with_contact / self.total_users * 100:.2f}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userStats": {
                "totalUsers": self.total_users,
                "usersWithHubSpotContacts": self.users_with_contact,
                "usersWithoutHubSpotContacts": self.users_without_contact,
                "syncPercentage": self.sync_percentage,
            },
            "syncStats": self.status_counts,
            "recentSyncLogs": [log.to_dict() for log in self.recent_logs],
        }


def missing_contact_filter():
    """Users that have never been linked to a HubSpot contact."""
    return or_(User.hubspot_contact_id.is_(None), User.hubspot_contact_id == "")


def _failure_details(error: Exception) -> Dict[str, Any]:
    """Captured error data written to the audit log on failure."""
    details: Dict[str, Any] = {
        "error": str(error) or error.__class__.__name__,
        "errorType": error.__class__.__name__,
    }
    source = error.cause if isinstance(error, HubSpotSyncError) and error.cause else error
    if isinstance(source, HubSpotError):
        details["errorResponse"] = source.response or None
        details["correlationId"] = source.correlation_id
        details["statusCode"] = source.status_code
    return details


class HubSpotSyncService:
    """
    Reconciles local users with HubSpot contacts.

    The HubSpot client is injected so tests and the backfill runner can
    substitute fakes or throttled wrappers. It must provide
    search_contact_by_email, create_contact and update_contact.
    """

    def __init__(
        self,
        session: Session,
        client,
        audit_log: Optional[SyncAuditLog] = None,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ):
        self.session = session
        self.client = client
        self.audit_log = audit_log or SqlSyncAuditLog(session)
        self.lock_ttl_seconds = lock_ttl_seconds

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        action: SyncAction = SyncAction.USER_SIGNUP_SYNC,
    ) -> ReconcileResult:
        """
        Find or create the HubSpot contact for a user and link it.

        Raises:
            SyncUserNotFound: No user with this internal ID
            SyncInProgress: Another reconciliation holds the user's lease
            RemoteSearchFailed / RemoteCreateFailed: HubSpot call failed
        """
        self._acquire_lease(user_id)
        try:
            return self._reconcile_locked(user_id, email, first_name, last_name, action)
        finally:
            self._release_lease(user_id)

    def _reconcile_locked(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str],
        last_name: Optional[str],
        action: SyncAction,
    ) -> ReconcileResult:
        attempt_id = str(uuid.uuid4())
        snapshot = {"email": email, "firstName": first_name, "lastName": last_name}

        self.audit_log.append(user_id, action, SyncStatus.STARTED, dict(snapshot), attempt_id)
        logger.info(
            "Starting HubSpot sync",
            extra={"user_id": user_id, "attempt_id": attempt_id, "action": SyncAction(action).value},
        )

        try:
            existing = self._search(user_id, email)

            if existing is not None:
                contact_id = existing.id
                is_new_contact = False
                details = {**snapshot, "contactId": contact_id, "isNewContact": False}

                refresh_error = self._refresh_contact(user_id, contact_id, email, first_name, last_name)
                if refresh_error is not None:
                    details["nameRefreshError"] = refresh_error.message

                self.audit_log.append(
                    user_id, action, SyncStatus.EXISTING_CONTACT_FOUND, details, attempt_id
                )
                logger.info(
                    "Found existing HubSpot contact",
                    extra={"user_id": user_id, "contact_id": contact_id},
                )
            else:
                contact_id, is_new_contact = self._create(user_id, email, first_name, last_name)
                status = (
                    SyncStatus.NEW_CONTACT_CREATED if is_new_contact
                    else SyncStatus.EXISTING_CONTACT_FOUND
                )
                details = {**snapshot, "contactId": contact_id, "isNewContact": is_new_contact}
                if not is_new_contact:
                    details["resolvedFromConflict"] = True
                self.audit_log.append(user_id, action, status, details, attempt_id)

            user = self.session.get(User, user_id)
            if user is None:
                raise SyncUserNotFound(f"User not found: {user_id}", user_id=user_id)
            user.hubspot_contact_id = contact_id

            # Commits the contact link together with the terminal entry
            self.audit_log.append(
                user_id,
                action,
                SyncStatus.COMPLETED,
                {
                    **snapshot,
                    "contactId": contact_id,
                    "isNewContact": is_new_contact,
                    "userUpdated": True,
                },
                attempt_id,
            )

        except Exception as e:
            self.session.rollback()
            logger.error(
                "HubSpot sync failed",
                extra={
                    "user_id": user_id,
                    "attempt_id": attempt_id,
                    "error": str(e),
                    "error_type": e.__class__.__name__,
                },
            )
            self.audit_log.append(
                user_id,
                action,
                SyncStatus.FAILED,
                {**snapshot, **_failure_details(e)},
                attempt_id,
            )
            raise

        logger.info(
            "HubSpot sync completed",
            extra={
                "user_id": user_id,
                "contact_id": contact_id,
                "is_new_contact": is_new_contact,
            },
        )
        return ReconcileResult(contact_id=contact_id, is_new_contact=is_new_contact)

    def _search(self, user_id: str, email: str):
        try:
            return self.client.search_contact_by_email(email)
        except HubSpotError as e:
            raise RemoteSearchFailed(
                f"HubSpot contact search failed: {e.message}", user_id=user_id, cause=e
            ) from e

    def _create(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Tuple[str, bool]:
        """Create the contact; a 409 naming the existing ID links that contact instead."""
        try:
            return self.client.create_contact(email, first_name, last_name), True
        except HubSpotConflictError as e:
            if e.existing_id:
                logger.warning(
                    "HubSpot reported an existing contact on create",
                    extra={"user_id": user_id, "contact_id": e.existing_id},
                )
                return e.existing_id, False
            raise RemoteCreateFailed(
                f"HubSpot contact creation failed: {e.message}", user_id=user_id, cause=e
            ) from e
        except HubSpotError as e:
            raise RemoteCreateFailed(
                f"HubSpot contact creation failed: {e.message}", user_id=user_id, cause=e
            ) from e

    def _refresh_contact(
        self,
        user_id: str,
        contact_id: str,
        email: str,
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Optional[RemoteUpdateFailed]:
        """Best-effort refresh of the name fields on an existing contact."""
        try:
            self.client.update_contact(
                contact_id, build_contact_properties(email, first_name, last_name)
            )
            return None
        except Exception as e:
            cause = e if isinstance(e, HubSpotError) else None
            message = cause.message if cause else str(e)
            logger.warning(
                "Could not update existing HubSpot contact",
                extra={"user_id": user_id, "contact_id": contact_id, "error": message},
            )
            return RemoteUpdateFailed(
                f"HubSpot contact update failed: {message}", user_id=user_id, cause=cause
            )

    # =========================================================================
    # Per-user lease
    # =========================================================================

    def _acquire_lease(self, user_id: str) -> None:
        """
        Take the user's sync lease with a conditional update.

        The lease is free when sync_locked_at is null or older than the TTL,
        so a crashed worker cannot block the user forever.
        """
        now = utcnow()
        cutoff = now - timedelta(seconds=self.lock_ttl_seconds)
        result = self.session.execute(
            update(User)
            .where(User.id == user_id)
            .where(or_(User.sync_locked_at.is_(None), User.sync_locked_at < cutoff))
            .values(sync_locked_at=now, updated_at=User.updated_at)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()

        if result.rowcount == 1:
            return

        if self.session.query(User.id).filter(User.id == user_id).first() is None:
            raise SyncUserNotFound(f"User not found: {user_id}", user_id=user_id)

        logger.warning("HubSpot sync already in progress", extra={"user_id": user_id})
        raise SyncInProgress(f"Sync already in progress for user {user_id}", user_id=user_id)

    def _release_lease(self, user_id: str) -> None:
        self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(sync_locked_at=None, updated_at=User.updated_at)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()

    # =========================================================================
    # Retry and read-only projections
    # =========================================================================

    def _get_user(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise SyncUserNotFound(f"User not found: {user_id}", user_id=user_id)
        return user

    def retry_sync_for_user(
        self,
        user_id: str,
        action: SyncAction = SyncAction.MANUAL_RETRY,
    ) -> ReconcileResult:
        """Re-run reconciliation with the user's current email and name."""
        user = self._get_user(user_id)
        logger.info("Retrying HubSpot sync", extra={"user_id": user_id})
        return self.reconcile(
            user.id,
            user.email,
            user.first_name or None,
            user.last_name or None,
            action=action,
        )

    def get_user_sync_status(self, user_id: str) -> UserSyncStatus:
        user = self._get_user(user_id)
        return UserSyncStatus(
            has_hubspot_contact=user.has_hubspot_contact,
            hubspot_contact_id=user.hubspot_contact_id,
            last_sync_log=self.audit_log.latest_for_user(user_id),
        )

    def list_sync_logs(self, user_id: str, limit: int = 10) -> List[HubSpotSyncLog]:
        """Audit history for a user, newest first."""
        return self.audit_log.query_by_user(user_id, limit=limit)

    def get_sync_statistics(self, recent_limit: int = 10) -> SyncStatistics:
        total = self.session.query(User).count()
        missing = self.session.query(User).filter(missing_contact_filter()).count()
        return SyncStatistics(
            total_users=total,
            users_with_contact=total - missing,
            status_counts=self.audit_log.count_by_status(),
            recent_logs=self.audit_log.recent(recent_limit),
        )

    def list_users_needing_sync(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        """Users with no HubSpot contact, oldest first, with pagination metadata."""
        query = self.session.query(User).filter(missing_contact_filter())
        total = query.count()
        users = (
            query.order_by(User.created_at.asc(), User.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "users": [user.to_dict() for user in users],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": offset + limit < total,
            },
        }
