"""
User lifecycle management driven by Clerk identity events.

This service handles:
- Create: insert a local User for a new Clerk user (idempotent on clerk_user_id)
- Update: refresh email and name of an existing User
- Delete: remove the local User

Data flows:
1. Clerk webhook -> ClerkEventDispatcher -> UserLifecycleManager -> database
2. UserLifecycleManager.create -> HubSpotSyncScheduler (fire-and-forget)

Clerk redelivers webhooks, so every operation must tolerate duplicates and
out-of-order delivery. Only create triggers HubSpot reconciliation, and
only after the new row is committed so the background job can read it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wealthiq.models.user import User

logger = logging.getLogger(__name__)


class UserLifecycleError(Exception):
    """Base exception for user lifecycle errors."""
    pass


class MissingPrimaryEmail(UserLifecycleError):
    """The Clerk payload has no resolvable primary email address."""

    def __init__(self, clerk_user_id: str):
        super().__init__(f"No primary email for Clerk user {clerk_user_id}")
        self.clerk_user_id = clerk_user_id


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def get_primary_email(data: Dict[str, Any]) -> Optional[str]:
    """
    Return the email address Clerk marks as primary.

    Only the entry of email_addresses whose id equals
    primary_email_address_id counts. Another address is never substituted.
    """
    primary_id = data.get("primary_email_address_id")
    if not primary_id:
        return None

    for entry in data.get("email_addresses") or []:
        if isinstance(entry, dict) and entry.get("id") == primary_id:
            return _blank_to_none(entry.get("email_address"))
    return None


@dataclass(frozen=True)
class ClerkIdentity:
    """Identity fields extracted from a Clerk user event."""
    clerk_user_id: str
    email: Optional[str]
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_event_data(cls, data: Dict[str, Any]) -> "ClerkIdentity":
        return cls(
            clerk_user_id=data.get("id"),
            email=get_primary_email(data),
            first_name=_blank_to_none(data.get("first_name")),
            last_name=_blank_to_none(data.get("last_name")),
        )


class UserLifecycleManager:
    """
    Applies Clerk lifecycle events to the users table.

    Each operation commits its own transaction.
    """

    def __init__(self, session: Session, scheduler=None):
        """
        Args:
            session: SQLAlchemy session for database operations
            scheduler: Optional HubSpotSyncScheduler notified after a user
                is created. Without one, reconciliation is left to the
                backfill job.
        """
        self.session = session
        self.scheduler = scheduler

    def get_by_clerk_id(self, clerk_user_id: str) -> Optional[User]:
        return self.session.query(User).filter(
            User.clerk_user_id == clerk_user_id
        ).first()

    def create(self, identity: ClerkIdentity) -> User:
        """
        Create the local user for a Clerk identity.

        Returns the existing row unchanged when the Clerk user is already
        known, so redelivered user.created events are harmless.

        Raises:
            MissingPrimaryEmail: If no primary email resolves
        """
        existing = self.get_by_clerk_id(identity.clerk_user_id)
        if existing:
            logger.info(
                "User already exists, skipping create",
                extra={"clerk_user_id": identity.clerk_user_id, "user_id": existing.id},
            )
            return existing

        if not identity.email:
            raise MissingPrimaryEmail(identity.clerk_user_id)

        user = User(
            clerk_user_id=identity.clerk_user_id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
        )
        self.session.add(user)

        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent delivery inserted the same Clerk user first
            self.session.rollback()
            winner = self.get_by_clerk_id(identity.clerk_user_id)
            if winner is None:
                raise
            logger.info(
                "User created concurrently, using existing row",
                extra={"clerk_user_id": identity.clerk_user_id, "user_id": winner.id},
            )
            return winner

        logger.info(
            "Created user from Clerk",
            extra={"clerk_user_id": identity.clerk_user_id, "user_id": user.id},
        )

        self._schedule_reconciliation(user)
        return user

    def _schedule_reconciliation(self, user: User) -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler.schedule(user.id, user.email, user.first_name, user.last_name)
        except Exception as e:
            logger.error(
                "Failed to schedule HubSpot sync",
                extra={"user_id": user.id, "error": str(e)},
            )

    def update(self, identity: ClerkIdentity) -> Optional[User]:
        """
        Refresh email and name from a Clerk identity.

        Returns None (and logs a warning) when the Clerk user is unknown,
        e.g. when user.updated arrives before user.created.
        """
        user = self.get_by_clerk_id(identity.clerk_user_id)
        if not user:
            logger.warning(
                "User not found for update",
                extra={"clerk_user_id": identity.clerk_user_id},
            )
            return None

        if identity.email:
            user.email = identity.email
        user.first_name = identity.first_name
        user.last_name = identity.last_name
        self.session.commit()

        logger.info(
            "Updated user from Clerk",
            extra={"clerk_user_id": identity.clerk_user_id, "user_id": user.id},
        )
        return user

    def delete(self, clerk_user_id: str) -> bool:
        """
        Delete the local user.

        The HubSpot contact and the sync history are left in place.
        """
        user = self.get_by_clerk_id(clerk_user_id)
        if not user:
            logger.warning(
                "User not found for deletion",
                extra={"clerk_user_id": clerk_user_id},
            )
            return False

        user_id = user.id
        self.session.delete(user)
        self.session.commit()

        logger.info(
            "Deleted user from Clerk",
            extra={"clerk_user_id": clerk_user_id, "user_id": user_id},
        )
        return True
