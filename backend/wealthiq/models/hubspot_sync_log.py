"""
HubSpot sync audit log.

Append-only record of every HubSpot reconciliation attempt. One attempt
writes several rows sharing an attempt_id:

    started -> existing_contact_found | new_contact_created -> completed
    started -> ... -> failed

Rows are never updated or deleted by the application. user_id is not a
foreign key: the history of a user outlives the user row, which is
removed on user.deleted.
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Index, JSON, func
from sqlalchemy.dialects.postgresql import JSONB

from wealthiq.db_base import Base
from wealthiq.models.base import generate_uuid, utcnow

# Use JSON with PostgreSQL variant for JSONB - allows SQLite in tests
JSONType = JSON().with_variant(JSONB(), "postgresql")


class SyncAction(str, Enum):
    """Why a reconciliation was started."""

    USER_SIGNUP_SYNC = "user_signup_sync"
    MANUAL_RETRY = "manual_retry"
    BULK_BACKFILL = "bulk_backfill"


class SyncStatus(str, Enum):
    """Status recorded by one audit row."""

    STARTED = "started"
    EXISTING_CONTACT_FOUND = "existing_contact_found"
    NEW_CONTACT_CREATED = "new_contact_created"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED)


class HubSpotSyncLog(Base):
    """One immutable row of the HubSpot sync audit trail."""

    __tablename__ = "hubspot_sync_logs"

    # Integer key preserves insertion order for same-timestamp rows
    id = Column(Integer, primary_key=True, autoincrement=True)

    entry_id = Column(
        String(36),
        nullable=False,
        unique=True,
        default=generate_uuid,
        comment="Public identifier of the entry"
    )

    attempt_id = Column(
        String(36),
        nullable=False,
        index=True,
        comment="Groups the rows written by one reconciliation attempt"
    )

    user_id = Column(
        String(36),
        nullable=False,
        index=True,
        comment="Internal users.id of the reconciled user"
    )

    action = Column(
        String(50),
        nullable=False,
        comment="SyncAction value"
    )

    status = Column(
        String(50),
        nullable=False,
        index=True,
        comment="SyncStatus value"
    )

    details = Column(
        JSONType,
        nullable=True,
        comment="Email/name snapshot, contact ID, error and remote error body"
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_hubspot_sync_logs_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<HubSpotSyncLog(user_id={self.user_id}, action={self.action}, "
            f"status={self.status})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "attemptId": self.attempt_id,
            "userId": self.user_id,
            "action": self.action,
            "status": self.status,
            "details": self.details or {},
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
