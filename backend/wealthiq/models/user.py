"""
User model for the WealthIQ application.

User represents a local user record created from Clerk lifecycle webhooks.
The internal id is the foreign key used everywhere else in the application;
clerk_user_id is the correlation key back to the identity provider.

CRITICAL:
- NO PASSWORDS are stored locally - Clerk is the source of truth for auth
- Exactly one User per clerk_user_id (unique constraint)
- hubspot_contact_id is null until reconciliation links the HubSpot contact
  this user owns for synchronization purposes
"""

from sqlalchemy import Column, String, DateTime

from wealthiq.db_base import Base
from wealthiq.models.base import TimestampMixin, generate_uuid


class User(Base, TimestampMixin):
    """
    Local user record synced from Clerk.

    Key concepts:
    - clerk_user_id is the unique identifier from Clerk (immutable)
    - id is the internal UUID for database relationships
    - Profile data (email, name) is synced from Clerk webhooks
    - hubspot_contact_id is written only by HubSpot reconciliation
    - sync_locked_at is the lease held while a reconciliation is running
    """

    __tablename__ = "users"

    # Internal Primary Key
    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Internal UUID primary key"
    )

    # Clerk User ID - correlation key into the identity provider
    clerk_user_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Clerk user ID"
    )

    email = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Primary email address (from Clerk)"
    )

    first_name = Column(
        String(255),
        nullable=True,
        comment="User first name (from Clerk)"
    )

    last_name = Column(
        String(255),
        nullable=True,
        comment="User last name (from Clerk)"
    )

    hubspot_contact_id = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Linked HubSpot contact ID (null until reconciled)"
    )

    sync_locked_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the running HubSpot reconciliation acquired its lease"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, clerk_user_id={self.clerk_user_id}, email={self.email})>"

    @property
    def full_name(self) -> str:
        """Return full name or email if no name is set."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.email or ""

    @property
    def has_hubspot_contact(self) -> bool:
        return bool(self.hubspot_contact_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clerkUserId": self.clerk_user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "hubspotContactId": self.hubspot_contact_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
