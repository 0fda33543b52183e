"""
Database models for users and the HubSpot sync audit trail.
"""

from wealthiq.models.base import TimestampMixin, generate_uuid
from wealthiq.models.user import User
from wealthiq.models.hubspot_sync_log import HubSpotSyncLog, SyncAction, SyncStatus

__all__ = [
    "TimestampMixin",
    "generate_uuid",
    "User",
    "HubSpotSyncLog",
    "SyncAction",
    "SyncStatus",
]
