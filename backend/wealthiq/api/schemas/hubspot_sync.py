"""
HubSpot sync API schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Audit log
# =============================================================================

class SyncLogEntry(_CamelModel):
    """One row of the HubSpot sync audit log."""

    id: str
    attempt_id: str = Field(alias="attemptId")
    user_id: str = Field(alias="userId")
    action: str
    status: str
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class SyncLogsResponse(_CamelModel):
    sync_logs: List[SyncLogEntry] = Field(alias="syncLogs")


# =============================================================================
# Per-user status and sync
# =============================================================================

class SyncStatusResponse(_CamelModel):
    has_hubspot_contact: bool = Field(alias="hasHubSpotContact")
    hubspot_contact_id: Optional[str] = Field(default=None, alias="hubspotContactId")
    last_sync_log: Optional[SyncLogEntry] = Field(default=None, alias="lastSyncLog")


class SyncResultResponse(_CamelModel):
    success: bool = True
    contact_id: str = Field(alias="contactId")
    is_new_contact: bool = Field(alias="isNewContact")
    message: str


# =============================================================================
# Bulk backfill
# =============================================================================

class BulkSyncSummary(_CamelModel):
    processed: int
    synced: int
    errors: int
    success_rate: str = Field(alias="successRate")


class BulkSyncItem(_CamelModel):
    user_id: str = Field(alias="userId")
    email: str
    status: str
    contact_id: Optional[str] = Field(default=None, alias="contactId")
    error: Optional[str] = None


class BulkSyncResponse(_CamelModel):
    success: bool = True
    summary: BulkSyncSummary
    results: List[BulkSyncItem]


# =============================================================================
# Admin
# =============================================================================

class UserSyncStats(_CamelModel):
    total_users: int = Field(alias="totalUsers")
    users_with_contacts: int = Field(alias="usersWithHubSpotContacts")
    users_without_contacts: int = Field(alias="usersWithoutHubSpotContacts")
    sync_percentage: str = Field(alias="syncPercentage")


class SyncStatisticsResponse(_CamelModel):
    user_stats: UserSyncStats = Field(alias="userStats")
    sync_stats: Dict[str, int] = Field(alias="syncStats")
    recent_sync_logs: List[SyncLogEntry] = Field(alias="recentSyncLogs")


class UserSummary(_CamelModel):
    id: str
    clerk_user_id: str = Field(alias="clerkUserId")
    email: str
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    hubspot_contact_id: Optional[str] = Field(default=None, alias="hubspotContactId")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class Pagination(_CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool = Field(alias="hasMore")


class UsersNeedingSyncResponse(_CamelModel):
    users: List[UserSummary]
    pagination: Pagination
