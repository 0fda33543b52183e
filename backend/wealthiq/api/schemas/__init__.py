"""
API schemas package.

Contains Pydantic models for request/response validation.
"""

from wealthiq.api.schemas.hubspot_sync import (
    BulkSyncResponse,
    SyncLogEntry,
    SyncLogsResponse,
    SyncResultResponse,
    SyncStatisticsResponse,
    SyncStatusResponse,
    UsersNeedingSyncResponse,
)
from wealthiq.api.schemas.webhooks import WebhookHealthResponse, WebhookResponse

__all__ = [
    "BulkSyncResponse",
    "SyncLogEntry",
    "SyncLogsResponse",
    "SyncResultResponse",
    "SyncStatisticsResponse",
    "SyncStatusResponse",
    "UsersNeedingSyncResponse",
    "WebhookHealthResponse",
    "WebhookResponse",
]
