"""
Business logic services.
"""

from wealthiq.services.clerk_event_dispatcher import ClerkEventDispatcher, DispatchSummary
from wealthiq.services.hubspot_backfill import HubSpotBackfillRunner, BackfillSummary
from wealthiq.services.hubspot_sync import HubSpotSyncService, ReconcileResult
from wealthiq.services.sync_audit_log import SqlSyncAuditLog, SyncAuditLog
from wealthiq.services.user_lifecycle import ClerkIdentity, UserLifecycleManager
from wealthiq.services.webhook_verifier import ClerkWebhookVerifier

__all__ = [
    "ClerkEventDispatcher",
    "DispatchSummary",
    "HubSpotBackfillRunner",
    "BackfillSummary",
    "HubSpotSyncService",
    "ReconcileResult",
    "SqlSyncAuditLog",
    "SyncAuditLog",
    "ClerkIdentity",
    "UserLifecycleManager",
    "ClerkWebhookVerifier",
]
