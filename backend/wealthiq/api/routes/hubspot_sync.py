"""
HubSpot sync API routes.

Caller endpoints act on the authenticated user; admin endpoints act on any
user or on the whole user base.

Endpoints:
- GET  /api/hubspot-sync/status                      Caller's sync status
- GET  /api/hubspot-sync/status/{user_id}            A user's sync status (admin)
- POST /api/hubspot-sync/sync                        Re-run caller's reconciliation
- POST /api/hubspot-sync/sync/bulk?limit=N           Backfill unlinked users (admin)
- POST /api/hubspot-sync/sync/{user_id}              Re-run a user's reconciliation (admin)
- GET  /api/hubspot-sync/logs                        Caller's sync history
- GET  /api/hubspot-sync/logs/{user_id}              A user's sync history (admin)
- GET  /api/hubspot-sync/admin/statistics            Linkage and audit statistics (admin)
- GET  /api/hubspot-sync/admin/users-needing-sync    Users without a contact (admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from wealthiq.api.schemas.hubspot_sync import (
    BulkSyncResponse,
    SyncLogsResponse,
    SyncResultResponse,
    SyncStatisticsResponse,
    SyncStatusResponse,
    UsersNeedingSyncResponse,
)
from wealthiq.auth.caller import CallerContext, get_caller_context, require_admin
from wealthiq.config.settings import get_settings
from wealthiq.database.session import get_db_session
from wealthiq.integrations.hubspot.client import get_hubspot_client
from wealthiq.services.hubspot_backfill import HubSpotBackfillRunner
from wealthiq.services.hubspot_sync import (
    HubSpotSyncError,
    HubSpotSyncService,
    SyncInProgress,
    SyncUserNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hubspot-sync", tags=["hubspot-sync"])


def get_sync_client():
    """
    Dependency providing a HubSpot client for the duration of a request.

    Raises:
        HTTPException 503: If HUBSPOT_API_KEY is not configured
    """
    try:
        client = get_hubspot_client()
    except ValueError:
        logger.error("HUBSPOT_API_KEY not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="HubSpot integration not configured",
        )
    try:
        yield client
    finally:
        client.close()


def _sync_service(db: Session, client=None) -> HubSpotSyncService:
    return HubSpotSyncService(db, client, lock_ttl_seconds=get_settings().sync_lock_ttl_seconds)


def _sync_status(db: Session, user_id: str) -> SyncStatusResponse:
    try:
        sync_status = _sync_service(db).get_user_sync_status(user_id)
    except SyncUserNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return SyncStatusResponse.model_validate(sync_status.to_dict())


def _run_sync(db: Session, client, user_id: str) -> SyncResultResponse:
    """Re-run reconciliation for a user and translate failures to HTTP errors."""
    try:
        result = _sync_service(db, client).retry_sync_for_user(user_id)
    except SyncUserNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except SyncInProgress as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except HubSpotSyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    except Exception as e:
        logger.error(
            "Unexpected error during HubSpot sync",
            extra={"user_id": user_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="HubSpot sync failed",
        )

    message = (
        "New HubSpot contact created"
        if result.is_new_contact
        else "Linked existing HubSpot contact"
    )
    return SyncResultResponse(
        success=True,
        contact_id=result.contact_id,
        is_new_contact=result.is_new_contact,
        message=message,
    )


def _sync_logs(db: Session, user_id: str, limit: int) -> SyncLogsResponse:
    logs = _sync_service(db).list_sync_logs(user_id, limit=limit)
    return SyncLogsResponse.model_validate({"syncLogs": [log.to_dict() for log in logs]})


# =============================================================================
# Status
# =============================================================================

@router.get("/status", response_model=SyncStatusResponse)
def get_my_sync_status(
    caller: CallerContext = Depends(get_caller_context),
    db: Session = Depends(get_db_session),
):
    return _sync_status(db, caller.user_id)


@router.get("/status/{user_id}", response_model=SyncStatusResponse)
def get_user_sync_status(
    user_id: str,
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
):
    return _sync_status(db, user_id)


# =============================================================================
# Sync
# =============================================================================

@router.post("/sync", response_model=SyncResultResponse)
def sync_me(
    caller: CallerContext = Depends(get_caller_context),
    db: Session = Depends(get_db_session),
    client=Depends(get_sync_client),
):
    """Re-run HubSpot reconciliation for the caller."""
    return _run_sync(db, client, caller.user_id)


@router.post("/sync/bulk", response_model=BulkSyncResponse)
def bulk_sync(
    limit: Optional[int] = Query(None, description="Maximum users to process"),
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
    client=Depends(get_sync_client),
):
    """
    Backfill HubSpot contacts for users that have none.

    Runs synchronously; remote calls are paced under HubSpot's rate limit.
    """
    settings = get_settings()
    if limit is None:
        limit = settings.backfill_default_limit
    if limit < 1 or limit > settings.backfill_max_limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"limit must be between 1 and {settings.backfill_max_limit}",
        )

    logger.info(
        "Admin triggered HubSpot backfill",
        extra={"user_id": caller.user_id, "limit": limit},
    )

    runner = HubSpotBackfillRunner(
        db,
        client,
        min_request_interval=settings.hubspot_min_request_interval_seconds,
        lock_ttl_seconds=settings.sync_lock_ttl_seconds,
    )
    summary = runner.run(limit=limit)

    return BulkSyncResponse.model_validate({
        "success": True,
        "summary": summary.to_dict(),
        "results": [item.to_dict() for item in summary.results],
    })


@router.post("/sync/{user_id}", response_model=SyncResultResponse)
def sync_user(
    user_id: str,
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
    client=Depends(get_sync_client),
):
    """Re-run HubSpot reconciliation for any user."""
    logger.info(
        "Admin triggered HubSpot sync",
        extra={"user_id": user_id, "admin_user_id": caller.user_id},
    )
    return _run_sync(db, client, user_id)


# =============================================================================
# Logs
# =============================================================================

@router.get("/logs", response_model=SyncLogsResponse)
def get_my_sync_logs(
    limit: int = Query(10, ge=1, le=100),
    caller: CallerContext = Depends(get_caller_context),
    db: Session = Depends(get_db_session),
):
    return _sync_logs(db, caller.user_id, limit)


@router.get("/logs/{user_id}", response_model=SyncLogsResponse)
def get_user_sync_logs(
    user_id: str,
    limit: int = Query(10, ge=1, le=100),
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
):
    return _sync_logs(db, user_id, limit)


# =============================================================================
# Admin
# =============================================================================

@router.get("/admin/statistics", response_model=SyncStatisticsResponse)
def get_sync_statistics(
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
):
    statistics = _sync_service(db).get_sync_statistics()
    return SyncStatisticsResponse.model_validate(statistics.to_dict())


@router.get("/admin/users-needing-sync", response_model=UsersNeedingSyncResponse)
def get_users_needing_sync(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(require_admin),
    db: Session = Depends(get_db_session),
):
    page = _sync_service(db).list_users_needing_sync(limit=limit, offset=offset)
    return UsersNeedingSyncResponse.model_validate(page)
