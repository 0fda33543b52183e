"""
Clerk webhook endpoint for user lifecycle synchronization.

SECURITY: All webhooks MUST verify the Svix signature before processing.
Clerk uses Svix for webhook delivery and signature verification.

Documentation: https://clerk.com/docs/webhooks

Supported Events:
- user.created, user.updated, user.deleted

Other event types are acknowledged and ignored. A 2xx response means every
event of the delivery was dispatched; a 5xx makes Clerk redeliver, which is
safe because ingestion is idempotent.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from wealthiq.api.schemas.webhooks import WebhookHealthResponse, WebhookResponse
from wealthiq.config.settings import get_settings
from wealthiq.database.session import get_db_session
from wealthiq.services.clerk_event_dispatcher import ClerkEventDispatcher
from wealthiq.services.user_lifecycle import UserLifecycleManager
from wealthiq.services.webhook_verifier import (
    ClerkWebhookVerifier,
    WebhookVerificationFailed,
)
from wealthiq.workers.hubspot_sync_scheduler import get_sync_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["webhooks"])


def get_webhook_verifier() -> ClerkWebhookVerifier:
    """Dependency providing the verifier configured from the environment."""
    return ClerkWebhookVerifier.from_settings(get_settings())


def get_lifecycle_scheduler():
    """
    Dependency providing the HubSpot sync scheduler for new users.

    Returns None when HubSpot is not configured; new users are then picked
    up by the backfill job.
    """
    if not get_settings().hubspot_configured:
        return None
    return get_sync_scheduler()


@router.post("/webhook", response_model=WebhookResponse)
async def handle_clerk_webhook(
    request: Request,
    svix_id: Optional[str] = Header(None, alias="svix-id"),
    svix_timestamp: Optional[str] = Header(None, alias="svix-timestamp"),
    svix_signature: Optional[str] = Header(None, alias="svix-signature"),
    verifier: ClerkWebhookVerifier = Depends(get_webhook_verifier),
    scheduler=Depends(get_lifecycle_scheduler),
    db: Session = Depends(get_db_session),
):
    """
    Handle incoming Clerk webhooks.

    Security:
    - Verifies Svix signature using CLERK_WEBHOOK_SECRET
    - Rejects requests with invalid, expired or missing signatures
    - Does not require user authentication (webhooks are server-to-server)
    """
    if not verifier.is_configured and not verifier.allow_unsigned:
        logger.error("CLERK_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook handler not configured",
        )

    body = await request.body()

    try:
        if verifier.is_configured:
            events = verifier.verify(body, svix_id, svix_timestamp, svix_signature)
        else:
            events = verifier.parse_unsigned(body)
    except WebhookVerificationFailed as e:
        logger.warning(
            "Clerk webhook rejected",
            extra={
                "svix_id": svix_id,
                "reason": e.reason,
                "has_timestamp": bool(svix_timestamp),
                "has_signature": bool(svix_signature),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    logger.info(
        "Received Clerk webhook",
        extra={
            "svix_id": svix_id,
            "events": len(events),
            "event_type": events[0].get("type") if len(events) == 1 else None,
        },
    )

    dispatcher = ClerkEventDispatcher(UserLifecycleManager(db, scheduler=scheduler))
    try:
        summary = dispatcher.dispatch(events)
    except Exception as e:
        db.rollback()
        logger.error(
            "Error processing Clerk webhook",
            extra={"svix_id": svix_id, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return WebhookResponse(
        received=True,
        status="processed",
        processed=summary.processed,
        skipped=summary.skipped,
        ignored=summary.ignored,
        dropped=summary.dropped,
    )


@router.get("/webhook", response_model=WebhookHealthResponse)
async def webhook_health(
    verifier: ClerkWebhookVerifier = Depends(get_webhook_verifier),
):
    """Reachability check for the Clerk webhook endpoint."""
    return WebhookHealthResponse(status="ok", configured=verifier.is_configured)
