"""
Clerk Event Dispatcher for routing verified webhook events.

Handles the following event types:
- user.created, user.updated, user.deleted

Any other event type is acknowledged and ignored. Events are processed in
order, one at a time; an event without a usable primary email is dropped
without affecting the rest of the batch.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from wealthiq.services.user_lifecycle import (
    ClerkIdentity,
    MissingPrimaryEmail,
    UserLifecycleManager,
)

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    event_type: Optional[str]
    clerk_user_id: Optional[str]
    outcome: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventType": self.event_type,
            "clerkUserId": self.clerk_user_id,
            "outcome": self.outcome,
        }


@dataclass
class DispatchSummary:
    """Counts of what happened to each event of a delivery."""
    received: int = 0
    processed: int = 0
    skipped: int = 0
    ignored: int = 0
    dropped: int = 0
    results: List[EventResult] = field(default_factory=list)

    def record(self, event_type: Optional[str], clerk_user_id: Optional[str], outcome: str) -> None:
        self.results.append(EventResult(event_type, clerk_user_id, outcome))


class ClerkEventDispatcher:
    """
    Routes Clerk events to the user lifecycle manager.

    Unexpected exceptions are not caught: the webhook responds with an
    error and Clerk redelivers, which is safe because every lifecycle
    operation is idempotent.
    """

    def __init__(self, lifecycle: UserLifecycleManager):
        self.lifecycle = lifecycle
        self._handlers = {
            "user.created": self._handle_user_created,
            "user.updated": self._handle_user_updated,
            "user.deleted": self._handle_user_deleted,
        }

    def dispatch(self, events: List[Any]) -> DispatchSummary:
        summary = DispatchSummary(received=len(events))

        for event in events:
            if not isinstance(event, dict):
                logger.warning("Skipping webhook event that is not an object")
                summary.skipped += 1
                summary.record(None, None, "skipped")
                continue

            event_type = event.get("type")
            data = event.get("data")
            clerk_user_id = data.get("id") if isinstance(data, dict) else None

            if not event_type or not clerk_user_id:
                logger.warning(
                    "Skipping webhook event without type or data.id",
                    extra={"event_type": event_type},
                )
                summary.skipped += 1
                summary.record(event_type, clerk_user_id, "skipped")
                continue

            handler = self._handlers.get(event_type)
            if not handler:
                logger.info(
                    "Ignoring unsupported Clerk event type",
                    extra={"event_type": event_type, "clerk_user_id": clerk_user_id},
                )
                summary.ignored += 1
                summary.record(event_type, clerk_user_id, "ignored")
                continue

            try:
                outcome = handler(data)
            except MissingPrimaryEmail:
                logger.warning(
                    "Dropping Clerk event without primary email",
                    extra={"event_type": event_type, "clerk_user_id": clerk_user_id},
                )
                summary.dropped += 1
                summary.record(event_type, clerk_user_id, "dropped")
                continue

            summary.processed += 1
            summary.record(event_type, clerk_user_id, outcome)

        logger.info(
            "Dispatched Clerk webhook events",
            extra={
                "received": summary.received,
                "processed": summary.processed,
                "skipped": summary.skipped,
                "ignored": summary.ignored,
                "dropped": summary.dropped,
            },
        )
        return summary

    # =========================================================================
    # User Event Handlers
    # =========================================================================

    def _handle_user_created(self, data: Dict[str, Any]) -> str:
        self.lifecycle.create(ClerkIdentity.from_event_data(data))
        return "created"

    def _handle_user_updated(self, data: Dict[str, Any]) -> str:
        user = self.lifecycle.update(ClerkIdentity.from_event_data(data))
        return "updated" if user is not None else "user_not_found"

    def _handle_user_deleted(self, data: Dict[str, Any]) -> str:
        deleted = self.lifecycle.delete(data["id"])
        return "deleted" if deleted else "user_not_found"
