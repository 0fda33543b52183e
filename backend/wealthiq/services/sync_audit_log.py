"""
Sync audit log for HubSpot reconciliation attempts.

CRITICAL: This is an append-only store. Rows are inserted, never updated
or deleted. A reconciliation attempt is the ordered set of rows sharing
an attempt_id; its last row (completed or failed) is its terminal state.

The narrow SyncAuditLog interface lets other backends (a structured log
pipeline, a time-series store) replace the relational one.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from wealthiq.models.hubspot_sync_log import HubSpotSyncLog, SyncAction, SyncStatus

logger = logging.getLogger(__name__)


class SyncAuditLog:
    """Interface of the sync audit store."""

    def append(
        self,
        user_id: str,
        action: SyncAction,
        status: SyncStatus,
        details: Optional[Dict[str, Any]],
        attempt_id: str,
    ) -> HubSpotSyncLog:
        raise NotImplementedError

    def query_by_user(self, user_id: str, limit: int = 10) -> List[HubSpotSyncLog]:
        raise NotImplementedError

    def latest_for_user(self, user_id: str) -> Optional[HubSpotSyncLog]:
        entries = self.query_by_user(user_id, limit=1)
        return entries[0] if entries else None

    def count_by_status(self) -> Dict[str, int]:
        raise NotImplementedError

    def recent(self, limit: int = 10) -> List[HubSpotSyncLog]:
        raise NotImplementedError


class SqlSyncAuditLog(SyncAuditLog):
    """
    Relational implementation backed by the hubspot_sync_logs table.

    Each append is committed immediately so the trail of a failed attempt
    survives whatever happens to the rest of the work.
    """

    def __init__(self, session: Session):
        self.session = session

    def append(
        self,
        user_id: str,
        action: SyncAction,
        status: SyncStatus,
        details: Optional[Dict[str, Any]],
        attempt_id: str,
    ) -> HubSpotSyncLog:
        entry = HubSpotSyncLog(
            attempt_id=attempt_id,
            user_id=user_id,
            action=SyncAction(action).value,
            status=SyncStatus(status).value,
            details=details or {},
        )
        self.session.add(entry)
        self.session.commit()

        logger.debug(
            "Sync audit entry recorded",
            extra={
                "user_id": user_id,
                "attempt_id": attempt_id,
                "status": entry.status,
            },
        )
        return entry

    def _recency_ordered(self, query):
        return query.order_by(HubSpotSyncLog.created_at.desc(), HubSpotSyncLog.id.desc())

    def query_by_user(self, user_id: str, limit: int = 10) -> List[HubSpotSyncLog]:
        query = self.session.query(HubSpotSyncLog).filter(HubSpotSyncLog.user_id == user_id)
        return self._recency_ordered(query).limit(limit).all()

    def count_by_status(self) -> Dict[str, int]:
        rows = (
            self.session.query(HubSpotSyncLog.status, func.count(HubSpotSyncLog.id))
            .group_by(HubSpotSyncLog.status)
            .all()
        )
        return {status: count for status, count in rows}

    def recent(self, limit: int = 10) -> List[HubSpotSyncLog]:
        return self._recency_ordered(self.session.query(HubSpotSyncLog)).limit(limit).all()
