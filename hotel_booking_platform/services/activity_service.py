"""
Audit trail writer.

Entries are added to the caller's session so they commit, or roll back,
together with the change they describe.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.activity_log import ActivityLog
from ..utils.logging_config import log_business_event

logger = logging.getLogger(__name__)


class ActivityService:
    """Service for recording and listing audit entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[UUID] = None,
    ) -> ActivityLog:
        """
        Stage an audit entry in the current transaction.

        Args:
            action: Action tag such as ``BOOKING_CREATED``
            entity_type: Kind of record acted on
            entity_id: Identifier of the record acted on
            details: JSON-serialisable detail blob
            user_id: Acting user, None for guests and scheduled jobs

        Returns:
            The staged entry
        """
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=json.dumps(details, default=str) if details else None,
        )
        self.session.add(entry)
        log_business_event(
            action,
            {"entity_type": entity_type, "entity_id": entry.entity_id, **(details or {})},
            user_id=str(user_id) if user_id else None,
        )
        return entry

    async def list_entries(
        self,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ActivityLog], int]:
        """Newest-first page of audit entries."""
        query = select(ActivityLog)
        count_query = select(func.count()).select_from(ActivityLog)

        if action:
            query = query.where(ActivityLog.action == action)
            count_query = count_query.where(ActivityLog.action == action)
        if entity_type:
            query = query.where(ActivityLog.entity_type == entity_type)
            count_query = count_query.where(ActivityLog.entity_type == entity_type)

        total = (await self.session.execute(count_query)).scalar_one()
        result = await self.session.execute(
            query.order_by(ActivityLog.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total


def decode_details(entry: ActivityLog) -> Optional[Dict[str, Any]]:
    """Parse an entry's detail blob, tolerating legacy non-JSON text."""
    if not entry.details:
        return None
    try:
        return json.loads(entry.details)
    except ValueError:
        logger.warning(f"Activity entry {entry.id} has non-JSON details")
        return {"raw": entry.details}
