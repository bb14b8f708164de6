"""
Append-only audit trail of staff and system actions.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ActivityLog(Base):
    """One audit entry. Business logic writes these and never reads them back."""

    __tablename__ = "activity_logs"

    # Null for anonymous guests and scheduled jobs
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    # JSON-encoded detail blob
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ActivityLog(action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
