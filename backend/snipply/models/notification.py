"""
Snipply Backend — Notification Model
======================================

What:  Inbox entry for a user (`notifications` table).

Types:
    new_snippet   a followed user published a public snippet

snippet_id is cleared when the snippet is deleted; notifications sent by a
deleted user are removed with that user.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import TIMESTAMP, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snipply.database import Base
from snipply.models.columns import new_id, utcnow

NOTIFICATION_NEW_SNIPPET = "new_snippet"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    snippet_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("snippets.id", ondelete="SET NULL"), nullable=True
    )
    from_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, user_id={self.user_id}, "
            f"type='{self.type}', read={self.is_read})>"
        )
