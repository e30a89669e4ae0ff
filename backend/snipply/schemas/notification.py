"""Snipply Backend — Notification Schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from snipply.schemas.common import CamelModel


class NotificationCreate(CamelModel):
    """Internal payload used by services; not accepted from clients."""
    user_id: str
    type: str
    title: str
    message: str
    snippet_id: Optional[str] = None
    from_user_id: Optional[str] = None


class NotificationFromUser(CamelModel):
    id: str
    username: str
    display_name: Optional[str] = None
    profile_picture: Optional[str] = None


class NotificationSnippet(CamelModel):
    id: str
    title: str


class NotificationWithDetails(CamelModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    snippet_id: Optional[str] = None
    from_user_id: Optional[str] = None
    is_read: bool
    created_at: datetime
    from_user: Optional[NotificationFromUser] = Field(
        default=None, description="Sender card; omitted when the sender no longer exists"
    )
    snippet: Optional[NotificationSnippet] = Field(
        default=None, description="Referenced snippet; omitted when it was deleted"
    )


class UnreadCountResponse(CamelModel):
    count: int
