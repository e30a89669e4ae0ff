"""Snipply Backend — Notification Route Handlers"""

from typing import List

from fastapi import APIRouter, Depends, Query

from snipply.config import settings
from snipply.dependencies import get_storage, require_auth
from snipply.schemas.common import ErrorResponse, MessageResponse
from snipply.schemas.notification import NotificationWithDetails, UnreadCountResponse
from snipply.services.social_service import social_service
from snipply.storage import Storage

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationWithDetails], summary="Your inbox, newest first")
async def list_notifications(
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> List[NotificationWithDetails]:
    return await social_service.notifications(storage, user_id, limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=await social_service.unread_count(storage, user_id))


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_read(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await social_service.mark_all_read(storage, user_id)
    return MessageResponse(message="All notifications marked as read")


@router.put(
    "/{notification_id}/read",
    response_model=MessageResponse,
    responses={404: {"description": "Missing or addressed to someone else", "model": ErrorResponse}},
)
async def mark_read(
    notification_id: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await social_service.mark_read(storage, user_id, notification_id)
    return MessageResponse(message="Notification marked as read")
