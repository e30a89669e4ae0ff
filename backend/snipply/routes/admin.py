"""
Snipply Backend — Admin Route Handlers
========================================

Every endpoint depends on `require_admin`: 401 without a session, 403 when
the session user is not an admin.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from snipply.config import settings
from snipply.dependencies import get_storage, require_admin
from snipply.models import User
from snipply.schemas.admin import AdminStats
from snipply.schemas.common import ErrorResponse, MessageResponse
from snipply.schemas.snippet import SnippetWithAuthor
from snipply.schemas.user import RankUpdate, RankUpdateResponse, UserPublic
from snipply.services.admin_service import admin_service
from snipply.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    responses={
        401: {"description": "No session", "model": ErrorResponse},
        403: {"description": "Not an admin", "model": ErrorResponse},
    },
)


@router.get("/users", response_model=List[UserPublic], summary="All users, or a search")
async def list_users(
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return await admin_service.list_users(storage, search, limit, offset)


@router.get("/snippets", response_model=List[SnippetWithAuthor], summary="All snippets, private included")
async def list_snippets(
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
) -> List[SnippetWithAuthor]:
    return await admin_service.list_snippets(storage, limit, offset)


@router.delete("/snippets/{snippet_id}", response_model=MessageResponse)
async def delete_snippet(
    snippet_id: str,
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await admin_service.delete_snippet(storage, admin, snippet_id)
    return MessageResponse(message="Snippet deleted successfully by admin")


@router.delete("/users/{user_id}", response_model=MessageResponse, summary="Delete a user and their content")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await admin_service.delete_user(storage, admin, user_id)
    return MessageResponse(message="User and all their content deleted successfully")


@router.patch("/users/{user_id}/rank", response_model=RankUpdateResponse)
async def set_rank(
    user_id: str,
    body: RankUpdate,
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
) -> RankUpdateResponse:
    user = await admin_service.set_rank(storage, admin, user_id, body.rank)
    return RankUpdateResponse(
        message=f"User rank updated to {user.rank}",
        user=UserPublic.model_validate(user),
    )


@router.get("/stats", response_model=AdminStats, summary="Site totals")
async def stats(
    admin: User = Depends(require_admin),
    storage: Storage = Depends(get_storage),
) -> AdminStats:
    return await admin_service.stats(storage)
