"""
Snipply Backend — Snippet Route Handlers
==========================================

What:  Public feed, trending, search, single-snippet reads (which count a
       view), authoring and likes.

Route order matters: /snippets/search is declared before
/snippets/{snippet_id} so "search" is never taken for an id.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from snipply.config import settings
from snipply.dependencies import client_ip, get_session_user_id, get_storage, require_auth
from snipply.schemas.common import ErrorResponse, MessageResponse
from snipply.schemas.snippet import (
    SnippetCreate,
    SnippetResponse,
    SnippetUpdate,
    SnippetWithAuthor,
)
from snipply.services.snippet_service import snippet_service
from snipply.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Snippets"])

_OWNER_ERRORS = {
    401: {"description": "No session", "model": ErrorResponse},
    403: {"description": "Not the author", "model": ErrorResponse},
    404: {"description": "Snippet not found", "model": ErrorResponse},
}


@router.get(
    "/snippets",
    response_model=List[SnippetWithAuthor],
    summary="Public snippets, trending snippets or one author's public snippets",
)
async def list_snippets(
    trending: bool = Query(default=False, description="Trending over the last N days"),
    author: Optional[str] = Query(default=None, description="Author user id"),
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    viewer_id: Optional[str] = Depends(get_session_user_id),
    storage: Storage = Depends(get_storage),
) -> List[SnippetWithAuthor]:
    return await snippet_service.list_snippets(
        storage,
        viewer_id,
        trending=trending,
        author=author,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/snippets/search",
    response_model=List[SnippetWithAuthor],
    responses={400: {"description": "Empty query", "model": ErrorResponse}},
    summary="Search public snippets",
    description="Every whitespace-separated term must occur in the title, description or code.",
)
async def search_snippets(
    q: Optional[str] = Query(default=None),
    viewer_id: Optional[str] = Depends(get_session_user_id),
    storage: Storage = Depends(get_storage),
) -> List[SnippetWithAuthor]:
    return await snippet_service.search(storage, q, viewer_id)


@router.get(
    "/snippets/{snippet_id}",
    response_model=SnippetWithAuthor,
    responses={
        403: {"description": "Private snippet", "model": ErrorResponse},
        404: {"description": "Snippet not found", "model": ErrorResponse},
    },
    summary="Read a snippet (counts one view per user or IP)",
)
async def get_snippet(
    snippet_id: str,
    request: Request,
    viewer_id: Optional[str] = Depends(get_session_user_id),
    storage: Storage = Depends(get_storage),
) -> SnippetWithAuthor:
    return await snippet_service.view(storage, snippet_id, viewer_id, client_ip(request))


@router.post(
    "/snippets",
    response_model=SnippetResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid body", "model": ErrorResponse},
        401: {"description": "No session", "model": ErrorResponse},
    },
    summary="Create a snippet",
)
async def create_snippet(
    body: SnippetCreate,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    return await snippet_service.create(storage, user_id, body)


@router.patch(
    "/snippets/{snippet_id}",
    response_model=SnippetResponse,
    responses=_OWNER_ERRORS,
    summary="Edit your snippet",
)
async def update_snippet(
    snippet_id: str,
    body: SnippetUpdate,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    return await snippet_service.update(storage, snippet_id, user_id, body)


@router.delete(
    "/snippets/{snippet_id}",
    response_model=MessageResponse,
    responses=_OWNER_ERRORS,
    summary="Delete your snippet",
)
async def delete_snippet(
    snippet_id: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await snippet_service.delete(storage, snippet_id, user_id)
    return MessageResponse(message="Snippet deleted successfully")


@router.post("/snippets/{snippet_id}/like", response_model=MessageResponse, summary="Like a snippet")
async def like_snippet(
    snippet_id: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await snippet_service.like(storage, snippet_id, user_id)
    return MessageResponse(message="Snippet liked successfully")


@router.delete("/snippets/{snippet_id}/like", response_model=MessageResponse, summary="Remove a like")
async def unlike_snippet(
    snippet_id: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await snippet_service.unlike(storage, snippet_id, user_id)
    return MessageResponse(message="Snippet unliked successfully")


@router.get(
    "/my-snippets",
    response_model=List[SnippetWithAuthor],
    summary="Your snippets, private ones included",
)
async def my_snippets(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> List[SnippetWithAuthor]:
    return await snippet_service.my_snippets(storage, user_id)
