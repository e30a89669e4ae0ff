"""
Snipply Backend — User & Profile Route Handlers
=================================================

What:  Public profiles, liked snippets, follow/unfollow, follower lists and
       edits to the signed-in user's own profile.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from snipply.dependencies import get_session_user_id, get_storage, require_auth
from snipply.schemas.common import ErrorResponse, MessageResponse
from snipply.schemas.snippet import SnippetWithAuthor
from snipply.schemas.user import (
    ProfilePictureUpdate,
    ProfileUpdate,
    UserEnvelope,
    UserProfile,
    UserPublic,
)
from snipply.services.snippet_service import snippet_service
from snipply.services.social_service import social_service
from snipply.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])

_USER_NOT_FOUND = {404: {"description": "User not found", "model": ErrorResponse}}


@router.get(
    "/users/{username}",
    response_model=UserProfile,
    responses=_USER_NOT_FOUND,
    summary="Public profile with counts",
)
async def get_profile(
    username: str,
    viewer_id: Optional[str] = Depends(get_session_user_id),
    storage: Storage = Depends(get_storage),
) -> UserProfile:
    return await social_service.profile(storage, username, viewer_id)


@router.get(
    "/users/{username}/liked",
    response_model=List[SnippetWithAuthor],
    responses=_USER_NOT_FOUND,
    summary="Public snippets the user liked",
)
async def liked_snippets(
    username: str,
    viewer_id: Optional[str] = Depends(get_session_user_id),
    storage: Storage = Depends(get_storage),
) -> List[SnippetWithAuthor]:
    return await snippet_service.liked_by(storage, username, viewer_id)


@router.post(
    "/users/{username}/follow",
    response_model=MessageResponse,
    responses=_USER_NOT_FOUND,
    summary="Follow a user",
)
async def follow(
    username: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await social_service.follow(storage, user_id, username)
    return MessageResponse(message="User followed successfully")


@router.delete(
    "/users/{username}/follow",
    response_model=MessageResponse,
    responses=_USER_NOT_FOUND,
    summary="Unfollow a user",
)
async def unfollow(
    username: str,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    await social_service.unfollow(storage, user_id, username)
    return MessageResponse(message="User unfollowed successfully")


@router.get("/following", response_model=List[UserPublic], summary="Users you follow")
async def following(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    return await social_service.following(storage, user_id)


@router.get("/followers", response_model=List[UserPublic], summary="Users following you")
async def followers(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    return await social_service.followers(storage, user_id)


@router.patch("/profile", response_model=UserEnvelope, summary="Edit your profile")
async def update_profile(
    body: ProfileUpdate,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> UserEnvelope:
    user = await social_service.update_profile(storage, user_id, body)
    return UserEnvelope(user=UserPublic.model_validate(user))


@router.put(
    "/profile/picture",
    response_model=UserEnvelope,
    responses={400: {"description": "Missing, malformed or oversized picture", "model": ErrorResponse}},
    summary="Replace your profile picture",
)
async def update_profile_picture(
    body: ProfilePictureUpdate,
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> UserEnvelope:
    user = await social_service.set_profile_picture(storage, user_id, body.profile_picture)
    return UserEnvelope(user=UserPublic.model_validate(user))
