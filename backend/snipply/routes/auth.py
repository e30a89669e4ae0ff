"""
Snipply Backend — Auth Route Handlers
=======================================

What:  Register, login, logout, current user and the admin bootstrap.
How:   Successful register/login store the user id in the signed session
       cookie; logout clears it.
"""

import logging

from fastapi import APIRouter, Depends, Request

from snipply.dependencies import get_storage, require_auth, sign_in, sign_out
from snipply.schemas.admin import AdminSetupResponse
from snipply.schemas.common import ErrorResponse, MessageResponse
from snipply.schemas.user import LoginRequest, UserCreate, UserEnvelope, UserPublic
from snipply.services.auth_service import auth_service
from snipply.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


def _envelope(user) -> UserEnvelope:
    return UserEnvelope(user=UserPublic.model_validate(user))


@router.post(
    "/auth/register",
    response_model=UserEnvelope,
    responses={400: {"description": "Invalid body or duplicate username/email", "model": ErrorResponse}},
    summary="Create an account and sign in",
)
async def register(
    body: UserCreate,
    request: Request,
    storage: Storage = Depends(get_storage),
) -> UserEnvelope:
    user = await auth_service.register(storage, body)
    sign_in(request, user)
    return _envelope(user)


@router.post(
    "/auth/login",
    response_model=UserEnvelope,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Sign in with username and password",
)
async def login(
    body: LoginRequest,
    request: Request,
    storage: Storage = Depends(get_storage),
) -> UserEnvelope:
    user = await auth_service.authenticate(storage, body.username, body.password)
    sign_in(request, user)
    return _envelope(user)


@router.post("/auth/logout", response_model=MessageResponse, summary="Sign out")
async def logout(request: Request) -> MessageResponse:
    sign_out(request)
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/auth/me",
    response_model=UserEnvelope,
    responses={
        401: {"description": "No session", "model": ErrorResponse},
        404: {"description": "Session user no longer exists", "model": ErrorResponse},
    },
    summary="Current signed-in user",
)
async def me(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> UserEnvelope:
    return _envelope(await auth_service.current_user(storage, user_id))


@router.post(
    "/setup/admin",
    response_model=AdminSetupResponse,
    responses={
        400: {"description": "Admin already exists", "model": ErrorResponse},
        404: {"description": "Admin setup disabled", "model": ErrorResponse},
    },
    summary="Create the configured admin account (one-off)",
)
async def setup_admin(storage: Storage = Depends(get_storage)) -> AdminSetupResponse:
    user = await auth_service.setup_admin(storage)
    return AdminSetupResponse(
        message="Admin user created successfully",
        user={"id": user.id, "username": user.username, "rank": user.rank},
    )
