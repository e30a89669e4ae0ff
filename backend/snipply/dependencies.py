"""
Snipply Backend — Request Dependencies
========================================

What:  FastAPI dependencies shared by the routers: storage selection,
       session gates and client address resolution.

Session gates:
    get_session_user_id  → user id or None (anonymous allowed)
    require_auth         → user id, 401 without a session
    require_admin        → admin User, 401 without session, 403 otherwise

The session cookie is managed by Starlette's SessionMiddleware; the only
key stored in it is `user_id`.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request

from snipply.config import settings
from snipply.database import async_session_factory
from snipply.exceptions import AuthenticationError, PermissionDeniedError
from snipply.models import User
from snipply.storage import DatabaseStorage, Storage, memory_storage

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


# ── Storage ───────────────────────────────────────────────────────────────
async def get_storage() -> AsyncGenerator[Storage, None]:
    """
    Yield the configured storage backend for one request.

    The database backend wraps a fresh AsyncSession that commits when the
    handler returns and rolls back when it raises.
    """
    if settings.storage_backend == "memory":
        yield memory_storage
        return

    async with async_session_factory() as session:
        try:
            yield DatabaseStorage(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Client Address ────────────────────────────────────────────────────────
def client_ip(request: Request) -> str:
    """
    Best-effort client address.

    With TRUST_FORWARDED_FOR the first X-Forwarded-For hop wins; otherwise
    the socket peer is used.
    """
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


# ── Session Gates ─────────────────────────────────────────────────────────
def get_session_user_id(request: Request) -> Optional[str]:
    return request.session.get(SESSION_USER_KEY)


def require_auth(user_id: Optional[str] = Depends(get_session_user_id)) -> str:
    if not user_id:
        raise AuthenticationError("Authentication required")
    return user_id


async def require_admin(
    user_id: str = Depends(require_auth),
    storage: Storage = Depends(get_storage),
) -> User:
    user = await storage.get_user(user_id)
    if user is None or not user.is_admin:
        logger.warning("Admin endpoint refused for user %s", user_id)
        raise PermissionDeniedError("Admin privileges required")
    return user


def sign_in(request: Request, user: User) -> None:
    request.session[SESSION_USER_KEY] = user.id


def sign_out(request: Request) -> None:
    request.session.clear()
