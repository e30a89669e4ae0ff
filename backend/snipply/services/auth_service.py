"""
Snipply Backend — Auth Service
================================

What:  Registration, credential checks, current-user lookup and the one-off
       admin bootstrap.
Who:   Called by the auth routes; the routes own the session cookie, this
       service never touches it.
"""

import logging

from snipply.config import settings
from snipply.exceptions import AuthenticationError, NotFoundError, ValidationError
from snipply.models import RANK_ADMIN, RANK_DEFAULT, User
from snipply.schemas.user import UserCreate
from snipply.security import hash_password, verify_password
from snipply.storage import Storage

logger = logging.getLogger(__name__)


class AuthService:
    """Stateless; the storage backend is passed to every call."""

    async def register(self, storage: Storage, data: UserCreate) -> User:
        """
        Create an account with rank 'default'.

        Raises:
            ValidationError: username or email already taken.
        """
        if await storage.get_user_by_username(data.username):
            raise ValidationError("Username already exists", field="username")
        if await storage.get_user_by_email(data.email):
            raise ValidationError("Email already exists", field="email")

        fields = data.model_dump(exclude={"password"})
        fields["password_hash"] = await hash_password(data.password)
        fields["rank"] = RANK_DEFAULT
        user = await storage.create_user(fields)
        logger.info("Registered user %s (%s)", user.username, user.id)
        return user

    async def authenticate(self, storage: Storage, username: str, password: str) -> User:
        user = await storage.get_user_by_username(username)
        if user is None or not await verify_password(password, user.password_hash):
            logger.info("Failed login for username '%s'", username)
            raise AuthenticationError("Invalid credentials")
        return user

    async def current_user(self, storage: Storage, user_id: str) -> User:
        user = await storage.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def setup_admin(self, storage: Storage) -> User:
        """
        Create the configured admin account.

        Disabled unless ADMIN_SETUP_ENABLED is set; the endpoint then
        behaves as if it did not exist.
        """
        if not settings.admin_setup_enabled:
            raise NotFoundError("endpoint", message="Not found")
        if not settings.admin_password:
            raise ValidationError("ADMIN_PASSWORD is not configured")
        if await storage.get_user_by_username(settings.admin_username):
            raise ValidationError("Admin user already exists")

        user = await storage.create_user(
            {
                "username": settings.admin_username,
                "email": settings.admin_email,
                "password_hash": await hash_password(settings.admin_password),
                "display_name": settings.admin_display_name,
                "bio": "System Administrator",
                "rank": RANK_ADMIN,
            }
        )
        logger.warning("Admin account '%s' created via setup endpoint", user.username)
        return user


# Module-level singleton
auth_service = AuthService()
