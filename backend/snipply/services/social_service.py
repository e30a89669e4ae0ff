"""
Snipply Backend — Social Service
==================================

What:  Public profiles, follow edges, the notification inbox and the
       signed-in user's own profile edits.
Who:   Called by the user, profile and notification routes.
"""

import logging
import re
from typing import List, Optional

from snipply.config import settings
from snipply.exceptions import NotFoundError, ValidationError
from snipply.models import User
from snipply.schemas.notification import NotificationWithDetails
from snipply.schemas.user import ProfileUpdate, UserProfile
from snipply.storage import Storage

logger = logging.getLogger(__name__)

# data:image/<subtype>;base64,<payload>
_IMAGE_DATA_URL = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=\s]+$")


class SocialService:
    """Stateless; the storage backend is passed to every call."""

    async def _user_by_username(self, storage: Storage, username: str) -> User:
        user = await storage.get_user_by_username(username)
        if user is None:
            raise NotFoundError("user", username)
        return user

    # ── Profiles ──────────────────────────────────────────────────────────

    async def profile(
        self, storage: Storage, username: str, viewer_id: Optional[str]
    ) -> UserProfile:
        profile = await storage.get_user_profile(username, viewer_id)
        if profile is None:
            raise NotFoundError("user", username)
        return profile

    async def update_profile(self, storage: Storage, user_id: str, data: ProfileUpdate) -> User:
        user = await storage.update_user(user_id, data.model_dump(exclude_unset=True))
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def set_profile_picture(
        self, storage: Storage, user_id: str, picture: Optional[str]
    ) -> User:
        """
        Store a profile picture inline.

        Accepts a base64 image data URL or an http(s) URL no longer than
        MAX_PROFILE_PICTURE_LENGTH characters.
        """
        if not picture or not isinstance(picture, str):
            raise ValidationError("Profile picture data is required", field="profilePicture")
        if len(picture) > settings.max_profile_picture_length:
            raise ValidationError(
                "Profile picture is too large",
                field="profilePicture",
                context={"max_length": settings.max_profile_picture_length},
            )
        if not (_IMAGE_DATA_URL.match(picture) or picture.startswith(("http://", "https://"))):
            raise ValidationError(
                "Profile picture must be an image data URL or an http(s) URL",
                field="profilePicture",
            )

        user = await storage.update_user(user_id, {"profile_picture": picture})
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    # ── Follows ───────────────────────────────────────────────────────────

    async def follow(self, storage: Storage, follower_id: str, username: str) -> None:
        target = await self._user_by_username(storage, username)
        if target.id == follower_id:
            raise ValidationError("Cannot follow yourself")
        if not await storage.follow_user(follower_id, target.id):
            raise ValidationError("Already following this user")

    async def unfollow(self, storage: Storage, follower_id: str, username: str) -> None:
        target = await self._user_by_username(storage, username)
        if not await storage.unfollow_user(follower_id, target.id):
            raise ValidationError("Not following this user")

    async def followers(self, storage: Storage, user_id: str) -> List[User]:
        return await storage.get_followers(user_id)

    async def following(self, storage: Storage, user_id: str) -> List[User]:
        return await storage.get_following(user_id)

    # ── Notifications ─────────────────────────────────────────────────────

    async def notifications(
        self, storage: Storage, user_id: str, limit: int
    ) -> List[NotificationWithDetails]:
        return await storage.get_notifications(user_id, limit)

    async def mark_read(self, storage: Storage, user_id: str, notification_id: str) -> None:
        if not await storage.mark_notification_read(notification_id, user_id):
            raise NotFoundError("notification", notification_id)

    async def mark_all_read(self, storage: Storage, user_id: str) -> int:
        changed = await storage.mark_all_notifications_read(user_id)
        logger.debug("Marked %d notifications read for %s", changed, user_id)
        return changed

    async def unread_count(self, storage: Storage, user_id: str) -> int:
        return await storage.get_unread_notification_count(user_id)


# Module-level singleton
social_service = SocialService()
