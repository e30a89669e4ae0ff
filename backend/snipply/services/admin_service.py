"""
Snipply Backend — Admin Service
=================================

What:  Moderation operations behind the admin gate: user and snippet
       listings, removals, rank changes and site totals.

Admins may not delete or demote their own account, so a site always keeps
at least the admin performing the action.
"""

import logging
from typing import List, Optional

from snipply.exceptions import NotFoundError, ValidationError
from snipply.models import RANK_DEFAULT, USER_RANKS, User
from snipply.schemas.admin import AdminStats
from snipply.schemas.snippet import SnippetWithAuthor
from snipply.storage import Storage

logger = logging.getLogger(__name__)


class AdminService:
    async def list_users(
        self, storage: Storage, search: Optional[str], limit: int, offset: int
    ) -> List[User]:
        if search and search.strip():
            return await storage.search_users(search)
        return await storage.get_all_users(limit, offset)

    async def list_snippets(self, storage: Storage, limit: int, offset: int) -> List[SnippetWithAuthor]:
        return await storage.get_all_snippets(limit, offset)

    async def delete_snippet(self, storage: Storage, admin: User, snippet_id: str) -> None:
        if not await storage.delete_snippet(snippet_id):
            raise NotFoundError("snippet", snippet_id)
        logger.warning("Admin %s deleted snippet %s", admin.username, snippet_id)

    async def delete_user(self, storage: Storage, admin: User, user_id: str) -> None:
        if user_id == admin.id:
            raise ValidationError("Cannot delete your own account")
        if not await storage.delete_user_and_snippets(user_id):
            raise NotFoundError("user", user_id)
        logger.warning("Admin %s deleted user %s", admin.username, user_id)

    async def set_rank(
        self, storage: Storage, admin: User, user_id: str, rank: Optional[str]
    ) -> User:
        if rank not in USER_RANKS:
            raise ValidationError("Invalid rank. Must be 'admin' or 'default'", field="rank")
        if user_id == admin.id and rank == RANK_DEFAULT:
            raise ValidationError("Cannot demote yourself")

        user = await storage.update_user(user_id, {"rank": rank})
        if user is None:
            raise NotFoundError("user", user_id)
        logger.warning("Admin %s set rank of %s to %s", admin.username, user.username, rank)
        return user

    async def stats(self, storage: Storage) -> AdminStats:
        return await storage.get_stats()


# Module-level singleton
admin_service = AdminService()
