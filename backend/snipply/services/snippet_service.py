"""
Snipply Backend — Snippet Service (Business Logic)
====================================================

What:  Snippet listings, visibility and ownership checks, view counting,
       likes and the follower notification fan-out.
Who:   Called by the snippet routes.

Visibility:
    A private snippet can be read by its author and by admins; anyone else
    gets 403. Edit and delete are author-only (admins delete through the
    admin endpoints).

Fan-out (create, public only):
    ┌──────────┐    ┌──────────────┐    ┌────────────────────────────┐
    │  Insert  │───▶│  Followers   │───▶│  One new_snippet per       │
    │  snippet │    │  of author   │    │  follower; failures logged │
    └──────────┘    └──────────────┘    └────────────────────────────┘
"""

import logging
from datetime import timedelta
from typing import List, Optional

from snipply.config import settings
from snipply.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from snipply.models import NOTIFICATION_NEW_SNIPPET, Snippet, User
from snipply.models.columns import utcnow
from snipply.schemas.notification import NotificationCreate
from snipply.schemas.snippet import SnippetCreate, SnippetUpdate, SnippetWithAuthor
from snipply.storage import Storage

logger = logging.getLogger(__name__)


class SnippetService:
    """Stateless; the storage backend is passed to every call."""

    # ── Helpers ───────────────────────────────────────────────────────────

    async def attach_likes(
        self,
        storage: Storage,
        snippets: List[SnippetWithAuthor],
        viewer_id: Optional[str],
    ) -> List[SnippetWithAuthor]:
        """Set is_liked on each snippet for a signed-in viewer (one lookup)."""
        if not viewer_id or not snippets:
            return snippets
        liked = await storage.get_liked_snippet_ids(viewer_id, [s.id for s in snippets])
        for snippet in snippets:
            snippet.is_liked = snippet.id in liked
        return snippets

    async def _owned_snippet(self, storage: Storage, snippet_id: str, user_id: str) -> Snippet:
        snippet = await storage.get_snippet(snippet_id)
        if snippet is None:
            raise NotFoundError("snippet", snippet_id)
        if snippet.author_id != user_id:
            raise PermissionDeniedError("Access denied", context={"snippet_id": snippet_id})
        return snippet

    # ── Listings ──────────────────────────────────────────────────────────

    async def list_snippets(
        self,
        storage: Storage,
        viewer_id: Optional[str],
        *,
        trending: bool = False,
        author: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[SnippetWithAuthor]:
        """
        GET /api/snippets.

        trending wins over author; without either the public feed is paged
        with limit/offset.
        """
        if trending:
            since = utcnow() - timedelta(days=settings.trending_window_days)
            snippets = await storage.get_trending_snippets(limit, since)
        elif author:
            snippets = await storage.get_snippets_by_author(author)
        else:
            snippets = await storage.get_public_snippets(limit, offset)
        return await self.attach_likes(storage, snippets, viewer_id)

    async def search(
        self, storage: Storage, query: Optional[str], viewer_id: Optional[str]
    ) -> List[SnippetWithAuthor]:
        if not query or not query.strip():
            raise ValidationError("Search query required", field="q")
        snippets = await storage.search_snippets(query)
        return await self.attach_likes(storage, snippets, viewer_id)

    async def my_snippets(self, storage: Storage, user_id: str) -> List[SnippetWithAuthor]:
        snippets = await storage.get_user_own_snippets(user_id)
        return await self.attach_likes(storage, snippets, user_id)

    async def liked_by(
        self, storage: Storage, username: str, viewer_id: Optional[str]
    ) -> List[SnippetWithAuthor]:
        user = await storage.get_user_by_username(username)
        if user is None:
            raise NotFoundError("user", username)
        snippets = await storage.get_liked_snippets_by_user(user.id)
        return await self.attach_likes(storage, snippets, viewer_id)

    # ── Single Snippet ────────────────────────────────────────────────────

    async def view(
        self,
        storage: Storage,
        snippet_id: str,
        viewer_id: Optional[str],
        ip_address: Optional[str],
    ) -> SnippetWithAuthor:
        """
        Read one snippet and count the view.

        The returned `views` includes the view just counted.

        Raises:
            NotFoundError: no such snippet.
            PermissionDeniedError: private and the viewer is neither the
                author nor an admin.
        """
        snippet = await storage.get_snippet_with_author(snippet_id)
        if snippet is None:
            raise NotFoundError("snippet", snippet_id)

        if not snippet.is_public and snippet.author_id != viewer_id:
            viewer: Optional[User] = await storage.get_user(viewer_id) if viewer_id else None
            if viewer is None or not viewer.is_admin:
                raise PermissionDeniedError("Access denied", context={"snippet_id": snippet_id})

        if await storage.increment_views(snippet_id, viewer_id, ip_address):
            snippet.views += 1

        if viewer_id:
            snippet.is_liked = await storage.is_snippet_liked(snippet_id, viewer_id)
        return snippet

    async def create(self, storage: Storage, author_id: str, data: SnippetCreate) -> Snippet:
        snippet = await storage.create_snippet(author_id, data.model_dump())
        logger.info("Snippet %s created by %s (public=%s)", snippet.id, author_id, snippet.is_public)
        if snippet.is_public:
            await self.notify_followers(storage, snippet)
        return snippet

    async def notify_followers(self, storage: Storage, snippet: Snippet) -> int:
        """
        Send one new_snippet notification to each follower of the author.

        A failing write is logged and skipped so the snippet is still
        created. Returns the number of notifications stored.
        """
        author = await storage.get_user(snippet.author_id)
        if author is None:
            return 0

        sent = 0
        message = f'{author.display_name or author.username} posted a new snippet: "{snippet.title}"'
        for follower in await storage.get_followers(author.id):
            try:
                await storage.create_notification(
                    NotificationCreate(
                        user_id=follower.id,
                        type=NOTIFICATION_NEW_SNIPPET,
                        title="New Snippet Posted",
                        message=message,
                        snippet_id=snippet.id,
                        from_user_id=author.id,
                    )
                )
                sent += 1
            except Exception as e:
                logger.warning(
                    "Failed to notify follower %s about snippet %s: %s",
                    follower.id,
                    snippet.id,
                    str(e),
                )
        return sent

    async def update(
        self, storage: Storage, snippet_id: str, user_id: str, data: SnippetUpdate
    ) -> Snippet:
        await self._owned_snippet(storage, snippet_id, user_id)
        return await storage.update_snippet(snippet_id, data.changes())

    async def delete(self, storage: Storage, snippet_id: str, user_id: str) -> None:
        await self._owned_snippet(storage, snippet_id, user_id)
        await storage.delete_snippet(snippet_id)
        logger.info("Snippet %s deleted by its author", snippet_id)

    # ── Likes ─────────────────────────────────────────────────────────────

    async def like(self, storage: Storage, snippet_id: str, user_id: str) -> None:
        if not await storage.like_snippet(snippet_id, user_id):
            raise ValidationError("Already liked or snippet not found")

    async def unlike(self, storage: Storage, snippet_id: str, user_id: str) -> None:
        if not await storage.unlike_snippet(snippet_id, user_id):
            raise ValidationError("Not liked or snippet not found")


# Module-level singleton
snippet_service = SnippetService()
