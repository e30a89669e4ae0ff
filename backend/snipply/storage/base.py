"""
Snipply Backend — Abstract Storage Interface
==============================================

What:  The persistence contract every storage backend implements.
How:   Concrete classes (MemoryStorage, DatabaseStorage) implement each
       abstract coroutine; services depend on `Storage` only and never know
       which backend is active.
Who:   Selected per request by `snipply.dependencies.get_storage` from the
       STORAGE_BACKEND setting.

Contract:
    - "Not found" is signalled by returning None (or False for deletes)
    - Uniqueness conflicts on likes and follows return False, never raise
    - Listings are newest first; see each method for its ordering key
    - Users and snippets are returned as ORM instances; composite read
      models (snippet + author card, profile, notification details, stats)
      are returned as response schemas
    - `is_liked` is never filled in by storage; services attach it with
      get_liked_snippet_ids()
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from snipply.models import Notification, Snippet, User
from snipply.schemas.admin import AdminStats
from snipply.schemas.notification import NotificationCreate, NotificationWithDetails
from snipply.schemas.snippet import AuthorSummary, SnippetResponse, SnippetWithAuthor
from snipply.schemas.user import UserProfile

SNIPPET_SEARCH_FIELDS = ("title", "description", "html", "css", "javascript")
USER_SEARCH_FIELDS = ("username", "display_name", "email", "bio")


def search_terms(query: str) -> List[str]:
    """Lower-cased whitespace-separated terms; every one must match."""
    return [term for term in query.lower().split() if term]


def matches_terms(obj: Any, fields: Iterable[str], terms: List[str]) -> bool:
    """True when each term occurs in the space-joined, lower-cased fields."""
    haystack = " ".join(getattr(obj, name) or "" for name in fields).lower()
    return all(term in haystack for term in terms)


def snippet_with_author(snippet: Snippet, author: User) -> SnippetWithAuthor:
    """Combine a snippet and its author card; displayName falls back to username."""
    fields = SnippetResponse.model_validate(snippet).model_dump()
    return SnippetWithAuthor(
        **fields,
        author=AuthorSummary(
            id=author.id,
            username=author.username,
            display_name=author.display_name or author.username,
            avatar_url=author.avatar_url,
            profile_picture=author.profile_picture,
        ),
    )


class Storage(ABC):
    """
    Abstract persistence layer for users, snippets, likes, views, follows
    and notifications.

    Both implementations must produce identical externally observed
    behaviour; the contract test suite runs against each of them.
    """

    # ── Users ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def create_user(self, fields: Dict[str, Any]) -> User:
        """
        Insert a user.

        `fields` holds column attributes (password already hashed as
        `password_hash`). display_name defaults to the username and rank to
        'default'.

        Raises:
            DuplicateRecordError: username or email is taken.
        """
        ...

    @abstractmethod
    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        ...

    @abstractmethod
    async def search_users(self, query: str) -> List[User]:
        """Users matching every term in username/display name/email/bio, newest first."""
        ...

    @abstractmethod
    async def get_all_users(self, limit: int = 50, offset: int = 0) -> List[User]:
        ...

    @abstractmethod
    async def delete_user_and_snippets(self, user_id: str) -> bool:
        """
        Delete a user and everything attached to them.

        Removes the user's snippets (with their likes and views), the
        user's own likes and views, every follow edge touching the user and
        notifications addressed to or sent by the user. Like counters on
        other users' snippets are decremented for the removed likes.

        Returns False when the user does not exist.
        """
        ...

    # ── Snippets ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_snippet(self, snippet_id: str) -> Optional[Snippet]:
        ...

    @abstractmethod
    async def get_snippet_with_author(self, snippet_id: str) -> Optional[SnippetWithAuthor]:
        ...

    @abstractmethod
    async def get_snippets_by_author(self, author_id: str) -> List[SnippetWithAuthor]:
        """The author's public snippets, newest first."""
        ...

    @abstractmethod
    async def get_user_own_snippets(self, user_id: str) -> List[SnippetWithAuthor]:
        """All of the user's snippets, private included, newest first."""
        ...

    @abstractmethod
    async def get_public_snippets(self, limit: int = 50, offset: int = 0) -> List[SnippetWithAuthor]:
        ...

    @abstractmethod
    async def get_trending_snippets(self, limit: int, since: datetime) -> List[SnippetWithAuthor]:
        """
        Public snippets created at or after `since`, ordered by
        likes + views descending (ties: newest first).
        """
        ...

    @abstractmethod
    async def create_snippet(self, author_id: str, fields: Dict[str, Any]) -> Snippet:
        ...

    @abstractmethod
    async def update_snippet(self, snippet_id: str, changes: Dict[str, Any]) -> Optional[Snippet]:
        """Apply `changes` and refresh updated_at; None when missing."""
        ...

    @abstractmethod
    async def delete_snippet(self, snippet_id: str) -> bool:
        """Delete a snippet with its likes and views; notifications keep the row but lose the reference."""
        ...

    @abstractmethod
    async def increment_views(
        self,
        snippet_id: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """
        Count a view unless this identity already viewed the snippet.

        The identity is user_id when given, else ip_address. With neither,
        the view is counted without de-duplication.

        Returns:
            True when the counter was incremented.
        """
        ...

    @abstractmethod
    async def search_snippets(self, query: str) -> List[SnippetWithAuthor]:
        """Public snippets containing every term of `query`, newest first."""
        ...

    @abstractmethod
    async def get_all_snippets(self, limit: int = 50, offset: int = 0) -> List[SnippetWithAuthor]:
        """Every snippet, private included, most recently updated first."""
        ...

    # ── Likes ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def like_snippet(self, snippet_id: str, user_id: str) -> bool:
        """False when the snippet is missing or already liked by the user."""
        ...

    @abstractmethod
    async def unlike_snippet(self, snippet_id: str, user_id: str) -> bool:
        """False when no like exists. The counter never drops below zero."""
        ...

    @abstractmethod
    async def is_snippet_liked(self, snippet_id: str, user_id: str) -> bool:
        ...

    @abstractmethod
    async def get_liked_snippet_ids(
        self, user_id: str, snippet_ids: Optional[Iterable[str]] = None
    ) -> Set[str]:
        """Ids the user liked, optionally restricted to `snippet_ids`."""
        ...

    @abstractmethod
    async def get_liked_snippets_by_user(self, user_id: str) -> List[SnippetWithAuthor]:
        """Public snippets liked by the user, most recently liked first."""
        ...

    # ── Follows ───────────────────────────────────────────────────────────

    @abstractmethod
    async def follow_user(self, follower_id: str, following_id: str) -> bool:
        """False for self-follows and existing edges."""
        ...

    @abstractmethod
    async def unfollow_user(self, follower_id: str, following_id: str) -> bool:
        ...

    @abstractmethod
    async def is_following(self, follower_id: str, following_id: str) -> bool:
        ...

    @abstractmethod
    async def get_followers(self, user_id: str) -> List[User]:
        ...

    @abstractmethod
    async def get_following(self, user_id: str) -> List[User]:
        ...

    @abstractmethod
    async def get_user_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional[UserProfile]:
        """Profile with public snippet count, follow counts and isFollowing for `viewer_id`."""
        ...

    # ── Notifications ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_notification(self, data: NotificationCreate) -> Notification:
        ...

    @abstractmethod
    async def get_notifications(self, user_id: str, limit: int = 50) -> List[NotificationWithDetails]:
        ...

    @abstractmethod
    async def mark_notification_read(self, notification_id: str, user_id: str) -> bool:
        """False when the notification is missing or addressed to someone else."""
        ...

    @abstractmethod
    async def mark_all_notifications_read(self, user_id: str) -> int:
        """Returns the number of notifications changed."""
        ...

    @abstractmethod
    async def get_unread_notification_count(self, user_id: str) -> int:
        ...

    # ── Admin ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_stats(self) -> AdminStats:
        ...
