"""
Snipply Backend — In-Memory Storage
=====================================

What:  Process-local implementation of the Storage contract.
Who:   Used when STORAGE_BACKEND=memory (local demos) and by the HTTP test
       suite. Data is lost on restart.
How:   Plain dicts of transient ORM instances. Every listing is a scan
       followed by a sort, which is fine at demo scale.

Column defaults declared on the models only fire on a database flush, so
ids, timestamps and counters are set explicitly here.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from snipply.exceptions import DuplicateRecordError
from snipply.models import (
    RANK_ADMIN,
    RANK_DEFAULT,
    Follow,
    Notification,
    Snippet,
    SnippetLike,
    SnippetView,
    User,
)
from snipply.models.columns import new_id, utcnow
from snipply.schemas.admin import AdminStats
from snipply.schemas.notification import (
    NotificationCreate,
    NotificationFromUser,
    NotificationSnippet,
    NotificationWithDetails,
)
from snipply.schemas.user import UserProfile, UserPublic
from snipply.storage.base import (
    SNIPPET_SEARCH_FIELDS,
    USER_SEARCH_FIELDS,
    Storage,
    matches_terms,
    search_terms,
    snippet_with_author,
)

logger = logging.getLogger(__name__)


class MemoryStorage(Storage):
    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.snippets: Dict[str, Snippet] = {}
        self.likes: Dict[Tuple[str, str], SnippetLike] = {}
        self.views: List[SnippetView] = []
        self.follows: Dict[Tuple[str, str], Follow] = {}
        self.notifications: Dict[str, Notification] = {}

    # ── Helpers ───────────────────────────────────────────────────────────

    def _with_authors(self, snippets: Iterable[Snippet]):
        return [
            snippet_with_author(snippet, self.users[snippet.author_id])
            for snippet in snippets
            if snippet.author_id in self.users
        ]

    @staticmethod
    def _newest_first(items, key: str = "created_at"):
        return sorted(items, key=lambda item: getattr(item, key), reverse=True)

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def create_user(self, fields: Dict[str, Any]) -> User:
        if await self.get_user_by_username(fields["username"]):
            raise DuplicateRecordError("Username already exists", field="username")
        if await self.get_user_by_email(fields["email"]):
            raise DuplicateRecordError("Email already exists", field="email")

        values = dict(fields)
        values["display_name"] = values.get("display_name") or values["username"]
        values["rank"] = values.get("rank") or RANK_DEFAULT
        user = User(id=new_id(), created_at=utcnow(), **values)
        self.users[user.id] = user
        return user

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None
        for name, value in changes.items():
            setattr(user, name, value)
        return user

    async def search_users(self, query: str) -> List[User]:
        terms = search_terms(query)
        found = [u for u in self.users.values() if matches_terms(u, USER_SEARCH_FIELDS, terms)]
        return self._newest_first(found)

    async def get_all_users(self, limit: int = 50, offset: int = 0) -> List[User]:
        return self._newest_first(self.users.values())[offset:offset + limit]

    async def delete_user_and_snippets(self, user_id: str) -> bool:
        if user_id not in self.users:
            return False

        for snippet_id in [s.id for s in self.snippets.values() if s.author_id == user_id]:
            await self.delete_snippet(snippet_id)

        # The user's likes on other people's snippets
        for key in [k for k in self.likes if k[1] == user_id]:
            del self.likes[key]
            snippet = self.snippets.get(key[0])
            if snippet is not None:
                snippet.likes = max(snippet.likes - 1, 0)

        self.views = [v for v in self.views if v.user_id != user_id]
        self.follows = {
            k: f for k, f in self.follows.items() if user_id not in (f.follower_id, f.following_id)
        }
        self.notifications = {
            k: n
            for k, n in self.notifications.items()
            if n.user_id != user_id and n.from_user_id != user_id
        }
        del self.users[user_id]
        logger.info("Deleted user %s with all owned content", user_id)
        return True

    # ── Snippets ──────────────────────────────────────────────────────────

    async def get_snippet(self, snippet_id: str) -> Optional[Snippet]:
        return self.snippets.get(snippet_id)

    async def get_snippet_with_author(self, snippet_id: str):
        snippet = self.snippets.get(snippet_id)
        if snippet is None or snippet.author_id not in self.users:
            return None
        return snippet_with_author(snippet, self.users[snippet.author_id])

    async def get_snippets_by_author(self, author_id: str):
        owned = [s for s in self.snippets.values() if s.author_id == author_id and s.is_public]
        return self._with_authors(self._newest_first(owned))

    async def get_user_own_snippets(self, user_id: str):
        owned = [s for s in self.snippets.values() if s.author_id == user_id]
        return self._with_authors(self._newest_first(owned))

    async def get_public_snippets(self, limit: int = 50, offset: int = 0):
        public = [s for s in self.snippets.values() if s.is_public]
        return self._with_authors(self._newest_first(public)[offset:offset + limit])

    async def get_trending_snippets(self, limit: int, since: datetime):
        recent = [s for s in self.snippets.values() if s.is_public and s.created_at >= since]
        recent.sort(key=lambda s: (s.score, s.created_at), reverse=True)
        return self._with_authors(recent[:limit])

    async def create_snippet(self, author_id: str, fields: Dict[str, Any]) -> Snippet:
        now = utcnow()
        snippet = Snippet(
            id=new_id(),
            title=fields["title"],
            description=fields.get("description"),
            html=fields.get("html") or "",
            css=fields.get("css") or "",
            javascript=fields.get("javascript") or "",
            is_public=bool(fields.get("is_public", False)),
            author_id=author_id,
            views=0,
            likes=0,
            created_at=now,
            updated_at=now,
        )
        self.snippets[snippet.id] = snippet
        return snippet

    async def update_snippet(self, snippet_id: str, changes: Dict[str, Any]) -> Optional[Snippet]:
        snippet = self.snippets.get(snippet_id)
        if snippet is None:
            return None
        for name, value in changes.items():
            setattr(snippet, name, value)
        snippet.updated_at = utcnow()
        return snippet

    async def delete_snippet(self, snippet_id: str) -> bool:
        if self.snippets.pop(snippet_id, None) is None:
            return False
        for key in [k for k in self.likes if k[0] == snippet_id]:
            del self.likes[key]
        self.views = [v for v in self.views if v.snippet_id != snippet_id]
        for notification in self.notifications.values():
            if notification.snippet_id == snippet_id:
                notification.snippet_id = None
        return True

    async def increment_views(
        self,
        snippet_id: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        snippet = self.snippets.get(snippet_id)
        if snippet is None:
            return False

        if user_id:
            seen = any(v.snippet_id == snippet_id and v.user_id == user_id for v in self.views)
        elif ip_address:
            seen = any(
                v.snippet_id == snippet_id and v.user_id is None and v.ip_address == ip_address
                for v in self.views
            )
        else:
            seen = False
        if seen:
            return False

        self.views.append(
            SnippetView(
                id=new_id(),
                snippet_id=snippet_id,
                user_id=user_id,
                ip_address=None if user_id else ip_address,
                created_at=utcnow(),
            )
        )
        snippet.views += 1
        return True

    async def search_snippets(self, query: str):
        terms = search_terms(query)
        found = [
            s
            for s in self.snippets.values()
            if s.is_public and matches_terms(s, SNIPPET_SEARCH_FIELDS, terms)
        ]
        return self._with_authors(self._newest_first(found))

    async def get_all_snippets(self, limit: int = 50, offset: int = 0):
        ordered = self._newest_first(self.snippets.values(), key="updated_at")
        return self._with_authors(ordered[offset:offset + limit])

    # ── Likes ─────────────────────────────────────────────────────────────

    async def like_snippet(self, snippet_id: str, user_id: str) -> bool:
        snippet = self.snippets.get(snippet_id)
        if snippet is None or (snippet_id, user_id) in self.likes:
            return False
        self.likes[(snippet_id, user_id)] = SnippetLike(
            id=new_id(), snippet_id=snippet_id, user_id=user_id, created_at=utcnow()
        )
        snippet.likes += 1
        return True

    async def unlike_snippet(self, snippet_id: str, user_id: str) -> bool:
        if self.likes.pop((snippet_id, user_id), None) is None:
            return False
        snippet = self.snippets.get(snippet_id)
        if snippet is not None:
            snippet.likes = max(snippet.likes - 1, 0)
        return True

    async def is_snippet_liked(self, snippet_id: str, user_id: str) -> bool:
        return (snippet_id, user_id) in self.likes

    async def get_liked_snippet_ids(
        self, user_id: str, snippet_ids: Optional[Iterable[str]] = None
    ) -> Set[str]:
        liked = {sid for (sid, uid) in self.likes if uid == user_id}
        if snippet_ids is not None:
            liked &= set(snippet_ids)
        return liked

    async def get_liked_snippets_by_user(self, user_id: str):
        likes = self._newest_first(l for l in self.likes.values() if l.user_id == user_id)
        snippets = [self.snippets.get(l.snippet_id) for l in likes]
        return self._with_authors(s for s in snippets if s is not None and s.is_public)

    # ── Follows ───────────────────────────────────────────────────────────

    async def follow_user(self, follower_id: str, following_id: str) -> bool:
        if follower_id == following_id or (follower_id, following_id) in self.follows:
            return False
        self.follows[(follower_id, following_id)] = Follow(
            id=new_id(),
            follower_id=follower_id,
            following_id=following_id,
            created_at=utcnow(),
        )
        return True

    async def unfollow_user(self, follower_id: str, following_id: str) -> bool:
        return self.follows.pop((follower_id, following_id), None) is not None

    async def is_following(self, follower_id: str, following_id: str) -> bool:
        return (follower_id, following_id) in self.follows

    async def get_followers(self, user_id: str) -> List[User]:
        edges = self._newest_first(f for f in self.follows.values() if f.following_id == user_id)
        return [self.users[f.follower_id] for f in edges if f.follower_id in self.users]

    async def get_following(self, user_id: str) -> List[User]:
        edges = self._newest_first(f for f in self.follows.values() if f.follower_id == user_id)
        return [self.users[f.following_id] for f in edges if f.following_id in self.users]

    async def get_user_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional[UserProfile]:
        user = await self.get_user_by_username(username)
        if user is None:
            return None
        public = UserPublic.model_validate(user).model_dump()
        return UserProfile(
            **public,
            snippets_count=sum(
                1 for s in self.snippets.values() if s.author_id == user.id and s.is_public
            ),
            followers_count=sum(1 for f in self.follows.values() if f.following_id == user.id),
            following_count=sum(1 for f in self.follows.values() if f.follower_id == user.id),
            is_following=bool(viewer_id) and (viewer_id, user.id) in self.follows,
        )

    # ── Notifications ─────────────────────────────────────────────────────

    async def create_notification(self, data: NotificationCreate) -> Notification:
        notification = Notification(
            id=new_id(),
            user_id=data.user_id,
            type=data.type,
            title=data.title,
            message=data.message,
            snippet_id=data.snippet_id,
            from_user_id=data.from_user_id,
            is_read=False,
            created_at=utcnow(),
        )
        self.notifications[notification.id] = notification
        return notification

    async def get_notifications(self, user_id: str, limit: int = 50) -> List[NotificationWithDetails]:
        mine = self._newest_first(n for n in self.notifications.values() if n.user_id == user_id)
        results = []
        for n in mine[:limit]:
            sender = self.users.get(n.from_user_id) if n.from_user_id else None
            snippet = self.snippets.get(n.snippet_id) if n.snippet_id else None
            results.append(
                NotificationWithDetails(
                    id=n.id,
                    user_id=n.user_id,
                    type=n.type,
                    title=n.title,
                    message=n.message,
                    snippet_id=n.snippet_id,
                    from_user_id=n.from_user_id,
                    is_read=n.is_read,
                    created_at=n.created_at,
                    from_user=NotificationFromUser.model_validate(sender) if sender else None,
                    snippet=NotificationSnippet.model_validate(snippet) if snippet else None,
                )
            )
        return results

    async def mark_notification_read(self, notification_id: str, user_id: str) -> bool:
        notification = self.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        notification.is_read = True
        return True

    async def mark_all_notifications_read(self, user_id: str) -> int:
        changed = 0
        for notification in self.notifications.values():
            if notification.user_id == user_id and not notification.is_read:
                notification.is_read = True
                changed += 1
        return changed

    async def get_unread_notification_count(self, user_id: str) -> int:
        return sum(
            1 for n in self.notifications.values() if n.user_id == user_id and not n.is_read
        )

    # ── Admin ─────────────────────────────────────────────────────────────

    async def get_stats(self) -> AdminStats:
        public = sum(1 for s in self.snippets.values() if s.is_public)
        return AdminStats(
            total_users=len(self.users),
            total_snippets=len(self.snippets),
            total_admins=sum(1 for u in self.users.values() if u.rank == RANK_ADMIN),
            public_snippets=public,
            private_snippets=len(self.snippets) - public,
        )


# Shared instance used when STORAGE_BACKEND=memory
memory_storage = MemoryStorage()
