"""
Snipply Backend — SQL Storage
===============================

What:  Storage contract implemented with SQLAlchemy 2.0 async queries.
Who:   Built per request by `get_storage` around the request's AsyncSession;
       the session dependency owns commit and rollback.
How:   Writes flush immediately so generated values and constraint errors
       surface inside the call that caused them.

Query conventions:
    - Reads use populate_existing so rows changed by bulk UPDATE/DELETE
      statements are never served stale from the identity map.
    - Counter changes are single UPDATE statements (`views = views + 1`),
      never read-modify-write in Python.
    - Bulk statements run with synchronize_session=False; nothing relies on
      in-session objects after them.
    - Inserts whose failure the caller may swallow (notifications) or
      translate (duplicate users) run inside a SAVEPOINT.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import Text, and_, case, delete, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snipply.exceptions import DatabaseError, DuplicateRecordError
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
from snipply.storage.base import Storage, search_terms, snippet_with_author

logger = logging.getLogger(__name__)

_FRESH = {"populate_existing": True}
_BULK = {"synchronize_session": False}


def _haystack(*columns):
    """lower(col1 || ' ' || coalesce(col2, '') ...) for term matching."""
    joined = func.coalesce(columns[0], "")
    for column in columns[1:]:
        joined = joined + " " + func.coalesce(column, "")
    return func.lower(joined, type_=Text)


def _all_terms(haystack, query: str):
    return and_(true(), *[haystack.contains(term, autoescape=True) for term in search_terms(query)])


class DatabaseStorage(Storage):
    """SQL-backed storage bound to one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Helpers ───────────────────────────────────────────────────────────

    def _snippets_with_authors(self):
        return (
            select(Snippet, User)
            .join(User, Snippet.author_id == User.id)
            .execution_options(**_FRESH)
        )

    async def _fetch_with_authors(self, stmt):
        rows = (await self.session.execute(stmt)).all()
        return [snippet_with_author(snippet, author) for snippet, author in rows]

    async def _count(self, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        return (await self.session.execute(stmt)).scalar_one()

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        stmt = select(User).where(User.id == user_id).execution_options(**_FRESH)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        stmt = select(User).where(User.username == username).execution_options(**_FRESH)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email).execution_options(**_FRESH)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create_user(self, fields: Dict[str, Any]) -> User:
        if await self.get_user_by_username(fields["username"]):
            raise DuplicateRecordError("Username already exists", field="username")
        if await self.get_user_by_email(fields["email"]):
            raise DuplicateRecordError("Email already exists", field="email")

        values = dict(fields)
        values["display_name"] = values.get("display_name") or values["username"]
        values["rank"] = values.get("rank") or RANK_DEFAULT
        user = User(id=new_id(), created_at=utcnow(), **values)
        try:
            async with self.session.begin_nested():
                self.session.add(user)
                await self.session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration; only the savepoint is undone
            raise DuplicateRecordError(
                "Username or email already exists",
                context={"username": fields["username"]},
            ) from e
        return user

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        user = await self.get_user(user_id)
        if user is None:
            return None
        for name, value in changes.items():
            setattr(user, name, value)
        await self.session.flush()
        return user

    async def search_users(self, query: str) -> List[User]:
        haystack = _haystack(User.username, User.display_name, User.email, User.bio)
        stmt = (
            select(User)
            .where(_all_terms(haystack, query))
            .order_by(User.created_at.desc())
            .execution_options(**_FRESH)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_all_users(self, limit: int = 50, offset: int = 0) -> List[User]:
        stmt = (
            select(User)
            .order_by(User.created_at.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(**_FRESH)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def delete_user_and_snippets(self, user_id: str) -> bool:
        if await self.get_user(user_id) is None:
            return False

        owned = select(Snippet.id).where(Snippet.author_id == user_id)
        try:
            # Undo the user's likes on snippets that survive
            await self.session.execute(
                update(Snippet)
                .where(
                    Snippet.id.in_(select(SnippetLike.snippet_id).where(SnippetLike.user_id == user_id)),
                    Snippet.author_id != user_id,
                )
                .values(likes=case((Snippet.likes > 0, Snippet.likes - 1), else_=0))
                .execution_options(**_BULK)
            )
            await self.session.execute(
                delete(SnippetLike)
                .where(or_(SnippetLike.user_id == user_id, SnippetLike.snippet_id.in_(owned)))
                .execution_options(**_BULK)
            )
            await self.session.execute(
                delete(SnippetView)
                .where(or_(SnippetView.user_id == user_id, SnippetView.snippet_id.in_(owned)))
                .execution_options(**_BULK)
            )
            await self.session.execute(
                delete(Notification)
                .where(
                    or_(
                        Notification.user_id == user_id,
                        Notification.from_user_id == user_id,
                    )
                )
                .execution_options(**_BULK)
            )
            await self.session.execute(
                update(Notification)
                .where(Notification.snippet_id.in_(owned))
                .values(snippet_id=None)
                .execution_options(**_BULK)
            )
            await self.session.execute(
                delete(Follow)
                .where(or_(Follow.follower_id == user_id, Follow.following_id == user_id))
                .execution_options(**_BULK)
            )
            await self.session.execute(
                delete(Snippet).where(Snippet.author_id == user_id).execution_options(**_BULK)
            )
            result = await self.session.execute(
                delete(User).where(User.id == user_id).execution_options(**_BULK)
            )
        except SQLAlchemyError as e:
            logger.error("Failed to delete user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": user_id, "error": str(e)}) from e

        logger.info("Deleted user %s with all owned content", user_id)
        return result.rowcount > 0

    # ── Snippets ──────────────────────────────────────────────────────────

    async def get_snippet(self, snippet_id: str) -> Optional[Snippet]:
        stmt = select(Snippet).where(Snippet.id == snippet_id).execution_options(**_FRESH)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_snippet_with_author(self, snippet_id: str):
        rows = await self._fetch_with_authors(
            self._snippets_with_authors().where(Snippet.id == snippet_id)
        )
        return rows[0] if rows else None

    async def get_snippets_by_author(self, author_id: str):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .where(Snippet.author_id == author_id, Snippet.is_public.is_(True))
            .order_by(Snippet.created_at.desc())
        )

    async def get_user_own_snippets(self, user_id: str):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .where(Snippet.author_id == user_id)
            .order_by(Snippet.created_at.desc())
        )

    async def get_public_snippets(self, limit: int = 50, offset: int = 0):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .where(Snippet.is_public.is_(True))
            .order_by(Snippet.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

    async def get_trending_snippets(self, limit: int, since: datetime):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .where(Snippet.is_public.is_(True), Snippet.created_at >= since)
            .order_by((Snippet.likes + Snippet.views).desc(), Snippet.created_at.desc())
            .limit(limit)
        )

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
        self.session.add(snippet)
        await self.session.flush()
        return snippet

    async def update_snippet(self, snippet_id: str, changes: Dict[str, Any]) -> Optional[Snippet]:
        snippet = await self.get_snippet(snippet_id)
        if snippet is None:
            return None
        for name, value in changes.items():
            setattr(snippet, name, value)
        snippet.updated_at = utcnow()
        await self.session.flush()
        return snippet

    async def delete_snippet(self, snippet_id: str) -> bool:
        await self.session.execute(
            delete(SnippetLike).where(SnippetLike.snippet_id == snippet_id).execution_options(**_BULK)
        )
        await self.session.execute(
            delete(SnippetView).where(SnippetView.snippet_id == snippet_id).execution_options(**_BULK)
        )
        await self.session.execute(
            update(Notification)
            .where(Notification.snippet_id == snippet_id)
            .values(snippet_id=None)
            .execution_options(**_BULK)
        )
        result = await self.session.execute(
            delete(Snippet).where(Snippet.id == snippet_id).execution_options(**_BULK)
        )
        return result.rowcount > 0

    async def increment_views(
        self,
        snippet_id: str,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        if await self._count(Snippet, Snippet.id == snippet_id) == 0:
            return False

        if user_id:
            identity = SnippetView.user_id == user_id
        elif ip_address:
            identity = and_(SnippetView.user_id.is_(None), SnippetView.ip_address == ip_address)
        else:
            identity = None

        if identity is not None and await self._count(
            SnippetView, SnippetView.snippet_id == snippet_id, identity
        ):
            return False

        self.session.add(
            SnippetView(
                id=new_id(),
                snippet_id=snippet_id,
                user_id=user_id,
                ip_address=None if user_id else ip_address,
                created_at=utcnow(),
            )
        )
        await self.session.execute(
            update(Snippet)
            .where(Snippet.id == snippet_id)
            .values(views=Snippet.views + 1)
            .execution_options(**_BULK)
        )
        await self.session.flush()
        return True

    async def search_snippets(self, query: str):
        haystack = _haystack(
            Snippet.title, Snippet.description, Snippet.html, Snippet.css, Snippet.javascript
        )
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .where(Snippet.is_public.is_(True), _all_terms(haystack, query))
            .order_by(Snippet.created_at.desc())
        )

    async def get_all_snippets(self, limit: int = 50, offset: int = 0):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .order_by(Snippet.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )

    # ── Likes ─────────────────────────────────────────────────────────────

    async def like_snippet(self, snippet_id: str, user_id: str) -> bool:
        if await self._count(Snippet, Snippet.id == snippet_id) == 0:
            return False
        if await self.is_snippet_liked(snippet_id, user_id):
            return False

        self.session.add(
            SnippetLike(id=new_id(), snippet_id=snippet_id, user_id=user_id, created_at=utcnow())
        )
        await self.session.execute(
            update(Snippet)
            .where(Snippet.id == snippet_id)
            .values(likes=Snippet.likes + 1)
            .execution_options(**_BULK)
        )
        await self.session.flush()
        return True

    async def unlike_snippet(self, snippet_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            delete(SnippetLike)
            .where(SnippetLike.snippet_id == snippet_id, SnippetLike.user_id == user_id)
            .execution_options(**_BULK)
        )
        if result.rowcount == 0:
            return False
        await self.session.execute(
            update(Snippet)
            .where(Snippet.id == snippet_id)
            .values(likes=case((Snippet.likes > 0, Snippet.likes - 1), else_=0))
            .execution_options(**_BULK)
        )
        return True

    async def is_snippet_liked(self, snippet_id: str, user_id: str) -> bool:
        count = await self._count(
            SnippetLike, SnippetLike.snippet_id == snippet_id, SnippetLike.user_id == user_id
        )
        return count > 0

    async def get_liked_snippet_ids(
        self, user_id: str, snippet_ids: Optional[Iterable[str]] = None
    ) -> Set[str]:
        stmt = select(SnippetLike.snippet_id).where(SnippetLike.user_id == user_id)
        if snippet_ids is not None:
            ids = list(snippet_ids)
            if not ids:
                return set()
            stmt = stmt.where(SnippetLike.snippet_id.in_(ids))
        return set((await self.session.execute(stmt)).scalars().all())

    async def get_liked_snippets_by_user(self, user_id: str):
        return await self._fetch_with_authors(
            self._snippets_with_authors()
            .join(SnippetLike, SnippetLike.snippet_id == Snippet.id)
            .where(SnippetLike.user_id == user_id, Snippet.is_public.is_(True))
            .order_by(SnippetLike.created_at.desc())
        )

    # ── Follows ───────────────────────────────────────────────────────────

    async def follow_user(self, follower_id: str, following_id: str) -> bool:
        if follower_id == following_id:
            return False
        if await self.is_following(follower_id, following_id):
            return False
        self.session.add(
            Follow(
                id=new_id(),
                follower_id=follower_id,
                following_id=following_id,
                created_at=utcnow(),
            )
        )
        await self.session.flush()
        return True

    async def unfollow_user(self, follower_id: str, following_id: str) -> bool:
        result = await self.session.execute(
            delete(Follow)
            .where(Follow.follower_id == follower_id, Follow.following_id == following_id)
            .execution_options(**_BULK)
        )
        return result.rowcount > 0

    async def is_following(self, follower_id: str, following_id: str) -> bool:
        count = await self._count(
            Follow, Follow.follower_id == follower_id, Follow.following_id == following_id
        )
        return count > 0

    async def get_followers(self, user_id: str) -> List[User]:
        stmt = (
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(Follow.created_at.desc())
            .execution_options(**_FRESH)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_following(self, user_id: str) -> List[User]:
        stmt = (
            select(User)
            .join(Follow, Follow.following_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at.desc())
            .execution_options(**_FRESH)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_user_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional[UserProfile]:
        user = await self.get_user_by_username(username)
        if user is None:
            return None

        is_following = False
        if viewer_id:
            is_following = await self.is_following(viewer_id, user.id)

        public = UserPublic.model_validate(user).model_dump()
        return UserProfile(
            **public,
            snippets_count=await self._count(
                Snippet, Snippet.author_id == user.id, Snippet.is_public.is_(True)
            ),
            followers_count=await self._count(Follow, Follow.following_id == user.id),
            following_count=await self._count(Follow, Follow.follower_id == user.id),
            is_following=is_following,
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
        # A failed insert undoes only its savepoint; the request transaction stays usable
        async with self.session.begin_nested():
            self.session.add(notification)
            await self.session.flush()
        return notification

    async def get_notifications(self, user_id: str, limit: int = 50) -> List[NotificationWithDetails]:
        stmt = (
            select(Notification, User, Snippet)
            .outerjoin(User, Notification.from_user_id == User.id)
            .outerjoin(Snippet, Notification.snippet_id == Snippet.id)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .execution_options(**_FRESH)
        )
        rows = (await self.session.execute(stmt)).all()
        return [
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
            for n, sender, snippet in rows
        ]

    async def mark_notification_read(self, notification_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
            .execution_options(**_BULK)
        )
        return result.rowcount > 0

    async def mark_all_notifications_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(**_BULK)
        )
        return result.rowcount

    async def get_unread_notification_count(self, user_id: str) -> int:
        return await self._count(
            Notification, Notification.user_id == user_id, Notification.is_read.is_(False)
        )

    # ── Admin ─────────────────────────────────────────────────────────────

    async def get_stats(self) -> AdminStats:
        total_snippets = await self._count(Snippet)
        public_snippets = await self._count(Snippet, Snippet.is_public.is_(True))
        return AdminStats(
            total_users=await self._count(User),
            total_snippets=total_snippets,
            total_admins=await self._count(User, User.rank == RANK_ADMIN),
            public_snippets=public_snippets,
            private_snippets=total_snippets - public_snippets,
        )
