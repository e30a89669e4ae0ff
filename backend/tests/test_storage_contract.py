"""
Snipply Backend — Storage Contract Tests
==========================================

What:  One suite, run against MemoryStorage and DatabaseStorage (the
       `storage` fixture is parametrized), so both backends stay
       behaviourally identical.

What we test:
    ✅ User creation defaults and uniqueness
    ✅ Listing visibility and ordering
    ✅ Trending window and score ordering
    ✅ Like/unlike idempotence and counter floor
    ✅ View de-duplication by user and by IP
    ✅ Follows, profiles and notifications
    ✅ Cascading deletes for snippets and users
    ✅ Search term matching
    ✅ A failed insert on the database backend leaves earlier writes intact
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import backdate, make_snippet, make_user
from snipply.exceptions import DuplicateRecordError
from snipply.models import NOTIFICATION_NEW_SNIPPET, RANK_ADMIN, RANK_DEFAULT
from snipply.schemas.notification import NotificationCreate
from snipply.schemas.snippet import SnippetCreate
from snipply.services.snippet_service import snippet_service


def _notification(recipient, sender=None, snippet=None, title="New Snippet Posted"):
    return NotificationCreate(
        user_id=recipient.id,
        type=NOTIFICATION_NEW_SNIPPET,
        title=title,
        message="hello",
        snippet_id=snippet.id if snippet else None,
        from_user_id=sender.id if sender else None,
    )


class TestUsers:

    @pytest.mark.asyncio
    async def test_create_user_defaults(self, storage):
        user = await make_user(storage, "alice")

        assert user.id
        assert user.display_name == "alice"
        assert user.rank == RANK_DEFAULT
        assert user.created_at is not None
        assert (await storage.get_user(user.id)).username == "alice"
        assert (await storage.get_user_by_email("alice@snipply.dev")).id == user.id

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, storage):
        await make_user(storage, "alice")
        with pytest.raises(DuplicateRecordError):
            await make_user(storage, "alice", email="other@snipply.dev")

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, storage):
        await make_user(storage, "alice")
        with pytest.raises(DuplicateRecordError):
            await make_user(storage, "bob", email="alice@snipply.dev")

    @pytest.mark.asyncio
    async def test_missing_user_returns_none(self, storage):
        assert await storage.get_user("missing") is None
        assert await storage.get_user_by_username("nobody") is None
        assert await storage.update_user("missing", {"bio": "x"}) is None

    @pytest.mark.asyncio
    async def test_update_user(self, storage):
        user = await make_user(storage, "alice")
        updated = await storage.update_user(user.id, {"bio": "Frontend dev", "rank": RANK_ADMIN})
        assert updated.bio == "Frontend dev"
        assert (await storage.get_user(user.id)).is_admin

    @pytest.mark.asyncio
    async def test_search_users_requires_every_term(self, storage):
        await make_user(storage, "alice", bio="Loves CSS grids")
        await make_user(storage, "bob", bio="Backend person")

        assert [u.username for u in await storage.search_users("css ALICE")] == ["alice"]
        assert await storage.search_users("alice backend") == []
        assert [u.username for u in await storage.search_users("snipply.dev bob")] == ["bob"]


class TestSnippetListings:

    @pytest.mark.asyncio
    async def test_create_snippet_defaults(self, storage):
        author = await make_user(storage, "alice")
        snippet = await storage.create_snippet(author.id, {"title": "Bare"})

        assert snippet.html == "" and snippet.css == "" and snippet.javascript == ""
        assert snippet.is_public is False
        assert snippet.views == 0 and snippet.likes == 0

    @pytest.mark.asyncio
    async def test_public_listing_excludes_private(self, storage):
        author = await make_user(storage, "alice")
        public = await make_snippet(storage, author, "Public")
        await make_snippet(storage, author, "Private", is_public=False)

        listed = await storage.get_public_snippets()
        assert [s.id for s in listed] == [public.id]
        assert listed[0].author.username == "alice"
        assert listed[0].author.display_name == "alice"

    @pytest.mark.asyncio
    async def test_public_listing_newest_first_with_paging(self, storage):
        author = await make_user(storage, "alice")
        old = await make_snippet(storage, author, "Old")
        new = await make_snippet(storage, author, "New")
        await backdate(storage, old, 2)

        assert [s.id for s in await storage.get_public_snippets()] == [new.id, old.id]
        assert [s.id for s in await storage.get_public_snippets(limit=1, offset=1)] == [old.id]

    @pytest.mark.asyncio
    async def test_by_author_is_public_only_and_own_includes_private(self, storage):
        author = await make_user(storage, "alice")
        await make_snippet(storage, author, "Public")
        await make_snippet(storage, author, "Private", is_public=False)

        assert len(await storage.get_snippets_by_author(author.id)) == 1
        assert len(await storage.get_user_own_snippets(author.id)) == 2

    @pytest.mark.asyncio
    async def test_admin_listing_includes_private(self, storage):
        author = await make_user(storage, "alice")
        await make_snippet(storage, author, "Public")
        await make_snippet(storage, author, "Private", is_public=False)

        assert len(await storage.get_all_snippets()) == 2

    @pytest.mark.asyncio
    async def test_update_snippet_refreshes_updated_at(self, storage):
        author = await make_user(storage, "alice")
        snippet = await make_snippet(storage, author)
        before = snippet.updated_at

        updated = await storage.update_snippet(snippet.id, {"title": "Renamed"})
        assert updated.title == "Renamed"
        assert updated.updated_at >= before
        assert await storage.update_snippet("missing", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_get_snippet_with_author_missing(self, storage):
        assert await storage.get_snippet_with_author("missing") is None


class TestTrending:

    @pytest.mark.asyncio
    async def test_trending_window_and_score_order(self, storage):
        author = await make_user(storage, "alice")
        fan = await make_user(storage, "bob")
        quiet = await make_snippet(storage, author, "Quiet")
        popular = await make_snippet(storage, author, "Popular")
        stale = await make_snippet(storage, author, "Stale")
        hidden = await make_snippet(storage, author, "Hidden", is_public=False)

        await storage.like_snippet(popular.id, fan.id)
        await storage.increment_views(popular.id, ip_address="10.0.0.1")
        await storage.like_snippet(stale.id, fan.id)
        await storage.like_snippet(hidden.id, fan.id)
        await backdate(storage, stale, 10)

        since = datetime.now(timezone.utc) - timedelta(days=7)
        trending = await storage.get_trending_snippets(10, since)

        assert [s.id for s in trending] == [popular.id, quiet.id]

    @pytest.mark.asyncio
    async def test_trending_respects_limit(self, storage):
        author = await make_user(storage, "alice")
        for i in range(3):
            await make_snippet(storage, author, f"S{i}")

        since = datetime.now(timezone.utc) - timedelta(days=7)
        assert len(await storage.get_trending_snippets(2, since)) == 2


class TestLikes:

    @pytest.mark.asyncio
    async def test_like_twice_is_noop(self, storage):
        author = await make_user(storage, "alice")
        fan = await make_user(storage, "bob")
        snippet = await make_snippet(storage, author)

        assert await storage.like_snippet(snippet.id, fan.id) is True
        assert await storage.like_snippet(snippet.id, fan.id) is False
        assert (await storage.get_snippet(snippet.id)).likes == 1
        assert await storage.is_snippet_liked(snippet.id, fan.id)

    @pytest.mark.asyncio
    async def test_like_missing_snippet(self, storage):
        fan = await make_user(storage, "bob")
        assert await storage.like_snippet("missing", fan.id) is False

    @pytest.mark.asyncio
    async def test_unlike(self, storage):
        author = await make_user(storage, "alice")
        fan = await make_user(storage, "bob")
        snippet = await make_snippet(storage, author)
        await storage.like_snippet(snippet.id, fan.id)

        assert await storage.unlike_snippet(snippet.id, fan.id) is True
        assert await storage.unlike_snippet(snippet.id, fan.id) is False
        assert (await storage.get_snippet(snippet.id)).likes == 0

    @pytest.mark.asyncio
    async def test_counter_never_negative(self, storage):
        author = await make_user(storage, "alice")
        fan = await make_user(storage, "bob")
        snippet = await make_snippet(storage, author)
        await storage.like_snippet(snippet.id, fan.id)
        await storage.update_snippet(snippet.id, {"likes": 0})

        assert await storage.unlike_snippet(snippet.id, fan.id) is True
        assert (await storage.get_snippet(snippet.id)).likes == 0

    @pytest.mark.asyncio
    async def test_liked_ids_and_liked_snippets(self, storage):
        author = await make_user(storage, "alice")
        fan = await make_user(storage, "bob")
        first = await make_snippet(storage, author, "First")
        second = await make_snippet(storage, author, "Second")
        private = await make_snippet(storage, author, "Private", is_public=False)
        for s in (first, second, private):
            await storage.like_snippet(s.id, fan.id)

        assert await storage.get_liked_snippet_ids(fan.id, [first.id, "other"]) == {first.id}
        assert await storage.get_liked_snippet_ids(fan.id, []) == set()
        liked = await storage.get_liked_snippets_by_user(fan.id)
        assert {s.id for s in liked} == {first.id, second.id}


class TestViews:

    @pytest.mark.asyncio
    async def test_same_ip_counted_once(self, storage):
        author = await make_user(storage, "alice")
        snippet = await make_snippet(storage, author)

        assert await storage.increment_views(snippet.id, ip_address="1.2.3.4") is True
        assert await storage.increment_views(snippet.id, ip_address="1.2.3.4") is False
        assert await storage.increment_views(snippet.id, ip_address="5.6.7.8") is True
        assert (await storage.get_snippet(snippet.id)).views == 2

    @pytest.mark.asyncio
    async def test_same_user_counted_once_across_ips(self, storage):
        author = await make_user(storage, "alice")
        viewer = await make_user(storage, "bob")
        snippet = await make_snippet(storage, author)

        assert await storage.increment_views(snippet.id, viewer.id, "1.1.1.1") is True
        assert await storage.increment_views(snippet.id, viewer.id, "2.2.2.2") is False
        assert (await storage.get_snippet(snippet.id)).views == 1

    @pytest.mark.asyncio
    async def test_signed_in_view_does_not_consume_ip_identity(self, storage):
        author = await make_user(storage, "alice")
        viewer = await make_user(storage, "bob")
        snippet = await make_snippet(storage, author)

        await storage.increment_views(snippet.id, viewer.id, "1.1.1.1")
        assert await storage.increment_views(snippet.id, None, "1.1.1.1") is True

    @pytest.mark.asyncio
    async def test_missing_snippet(self, storage):
        assert await storage.increment_views("missing", ip_address="1.1.1.1") is False


class TestFollows:

    @pytest.mark.asyncio
    async def test_follow_rules(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")

        assert await storage.follow_user(alice.id, alice.id) is False
        assert await storage.follow_user(alice.id, bob.id) is True
        assert await storage.follow_user(alice.id, bob.id) is False
        assert await storage.is_following(alice.id, bob.id)
        assert not await storage.is_following(bob.id, alice.id)

    @pytest.mark.asyncio
    async def test_followers_and_following(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        carol = await make_user(storage, "carol")
        await storage.follow_user(bob.id, alice.id)
        await storage.follow_user(carol.id, alice.id)

        assert {u.username for u in await storage.get_followers(alice.id)} == {"bob", "carol"}
        assert [u.username for u in await storage.get_following(bob.id)] == ["alice"]

        assert await storage.unfollow_user(bob.id, alice.id) is True
        assert await storage.unfollow_user(bob.id, alice.id) is False
        assert [u.username for u in await storage.get_followers(alice.id)] == ["carol"]

    @pytest.mark.asyncio
    async def test_profile_counts(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        await make_snippet(storage, alice, "Public")
        await make_snippet(storage, alice, "Private", is_public=False)
        await storage.follow_user(bob.id, alice.id)

        profile = await storage.get_user_profile("alice", bob.id)
        assert profile.snippets_count == 1
        assert profile.followers_count == 1
        assert profile.following_count == 0
        assert profile.is_following is True

        anonymous = await storage.get_user_profile("alice")
        assert anonymous.is_following is False
        assert await storage.get_user_profile("nobody") is None


class TestNotifications:

    @pytest.mark.asyncio
    async def test_details_and_read_flags(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        snippet = await make_snippet(storage, alice, "Card")

        created = await storage.create_notification(_notification(bob, alice, snippet))
        await storage.create_notification(_notification(bob, title="System"))

        inbox = await storage.get_notifications(bob.id)
        assert len(inbox) == 2
        detailed = next(n for n in inbox if n.id == created.id)
        assert detailed.from_user.username == "alice"
        assert detailed.snippet.title == "Card"
        assert next(n for n in inbox if n.id != created.id).from_user is None

        assert await storage.get_unread_notification_count(bob.id) == 2
        assert await storage.mark_notification_read(created.id, alice.id) is False
        assert await storage.mark_notification_read(created.id, bob.id) is True
        assert await storage.get_unread_notification_count(bob.id) == 1
        assert await storage.mark_all_notifications_read(bob.id) == 1
        assert await storage.get_unread_notification_count(bob.id) == 0

    @pytest.mark.asyncio
    async def test_limit(self, storage):
        alice = await make_user(storage, "alice")
        for _ in range(3):
            await storage.create_notification(_notification(alice))
        assert len(await storage.get_notifications(alice.id, limit=2)) == 2


class TestDeletes:

    @pytest.mark.asyncio
    async def test_delete_snippet_removes_likes_and_views(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        snippet = await make_snippet(storage, alice)
        await storage.like_snippet(snippet.id, bob.id)
        await storage.increment_views(snippet.id, bob.id)
        note = await storage.create_notification(_notification(bob, alice, snippet))

        assert await storage.delete_snippet(snippet.id) is True
        assert await storage.delete_snippet(snippet.id) is False
        assert await storage.get_snippet(snippet.id) is None
        assert await storage.get_liked_snippet_ids(bob.id) == set()

        inbox = await storage.get_notifications(bob.id)
        assert inbox[0].id == note.id
        assert inbox[0].snippet_id is None
        assert inbox[0].snippet is None

    @pytest.mark.asyncio
    async def test_delete_user_cascades(self, storage):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        carol = await make_user(storage, "carol")
        alice_snippet = await make_snippet(storage, alice, "Alice's")
        bob_snippet = await make_snippet(storage, bob, "Bob's")

        await storage.like_snippet(alice_snippet.id, bob.id)
        await storage.like_snippet(bob_snippet.id, alice.id)
        await storage.increment_views(bob_snippet.id, alice.id)
        await storage.follow_user(alice.id, bob.id)
        await storage.follow_user(carol.id, alice.id)
        await storage.create_notification(_notification(carol, alice, alice_snippet))
        await storage.create_notification(_notification(alice, bob, bob_snippet))

        assert await storage.delete_user_and_snippets(alice.id) is True

        assert await storage.get_user(alice.id) is None
        assert await storage.get_snippet(alice_snippet.id) is None
        assert await storage.get_user_own_snippets(alice.id) == []
        assert await storage.get_liked_snippet_ids(bob.id) == set()
        assert (await storage.get_snippet(bob_snippet.id)).likes == 0
        assert await storage.get_following(carol.id) == []
        assert await storage.get_followers(bob.id) == []
        assert await storage.get_notifications(carol.id) == []
        assert await storage.get_notifications(alice.id) == []

        stats = await storage.get_stats()
        assert stats.total_users == 2
        assert stats.total_snippets == 1

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, storage):
        assert await storage.delete_user_and_snippets("missing") is False


class TestSearchAndStats:

    @pytest.mark.asyncio
    async def test_search_matches_every_term_across_fields(self, storage):
        author = await make_user(storage, "alice")
        match = await make_snippet(
            storage, author, "Flex Card", description="Responsive layout", css=".card{display:flex}"
        )
        await make_snippet(storage, author, "Flex Hidden", is_public=False, css="display:flex")
        await make_snippet(storage, author, "Grid", css="display:grid")

        assert [s.id for s in await storage.search_snippets("flex responsive")] == [match.id]
        assert [s.id for s in await storage.search_snippets("DISPLAY:FLEX")] == [match.id]
        assert await storage.search_snippets("flex grid") == []

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, storage):
        author = await make_user(storage, "alice")
        await make_snippet(storage, author, "Plain")
        assert await storage.search_snippets("%") == []

    @pytest.mark.asyncio
    async def test_stats(self, storage):
        alice = await make_user(storage, "alice", rank=RANK_ADMIN)
        await make_user(storage, "bob")
        await make_snippet(storage, alice, "Public")
        await make_snippet(storage, alice, "Private", is_public=False)

        stats = await storage.get_stats()
        assert stats.total_users == 2
        assert stats.total_admins == 1
        assert stats.total_snippets == 2
        assert stats.public_snippets == 1
        assert stats.private_snippets == 1


@pytest.mark.parametrize("storage", ["database"], indirect=True)
class TestTransactionIsolation:

    @pytest.mark.asyncio
    async def test_failed_notification_keeps_snippet_and_other_notifications(self, storage, monkeypatch):
        alice = await make_user(storage, "alice")
        bob = await make_user(storage, "bob")
        carol = await make_user(storage, "carol")
        await storage.follow_user(bob.id, alice.id)
        await storage.follow_user(carol.id, alice.id)

        create_notification = storage.create_notification
        calls = []

        async def first_insert_fails(data):
            calls.append(data.user_id)
            if len(calls) == 1:
                # NOT NULL violation at flush time
                data = data.model_copy(update={"title": None})
            return await create_notification(data)

        monkeypatch.setattr(storage, "create_notification", first_insert_fails)
        snippet = await snippet_service.create(
            storage, alice.id, SnippetCreate(title="Fresh", is_public=True)
        )
        monkeypatch.undo()
        await storage.session.commit()

        assert len(calls) == 2
        assert (await storage.get_snippet(snippet.id)).title == "Fresh"
        delivered = await storage.get_notifications(bob.id) + await storage.get_notifications(carol.id)
        assert len(delivered) == 1
        assert delivered[0].snippet_id == snippet.id

    @pytest.mark.asyncio
    async def test_duplicate_insert_keeps_earlier_writes(self, storage, monkeypatch):
        alice = await make_user(storage, "alice")

        # Skip the pre-checks so the unique constraint fires on flush
        monkeypatch.setattr(storage, "get_user_by_username", AsyncMock(return_value=None))
        monkeypatch.setattr(storage, "get_user_by_email", AsyncMock(return_value=None))
        with pytest.raises(DuplicateRecordError):
            await make_user(storage, "alice")
        monkeypatch.undo()

        bob = await make_user(storage, "bob")
        await storage.session.commit()

        assert (await storage.get_user(alice.id)).username == "alice"
        assert (await storage.get_user(bob.id)).username == "bob"
