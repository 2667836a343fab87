"""Contract tests run against every entity store implementation."""

import asyncio

import pytest

from videohub.adapters.store.base import TEXT, Contains, In, Increment, Search
from videohub.domain.enums import Collection, SortDirection
from videohub.domain.ids import is_valid_id, new_id
from videohub.errors import DuplicateKeyError, InvalidOperation


class TestCrud:
    """Tests for single-document operations."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamps(self, any_store, any_seed) -> None:
        """Test the store assigns id, created_at and updated_at."""
        user_id = await any_seed.user("ann")
        doc = await any_store.find_by_id(Collection.USERS, user_id)

        assert is_valid_id(user_id)
        assert doc["id"] == user_id
        assert doc["username"] == "ann"
        assert doc["created_at"] is not None
        assert doc["updated_at"] is not None

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, any_store) -> None:
        """Test an absent id is reported as None."""
        assert await any_store.find_by_id(Collection.VIDEOS, new_id()) is None
        assert await any_store.exists(Collection.VIDEOS, new_id()) is False

    @pytest.mark.asyncio
    async def test_update_by_id(self, any_store, any_seed) -> None:
        """Test a patch is applied and the document returned."""
        user_id = await any_seed.user("ann")
        video_id = await any_seed.video(user_id, title="Old")

        doc = await any_store.update_by_id(Collection.VIDEOS, video_id, {"title": "New"})

        assert doc["title"] == "New"
        assert doc["owner_id"] == user_id

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, any_store) -> None:
        """Test patching an absent id is not an error."""
        assert await any_store.update_by_id(Collection.VIDEOS, new_id(), {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_increment(self, any_store, any_seed) -> None:
        """Test Increment adds to the stored value."""
        user_id = await any_seed.user("ann")
        video_id = await any_seed.video(user_id, views=5)

        await any_store.update_by_id(Collection.VIDEOS, video_id, {"views": Increment()})
        doc = await any_store.update_by_id(Collection.VIDEOS, video_id, {"views": Increment(3)})

        assert doc["views"] == 9

    @pytest.mark.asyncio
    async def test_delete_by_id_is_idempotent(self, any_store, any_seed) -> None:
        """Test deleting twice returns True then False."""
        user_id = await any_seed.user("ann")
        tweet_id = await any_seed.tweet(user_id)

        assert await any_store.delete_by_id(Collection.TWEETS, tweet_id) is True
        assert await any_store.delete_by_id(Collection.TWEETS, tweet_id) is False


class TestUniqueIndexes:
    """Tests for the unique indexes the toggle engine relies on."""

    @pytest.mark.asyncio
    async def test_duplicate_like_rejected(self, any_seed) -> None:
        """Test a second like for the same actor and target is rejected."""
        user_id = await any_seed.user("ann")
        video_id = await any_seed.video(user_id)
        await any_seed.like(user_id, "video", video_id)

        with pytest.raises(DuplicateKeyError):
            await any_seed.like(user_id, "video", video_id)

    @pytest.mark.asyncio
    async def test_same_id_different_kind_allowed(self, any_seed) -> None:
        """Test the index covers the target kind as well as the id."""
        user_id = await any_seed.user("ann")
        target = new_id()
        await any_seed.like(user_id, "video", target)
        await any_seed.like(user_id, "tweet", target)

    @pytest.mark.asyncio
    async def test_duplicate_subscription_rejected(self, any_seed) -> None:
        """Test a second subscription for the same pair is rejected."""
        ann = await any_seed.user("ann")
        bob = await any_seed.user("bob")
        await any_seed.subscription(ann, bob)

        with pytest.raises(DuplicateKeyError):
            await any_seed.subscription(ann, bob)
        # The reverse direction is a different pair
        await any_seed.subscription(bob, ann)

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, any_seed) -> None:
        """Test usernames are unique."""
        await any_seed.user("ann")
        with pytest.raises(DuplicateKeyError):
            await any_seed.user("ann", email="other@example.com")


class TestQueries:
    """Tests for filters, sorting and paging."""

    @pytest.mark.asyncio
    async def test_in_filter(self, any_store, any_seed) -> None:
        """Test set-membership filtering, including the empty set."""
        owner = await any_seed.user("ann")
        ids = [await any_seed.video(owner) for _ in range(4)]

        found = await any_store.find_many(Collection.VIDEOS, {"id": In(ids[:2])})
        assert {d["id"] for d in found} == set(ids[:2])
        assert await any_store.find_many(Collection.VIDEOS, {"id": In([])}) == []
        assert await any_store.count(Collection.VIDEOS, {"id": In(ids[1:])}) == 3

    @pytest.mark.asyncio
    async def test_contains_filter(self, any_store, any_seed) -> None:
        """Test filtering on list membership."""
        owner = await any_seed.user("ann")
        video_id = await any_seed.video(owner)
        with_video = await any_seed.playlist(owner, [video_id])
        await any_seed.playlist(owner, [])

        found = await any_store.find_many(Collection.PLAYLISTS, {"videos": Contains(video_id)})

        assert [d["id"] for d in found] == [with_video]
        assert await any_store.count(Collection.PLAYLISTS, {"videos": Contains(video_id)}) == 1

    @pytest.mark.asyncio
    async def test_search_filter(self, any_store, any_seed) -> None:
        """Test case-insensitive search over several fields."""
        owner = await any_seed.user("ann")
        by_title = await any_seed.video(owner, title="Cooking PASTA")
        by_description = await any_seed.video(owner, description="how to make pasta")
        await any_seed.video(owner, title="Gardening")

        found = await any_store.find_many(
            Collection.VIDEOS, {TEXT: Search("pasta", ("title", "description"))}
        )

        assert {d["id"] for d in found} == {by_title, by_description}

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, any_store, any_seed) -> None:
        """Test SQL wildcard characters in a search term match literally."""
        owner = await any_seed.user("ann")
        await any_seed.video(owner, title="100% real")
        await any_seed.video(owner, title="100 real")

        found = await any_store.find_many(Collection.VIDEOS, {TEXT: Search("0%", ("title",))})

        assert [d["title"] for d in found] == ["100% real"]

    @pytest.mark.asyncio
    async def test_sort_ties_break_on_id(self, any_store, any_seed) -> None:
        """Test equal sort keys are ordered by id ascending."""
        owner = await any_seed.user("ann")
        ids = [await any_seed.video(owner, views=7) for _ in range(5)]

        found = await any_store.find_many(
            Collection.VIDEOS, sort=[("views", SortDirection.DESC)]
        )

        assert [d["id"] for d in found] == sorted(ids)

    @pytest.mark.asyncio
    async def test_unknown_sort_field_rejected(self, any_store, any_seed) -> None:
        """Test both stores refuse to order by a field the collection lacks."""
        owner = await any_seed.user("ann")
        await any_seed.video(owner)

        with pytest.raises(InvalidOperation, match="no_such_field"):
            await any_store.find_many(
                Collection.VIDEOS, sort=[("no_such_field", SortDirection.ASC)]
            )
        with pytest.raises(InvalidOperation):
            await any_store.find_many(Collection.VIDEOS, sort=[("watch_history", SortDirection.ASC)])

    @pytest.mark.asyncio
    async def test_skip_and_limit_partition_results(self, any_store, any_seed) -> None:
        """Test consecutive pages cover every document exactly once."""
        owner = await any_seed.user("ann")
        ids = {await any_seed.video(owner) for _ in range(7)}
        sort = [("created_at", SortDirection.DESC)]

        seen: list[str] = []
        for skip in range(0, 9, 3):
            page = await any_store.find_many(Collection.VIDEOS, sort=sort, skip=skip, limit=3)
            seen.extend(d["id"] for d in page)

        assert len(seen) == 7
        assert set(seen) == ids

    @pytest.mark.asyncio
    async def test_delete_many(self, any_store, any_seed) -> None:
        """Test bulk deletion reports how many documents went."""
        owner = await any_seed.user("ann")
        other = await any_seed.user("bob")
        for _ in range(3):
            await any_seed.tweet(owner)
        await any_seed.tweet(other)

        assert await any_store.delete_many(Collection.TWEETS, {"owner_id": owner}) == 3
        assert await any_store.count(Collection.TWEETS) == 1


class TestListFields:
    """Tests for set-like list updates."""

    @pytest.mark.asyncio
    async def test_add_to_set_does_not_duplicate(self, any_store, any_seed) -> None:
        """Test adding a present value leaves the list unchanged."""
        owner = await any_seed.user("ann")
        a, b = await any_seed.video(owner), await any_seed.video(owner)
        playlist_id = await any_seed.playlist(owner, [a, b])

        doc = await any_store.add_to_set(Collection.PLAYLISTS, playlist_id, "videos", a)

        assert doc["videos"] == [a, b]

    @pytest.mark.asyncio
    async def test_add_to_set_move_to_end(self, any_store, any_seed) -> None:
        """Test move_to_end re-orders a present value to most recent."""
        user_id = await any_seed.user("ann")
        a, b = await any_seed.video(user_id), await any_seed.video(user_id)

        for video_id in (a, b, a):
            await any_store.add_to_set(
                Collection.USERS, user_id, "watch_history", video_id, move_to_end=True
            )
        doc = await any_store.find_by_id(Collection.USERS, user_id)

        assert doc["watch_history"] == [b, a]

    @pytest.mark.asyncio
    async def test_add_to_set_missing_document(self, any_store) -> None:
        """Test list updates on an absent document return None."""
        assert await any_store.add_to_set(Collection.PLAYLISTS, new_id(), "videos", new_id()) is None

    @pytest.mark.asyncio
    async def test_pull_and_pull_all(self, any_store, any_seed) -> None:
        """Test removing a value from one document and from all of them."""
        owner = await any_seed.user("ann")
        a, b = await any_seed.video(owner), await any_seed.video(owner)
        p1 = await any_seed.playlist(owner, [a, b])
        p2 = await any_seed.playlist(owner, [a])
        p3 = await any_seed.playlist(owner, [b])

        doc = await any_store.pull(Collection.PLAYLISTS, p3, "videos", b)
        assert doc["videos"] == []

        assert await any_store.pull_all(Collection.PLAYLISTS, "videos", a) == 2
        assert (await any_store.find_by_id(Collection.PLAYLISTS, p1))["videos"] == [b]
        assert (await any_store.find_by_id(Collection.PLAYLISTS, p2))["videos"] == []
        assert await any_store.pull_all(Collection.PLAYLISTS, "videos", a) == 0

    @pytest.mark.asyncio
    async def test_concurrent_add_to_set_keeps_every_value(self, any_store, any_seed) -> None:
        """Test concurrent additions to one list never lose an update."""
        owner = await any_seed.user("ann")
        playlist_id = await any_seed.playlist(owner)
        video_ids = [new_id() for _ in range(4)]

        await asyncio.gather(
            *(
                any_store.add_to_set(Collection.PLAYLISTS, playlist_id, "videos", v)
                for v in video_ids
            )
        )
        doc = await any_store.find_by_id(Collection.PLAYLISTS, playlist_id)

        assert sorted(doc["videos"]) == sorted(video_ids)

    @pytest.mark.asyncio
    async def test_contains_pages_and_deletes(self, any_store, any_seed) -> None:
        """Test membership filters combine with paging, counting and bulk deletes."""
        video_id = new_id()
        holders = [await any_seed.user(f"u{i}", watch_history=[new_id(), video_id]) for i in range(3)]
        await any_seed.user("empty")
        await any_seed.user("other", watch_history=[new_id()])
        contains = {"watch_history": Contains(video_id)}

        first = await any_store.find_many(
            Collection.USERS, contains, sort=[("created_at", SortDirection.ASC)], limit=2
        )
        rest = await any_store.find_many(
            Collection.USERS, contains, sort=[("created_at", SortDirection.ASC)], skip=2
        )

        seen = [d["id"] for d in first + rest]
        assert len(seen) == 3
        assert set(seen) == set(holders)
        assert await any_store.count(Collection.USERS, contains) == 3
        assert await any_store.delete_many(Collection.USERS, contains) == 3
        assert await any_store.count(Collection.USERS) == 2


class TestSqlFilters:
    """Tests for how the SQL store compiles filters."""

    def test_contains_runs_in_sql(self, sql_store) -> None:
        """Test list membership becomes a json_each clause on SQLite."""
        from videohub.db.models import PlaylistModel

        clauses, deferred = sql_store._compile_filters(
            PlaylistModel, {"videos": Contains(new_id())}
        )

        assert deferred == {}
        assert "json_each" in str(clauses[0])

    def test_unknown_filter_field(self, sql_store) -> None:
        """Test filtering on a missing column is a client error."""
        from videohub.db.models import VideoModel

        with pytest.raises(InvalidOperation, match="no_such_field"):
            sql_store._compile_filters(VideoModel, {"no_such_field": 1})


@pytest.mark.asyncio
async def test_health_check(any_store) -> None:
    """Test both stores report healthy."""
    assert await any_store.health_check() is True
