"""Tests for the like and subscription toggles."""

import asyncio

import pytest

from videohub.adapters.store.memory import InMemoryEntityStore
from videohub.domain.enums import Collection, TargetKind, ToggleState
from videohub.domain.ids import new_id
from videohub.domain.models import LikeTarget
from videohub.errors import InvalidOperation, InvalidReference, NotFound
from videohub.services.toggles import ToggleEngine


class CheckBarrierStore(InMemoryEntityStore):
    """Holds every existence check on one collection until ``parties`` arrive.

    Forces concurrent toggles to all observe "absent" before any inserts.
    """

    def __init__(self, collection: Collection, parties: int) -> None:
        super().__init__()
        self._collection = collection
        self._parties = parties
        self._arrived = 0
        self._released = asyncio.Event()

    async def find_many(self, collection, filters=None, sort=None, skip=0, limit=None):
        docs = await super().find_many(collection, filters, sort, skip, limit)
        if collection == self._collection and not self._released.is_set():
            self._arrived += 1
            if self._arrived >= self._parties:
                self._released.set()
            await self._released.wait()
        return docs


class TestToggleLike:
    """Tests for toggle_like."""

    @pytest.mark.asyncio
    async def test_like_then_unlike(self, toggles, seed, store) -> None:
        """Test the first toggle adds a like and the second removes it."""
        user_id = await seed.user("u1")
        video_id = await seed.video(user_id)
        target = LikeTarget(TargetKind.VIDEO, video_id)

        first = await toggles.toggle_like(user_id, target)
        assert first.state == ToggleState.ADDED
        assert first.added is True
        assert await store.count(Collection.LIKES, {"liked_by_id": user_id}) == 1

        second = await toggles.toggle_like(user_id, target)
        assert second.state == ToggleState.REMOVED
        assert second.record_id == first.record_id
        assert await store.count(Collection.LIKES, {"liked_by_id": user_id}) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("times", [1, 2, 3, 4, 5])
    async def test_parity(self, toggles, seed, store, times) -> None:
        """Test an odd number of toggles leaves one like, an even number none."""
        user_id = await seed.user("u1")
        tweet_id = await seed.tweet(user_id)

        for _ in range(times):
            await toggles.toggle_tweet_like(user_id, tweet_id)

        likes = await store.count(Collection.LIKES, {"target_id": tweet_id})
        assert likes == times % 2

    @pytest.mark.asyncio
    async def test_each_kind_is_independent(self, toggles, seed, store) -> None:
        """Test likes on a video, a comment and a tweet are separate records."""
        user_id = await seed.user("u1")
        video_id = await seed.video(user_id)
        comment_id = await seed.comment(user_id, video_id)
        tweet_id = await seed.tweet(user_id)

        await toggles.toggle_video_like(user_id, video_id)
        await toggles.toggle_comment_like(user_id, comment_id)
        await toggles.toggle_tweet_like(user_id, tweet_id)

        likes = await store.find_many(Collection.LIKES, {"liked_by_id": user_id})
        assert sorted(like["target_kind"] for like in likes) == ["comment", "tweet", "video"]

    @pytest.mark.asyncio
    async def test_missing_target(self, toggles, seed) -> None:
        """Test liking content that does not exist raises NotFound."""
        user_id = await seed.user("u1")
        with pytest.raises(NotFound):
            await toggles.toggle_comment_like(user_id, new_id())

    @pytest.mark.asyncio
    async def test_missing_actor(self, toggles, seed) -> None:
        """Test an unknown actor raises NotFound."""
        owner = await seed.user("u1")
        video_id = await seed.video(owner)
        with pytest.raises(NotFound):
            await toggles.toggle_video_like(new_id(), video_id)

    @pytest.mark.asyncio
    async def test_malformed_ids(self, toggles) -> None:
        """Test malformed ids are rejected before touching the store."""
        with pytest.raises(InvalidReference):
            await toggles.toggle_video_like("not-an-id", new_id())
        with pytest.raises(InvalidReference):
            await toggles.toggle_video_like(new_id(), "")

    @pytest.mark.asyncio
    async def test_concurrent_likes_converge(self, seed) -> None:
        """Test racing likes leave one record and report a recovered conflict."""
        store = CheckBarrierStore(Collection.LIKES, parties=2)
        seeder = type(seed)(store)
        user_id = await seeder.user("u1")
        video_id = await seeder.video(user_id)
        engine = ToggleEngine(store)

        outcomes = await asyncio.gather(
            engine.toggle_video_like(user_id, video_id),
            engine.toggle_video_like(user_id, video_id),
        )

        assert all(o.state == ToggleState.ADDED for o in outcomes)
        assert sorted(o.recovered_conflict for o in outcomes) == [False, True]
        assert outcomes[0].record_id == outcomes[1].record_id
        assert await store.count(Collection.LIKES) == 1


class TestToggleSubscription:
    """Tests for toggle_subscription."""

    @pytest.mark.asyncio
    async def test_subscribe_then_unsubscribe(self, toggles, seed, store) -> None:
        """Test the subscription flips on and off."""
        ann = await seed.user("ann")
        bob = await seed.user("bob")

        assert (await toggles.toggle_subscription(ann, bob)).state == ToggleState.ADDED
        assert await store.count(Collection.SUBSCRIPTIONS) == 1
        assert (await toggles.toggle_subscription(ann, bob)).state == ToggleState.REMOVED
        assert await store.count(Collection.SUBSCRIPTIONS) == 0

    @pytest.mark.asyncio
    async def test_self_subscription_rejected(self, toggles, seed, store) -> None:
        """Test subscribing to oneself always fails."""
        ann = await seed.user("ann")
        with pytest.raises(InvalidOperation):
            await toggles.toggle_subscription(ann, ann)
        assert await store.count(Collection.SUBSCRIPTIONS) == 0

    @pytest.mark.asyncio
    async def test_self_subscription_rejected_for_unknown_user(self, toggles) -> None:
        """Test the self check does not depend on the user existing."""
        doc_id = new_id()
        with pytest.raises(InvalidOperation):
            await toggles.toggle_subscription(doc_id, doc_id)

    @pytest.mark.asyncio
    async def test_missing_channel(self, toggles, seed) -> None:
        """Test subscribing to an unknown channel raises NotFound."""
        ann = await seed.user("ann")
        with pytest.raises(NotFound):
            await toggles.toggle_subscription(ann, new_id())

    @pytest.mark.asyncio
    async def test_duplicate_subscribe_race(self, seed) -> None:
        """Test two concurrent subscribes leave exactly one subscription."""
        store = CheckBarrierStore(Collection.SUBSCRIPTIONS, parties=2)
        seeder = type(seed)(store)
        u1 = await seeder.user("u1")
        u2 = await seeder.user("u2")
        engine = ToggleEngine(store)

        outcomes = await asyncio.gather(
            engine.toggle_subscription(u1, u2),
            engine.toggle_subscription(u1, u2),
        )

        assert [o.state for o in outcomes] == [ToggleState.ADDED, ToggleState.ADDED]
        assert sum(o.recovered_conflict for o in outcomes) == 1
        subs = await store.find_many(Collection.SUBSCRIPTIONS)
        assert len(subs) == 1
        assert (subs[0]["subscriber_id"], subs[0]["channel_id"]) == (u1, u2)


@pytest.mark.asyncio
async def test_toggles_on_sql_store(sql_store, sql_seed) -> None:
    """Test the toggle cycle and the unique index against the SQL store."""
    ann = await sql_seed.user("ann")
    bob = await sql_seed.user("bob")
    engine = ToggleEngine(sql_store)

    assert (await engine.toggle_subscription(ann, bob)).added
    assert not (await engine.toggle_subscription(ann, bob)).added
    assert (await engine.toggle_subscription(ann, bob)).added
    assert await sql_store.count(Collection.SUBSCRIPTIONS) == 1
