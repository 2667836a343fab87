"""Joined, paginated read views built without a store-side join.

Every view follows the same shape: fetch the page of root documents, collect
the distinct foreign ids it references, fetch each related collection once
with an id-set filter, and stitch the results together in memory. No view
issues one query per row.
"""

from collections import defaultdict
from typing import Any

from videohub.adapters.store.base import TEXT, EntityStore, Filters, In, Search, check_sort
from videohub.config import settings
from videohub.domain.enums import Collection, SortDirection, TargetKind
from videohub.domain.ids import require_id
from videohub.domain.models import Comment, Playlist, Tweet, User, Video, target_kind
from videohub.domain.pagination import Page, PageRequest
from videohub.domain.views import (
    ChannelProfile,
    ChannelStats,
    CommentView,
    ContentLikes,
    CountedList,
    LikedItem,
    OwnerSummary,
    PlaylistView,
    TweetView,
    UserDashboard,
    VideoCard,
    VideoDetail,
    WatchedVideo,
)
from videohub.services.base import StoreBackedService

NEWEST_FIRST = [("created_at", SortDirection.DESC)]
OLDEST_FIRST = [("created_at", SortDirection.ASC)]

CONTENT_TYPES = {
    TargetKind.VIDEO: Video,
    TargetKind.COMMENT: Comment,
    TargetKind.TWEET: Tweet,
}


def _owner(users: dict[str, dict[str, Any]], user_id: str | None) -> OwnerSummary | None:
    doc = users.get(user_id) if user_id else None
    return OwnerSummary.from_document(doc) if doc else None


class AggregationAssembler(StoreBackedService):
    """Builds denormalized views by batch-joining collections."""

    def __init__(self, store: EntityStore, store_timeout: float | None = None) -> None:
        super().__init__(store, store_timeout=store_timeout)

    def _page_request(self, page_request: PageRequest | None) -> PageRequest:
        request = page_request or PageRequest(limit=settings.default_page_limit)
        return request.capped(settings.max_page_limit)

    async def _fetch_page(
        self,
        collection: Collection,
        filters: Filters,
        request: PageRequest,
    ) -> tuple[list[dict[str, Any]], int]:
        check_sort(collection, request.sort)
        total = await self._store(
            f"count_{collection}", self.store.count(collection, filters)
        )
        docs = await self._store(
            f"page_{collection}",
            self.store.find_many(
                collection,
                filters,
                sort=request.sort,
                skip=request.skip,
                limit=request.limit,
            ),
        )
        return docs, total

    async def _likes_on(
        self,
        kind: TargetKind,
        target_ids: set[str],
    ) -> dict[str, list[dict[str, Any]]]:
        """Batch-fetch likes on a set of targets, grouped by target id."""
        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        if not target_ids:
            return grouped
        likes = await self._store(
            "load_likes",
            self.store.find_many(
                Collection.LIKES,
                {"target_kind": str(kind), "target_id": In(target_ids)},
                sort=OLDEST_FIRST,
            ),
        )
        for like in likes:
            grouped[like["target_id"]].append(like)
        return grouped

    async def _require_user(self, user_id: str, label: str = "user") -> dict[str, Any]:
        require_id(user_id, f"{label}_id")
        return await self._get(Collection.USERS, user_id, label)

    @staticmethod
    def _liker_names(likes: list[dict[str, Any]], users: dict[str, dict[str, Any]]) -> list[str]:
        return [
            users[like["liked_by_id"]].get("full_name", "")
            for like in likes
            if like["liked_by_id"] in users
        ]

    # -------------------------------------------------------------------------
    # Feeds
    # -------------------------------------------------------------------------

    async def video_comment_feed(
        self,
        video_id: str,
        page_request: PageRequest | None = None,
    ) -> Page[CommentView]:
        """Comments of a video, newest first, with owners and likers."""
        require_id(video_id, "video_id")
        await self._get(Collection.VIDEOS, video_id, "video")
        request = self._page_request(page_request)

        docs, total = await self._fetch_page(Collection.COMMENTS, {"video_id": video_id}, request)
        likes = await self._likes_on(TargetKind.COMMENT, {d["id"] for d in docs})
        user_ids = {d["owner_id"] for d in docs}
        user_ids |= {like["liked_by_id"] for group in likes.values() for like in group}
        users = await self._by_id("load_users", Collection.USERS, user_ids)

        items = [
            CommentView(
                id=doc["id"],
                video_id=doc["video_id"],
                content=doc.get("content", ""),
                created_at=doc.get("created_at"),
                owner=_owner(users, doc["owner_id"]),
                like_count=len(likes.get(doc["id"], [])),
                liked_by=self._liker_names(likes.get(doc["id"], []), users),
            )
            for doc in docs
        ]
        return Page(items=items, total=total, page=request.page, limit=request.limit)

    async def list_videos(
        self,
        page_request: PageRequest | None = None,
        query: str | None = None,
        owner_id: str | None = None,
        include_unpublished: bool = False,
    ) -> Page[VideoCard]:
        """Published videos, optionally searched or limited to one owner."""
        filters: dict[str, Any] = {}
        if not include_unpublished:
            filters["is_published"] = True
        if owner_id is not None:
            filters["owner_id"] = require_id(owner_id, "owner_id")
        if query and query.strip():
            filters[TEXT] = Search(query.strip(), ("title", "description"))
        request = self._page_request(page_request)

        docs, total = await self._fetch_page(Collection.VIDEOS, filters, request)
        likes = await self._likes_on(TargetKind.VIDEO, {d["id"] for d in docs})
        user_ids = {d["owner_id"] for d in docs}
        user_ids |= {like["liked_by_id"] for group in likes.values() for like in group}
        users = await self._by_id("load_users", Collection.USERS, user_ids)

        items = [
            VideoCard(
                video=Video.from_document(doc),
                owner=_owner(users, doc["owner_id"]),
                like_count=len(likes.get(doc["id"], [])),
                liked_by=self._liker_names(likes.get(doc["id"], []), users),
            )
            for doc in docs
        ]
        return Page(items=items, total=total, page=request.page, limit=request.limit)

    async def video_detail(self, video_id: str) -> VideoDetail:
        """One video with its owner and engagement counts."""
        require_id(video_id, "video_id")
        doc = await self._get(Collection.VIDEOS, video_id, "video")
        owner = await self._store("load_owner", self.store.find_by_id(Collection.USERS, doc["owner_id"]))
        like_count = await self._store(
            "count_likes",
            self.store.count(
                Collection.LIKES, {"target_kind": str(TargetKind.VIDEO), "target_id": video_id}
            ),
        )
        comment_count = await self._store(
            "count_comments", self.store.count(Collection.COMMENTS, {"video_id": video_id})
        )
        return VideoDetail(
            video=Video.from_document(doc),
            owner=OwnerSummary.from_document(owner) if owner else None,
            like_count=like_count,
            comment_count=comment_count,
        )

    async def user_tweets(self, owner_id: str) -> list[TweetView]:
        """A user's tweets, newest first, with likers."""
        user = await self._require_user(owner_id, "owner")
        docs = await self._store(
            "load_tweets",
            self.store.find_many(Collection.TWEETS, {"owner_id": owner_id}, sort=NEWEST_FIRST),
        )
        likes = await self._likes_on(TargetKind.TWEET, {d["id"] for d in docs})
        liker_ids = {like["liked_by_id"] for group in likes.values() for like in group}
        users = await self._by_id("load_likers", Collection.USERS, liker_ids)
        users[user["id"]] = user

        return [
            TweetView(
                tweet=Tweet.from_document(doc),
                owner=_owner(users, doc["owner_id"]),
                like_count=len(likes.get(doc["id"], [])),
                liked_by=self._liker_names(likes.get(doc["id"], []), users),
            )
            for doc in docs
        ]

    async def liked_content(self, actor_id: str, kind: TargetKind) -> list[LikedItem]:
        """Content of one kind the actor has liked, most recent like first.

        Likes whose target no longer exists are skipped.

        Raises:
            InvalidOperation: If ``kind`` is not video, comment or tweet
        """
        kind = target_kind(kind)
        await self._require_user(actor_id, "actor")
        likes = await self._store(
            "load_likes",
            self.store.find_many(
                Collection.LIKES,
                {"liked_by_id": actor_id, "target_kind": str(kind)},
                sort=NEWEST_FIRST,
            ),
        )
        contents = await self._by_id(
            f"load_{kind}s", kind.collection, {like["target_id"] for like in likes}
        )
        users = await self._by_id(
            "load_owners", Collection.USERS, {c["owner_id"] for c in contents.values()}
        )

        items = []
        for like in likes:
            content = contents.get(like["target_id"])
            if content is None:
                continue
            items.append(
                LikedItem(
                    like_id=like["id"],
                    kind=kind,
                    content=CONTENT_TYPES[kind].from_document(content),
                    owner=_owner(users, content["owner_id"]),
                )
            )
        return items

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    async def channel_profile(
        self,
        channel_id: str,
        viewer_id: str | None = None,
    ) -> ChannelProfile:
        """A user's public channel page as seen by ``viewer_id``."""
        user = await self._require_user(channel_id, "channel")
        subscriber_count = await self._store(
            "count_subscribers",
            self.store.count(Collection.SUBSCRIPTIONS, {"channel_id": channel_id}),
        )
        subscribed_to_count = await self._store(
            "count_subscribed_to",
            self.store.count(Collection.SUBSCRIPTIONS, {"subscriber_id": channel_id}),
        )
        video_count = await self._store(
            "count_videos", self.store.count(Collection.VIDEOS, {"owner_id": channel_id})
        )

        is_subscribed = False
        if viewer_id is not None:
            require_id(viewer_id, "viewer_id")
            is_subscribed = (
                await self._store(
                    "check_viewer_subscription",
                    self.store.count(
                        Collection.SUBSCRIPTIONS,
                        {"subscriber_id": viewer_id, "channel_id": channel_id},
                    ),
                )
                > 0
            )

        return ChannelProfile(
            id=user["id"],
            username=user["username"],
            full_name=user.get("full_name", ""),
            email=user.get("email", ""),
            avatar_url=user.get("avatar_url") or "",
            cover_image_url=user.get("cover_image_url") or "",
            subscriber_count=subscriber_count,
            subscribed_to_count=subscribed_to_count,
            video_count=video_count,
            is_subscribed_by_viewer=is_subscribed,
        )

    async def channel_stats(self, channel_id: str) -> ChannelStats:
        """Totals over a channel's videos and subscribers."""
        await self._require_user(channel_id, "channel")
        videos = await self._store(
            "load_videos", self.store.find_many(Collection.VIDEOS, {"owner_id": channel_id})
        )
        subscriber_count = await self._store(
            "count_subscribers",
            self.store.count(Collection.SUBSCRIPTIONS, {"channel_id": channel_id}),
        )
        total_likes = 0
        if videos:
            total_likes = await self._store(
                "count_video_likes",
                self.store.count(
                    Collection.LIKES,
                    {
                        "target_kind": str(TargetKind.VIDEO),
                        "target_id": In(v["id"] for v in videos),
                    },
                ),
            )

        return ChannelStats(
            channel_id=channel_id,
            total_views=sum(int(v.get("views") or 0) for v in videos),
            subscriber_count=subscriber_count,
            video_count=len(videos),
            total_video_likes=total_likes,
        )

    async def _subscription_peers(self, field: str, user_id: str, peer_field: str) -> list[OwnerSummary]:
        subscriptions = await self._store(
            "load_subscriptions",
            self.store.find_many(Collection.SUBSCRIPTIONS, {field: user_id}, sort=NEWEST_FIRST),
        )
        peer_ids = [s[peer_field] for s in subscriptions]
        users = await self._by_id("load_users", Collection.USERS, set(peer_ids))
        return [OwnerSummary.from_document(users[p]) for p in peer_ids if p in users]

    async def channel_subscribers(self, channel_id: str) -> list[OwnerSummary]:
        """Users subscribed to a channel, most recent first."""
        await self._require_user(channel_id, "channel")
        return await self._subscription_peers("channel_id", channel_id, "subscriber_id")

    async def subscribed_channels(self, subscriber_id: str) -> list[OwnerSummary]:
        """Channels a user is subscribed to, most recent first."""
        await self._require_user(subscriber_id, "subscriber")
        return await self._subscription_peers("subscriber_id", subscriber_id, "channel_id")

    # -------------------------------------------------------------------------
    # Per-user views
    # -------------------------------------------------------------------------

    async def watch_history(self, user_id: str) -> list[WatchedVideo]:
        """The user's watch history resolved to videos, oldest first.

        Ids whose video no longer exists are skipped.
        """
        user = await self._require_user(user_id)
        history = list(dict.fromkeys(user.get("watch_history") or []))
        videos = await self._by_id("load_videos", Collection.VIDEOS, set(history))
        users = await self._by_id(
            "load_owners", Collection.USERS, {v["owner_id"] for v in videos.values()}
        )
        return [
            WatchedVideo(
                video=Video.from_document(videos[vid]),
                owner=_owner(users, videos[vid]["owner_id"]),
            )
            for vid in history
            if vid in videos
        ]

    async def user_dashboard(self, user_id: str) -> UserDashboard:
        """Everything the user owns, plus who liked each piece of content."""
        user = await self._require_user(user_id)

        owned: dict[Collection, list[dict[str, Any]]] = {}
        for collection in (
            Collection.TWEETS,
            Collection.COMMENTS,
            Collection.VIDEOS,
            Collection.PLAYLISTS,
        ):
            owned[collection] = await self._store(
                f"load_{collection}",
                self.store.find_many(collection, {"owner_id": user_id}, sort=NEWEST_FIRST),
            )

        subscriber_count = await self._store(
            "count_subscribers",
            self.store.count(Collection.SUBSCRIPTIONS, {"channel_id": user_id}),
        )
        subscriptions = await self._store(
            "load_subscriptions",
            self.store.find_many(
                Collection.SUBSCRIPTIONS, {"subscriber_id": user_id}, sort=NEWEST_FIRST
            ),
        )

        # Ids are unique across collections, so one query covers all three kinds
        content: dict[tuple[TargetKind, str], dict[str, Any]] = {}
        for kind in (TargetKind.TWEET, TargetKind.COMMENT, TargetKind.VIDEO):
            for doc in owned[kind.collection]:
                content[(kind, doc["id"])] = doc
        likes: list[dict[str, Any]] = []
        if content:
            likes = await self._store(
                "load_likes_on_content",
                self.store.find_many(
                    Collection.LIKES,
                    {"target_id": In(cid for _, cid in content)},
                    sort=OLDEST_FIRST,
                ),
            )

        user_ids = {s["channel_id"] for s in subscriptions}
        user_ids |= {like["liked_by_id"] for like in likes}
        users = await self._by_id("load_users", Collection.USERS, user_ids)

        grouped: dict[tuple[TargetKind, str], list[OwnerSummary]] = defaultdict(list)
        for like in likes:
            key = (TargetKind(like["target_kind"]), like["target_id"])
            liker = users.get(like["liked_by_id"])
            if key in content and liker is not None:
                grouped[key].append(OwnerSummary.from_document(liker))

        likes_on_content = [
            ContentLikes(
                kind=kind,
                content_id=cid,
                label=content[(kind, cid)].get("title") or content[(kind, cid)].get("content", ""),
                liked_by=grouped[(kind, cid)],
            )
            for kind, cid in content
            if (kind, cid) in grouped
        ]

        return UserDashboard(
            user=User.from_document(user),
            tweets=CountedList.of([Tweet.from_document(d) for d in owned[Collection.TWEETS]]),
            comments=CountedList.of([Comment.from_document(d) for d in owned[Collection.COMMENTS]]),
            videos=CountedList.of([Video.from_document(d) for d in owned[Collection.VIDEOS]]),
            playlists=CountedList.of(
                [Playlist.from_document(d) for d in owned[Collection.PLAYLISTS]]
            ),
            subscriber_count=subscriber_count,
            subscribed_to=[
                OwnerSummary.from_document(users[s["channel_id"]])
                for s in subscriptions
                if s["channel_id"] in users
            ],
            likes_on_content=likes_on_content,
        )

    # -------------------------------------------------------------------------
    # Playlists
    # -------------------------------------------------------------------------

    async def _playlist_views(self, docs: list[dict[str, Any]]) -> list[PlaylistView]:
        video_ids = {vid for doc in docs for vid in doc.get("videos") or []}
        videos = await self._by_id("load_videos", Collection.VIDEOS, video_ids)
        users = await self._by_id("load_owners", Collection.USERS, {d["owner_id"] for d in docs})
        return [
            PlaylistView(
                playlist=Playlist.from_document(doc),
                owner=_owner(users, doc["owner_id"]),
                videos=[
                    Video.from_document(videos[vid])
                    for vid in doc.get("videos") or []
                    if vid in videos
                ],
            )
            for doc in docs
        ]

    async def playlist_detail(self, playlist_id: str) -> PlaylistView:
        """A playlist with its videos resolved; dangling ids are skipped."""
        require_id(playlist_id, "playlist_id")
        doc = await self._get(Collection.PLAYLISTS, playlist_id, "playlist")
        views = await self._playlist_views([doc])
        return views[0]

    async def user_playlists(self, owner_id: str) -> list[PlaylistView]:
        """A user's playlists, newest first, with videos resolved."""
        await self._require_user(owner_id, "owner")
        docs = await self._store(
            "load_playlists",
            self.store.find_many(Collection.PLAYLISTS, {"owner_id": owner_id}, sort=NEWEST_FIRST),
        )
        return await self._playlist_views(docs)
