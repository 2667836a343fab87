"""Cascade deletion across collections the store cannot cascade itself.

Every cascade removes dependents before the dependency they point to: likes
before the content they target, comments before their video, set
memberships before the video they mention. If a cascade is interrupted the
only possible leftover is a dependent whose dependency is already gone, and
running the same cascade again removes it. Deleting an absent id is a no-op,
so every cascade is safe to retry.

Child sets are captured by id first and then deleted by id. A child created
after the capture is therefore never deleted without its own dependents; it
is left for the next run instead.
"""

from collections import Counter
from dataclasses import dataclass, field

from videohub.adapters.blob.base import BlobStore
from videohub.adapters.store.base import EntityStore, In
from videohub.domain.enums import BlobKind, Collection, TargetKind
from videohub.domain.ids import require_id
from videohub.errors import Unauthorized, UpstreamFailure
from videohub.logging import get_logger
from videohub.services.base import StoreBackedService

logger = get_logger(__name__)


@dataclass
class CascadeReport:
    """What a cascade removed, step by step."""

    root: Collection
    root_id: str
    deleted: bool = False
    removed: Counter[str] = field(default_factory=Counter)

    def record(self, step: str, count: int | bool) -> None:
        self.removed[step] += int(count)

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())


class IntegrityCoordinator(StoreBackedService):
    """Owns the cascade-deletion algorithms for every root entity.

    Ownership is expected to be verified upstream. When ``actor_id`` is
    passed, the coordinator checks it again against the root document and
    raises ``Unauthorized`` on mismatch before deleting anything.
    """

    def __init__(
        self,
        store: EntityStore,
        blobs: BlobStore,
        store_timeout: float | None = None,
        blob_timeout: float | None = None,
    ) -> None:
        super().__init__(store, blobs, store_timeout, blob_timeout)

    async def _step(self, report: CascadeReport, step: str, awaitable) -> int:
        removed = await self._store(step, awaitable)
        report.record(step, removed)
        logger.debug("cascade_step_completed", step=step, removed=int(removed))
        return int(removed)

    async def _delete_blob(
        self,
        report: CascadeReport,
        step: str,
        url: str | None,
        kind: BlobKind,
    ) -> None:
        if not url:
            return
        removed = await self._blob(step, self.blobs.delete(url, kind))
        report.record(step, removed)
        logger.debug("cascade_step_completed", step=step, removed=int(removed))

    async def _run(self, report: CascadeReport, cascade) -> CascadeReport:
        try:
            await cascade
        except UpstreamFailure as e:
            logger.error(
                "cascade_aborted",
                root=str(report.root),
                root_id=report.root_id,
                step=e.step,
                removed=dict(report.removed),
                error=e.message,
            )
            raise
        logger.info(
            "cascade_completed",
            root=str(report.root),
            root_id=report.root_id,
            deleted=report.deleted,
            removed=report.total_removed,
        )
        return report

    async def _delete_likes_on(
        self,
        report: CascadeReport,
        step: str,
        kind: TargetKind,
        target_ids: list[str],
    ) -> None:
        if not target_ids:
            return
        await self._step(
            report,
            step,
            self.store.delete_many(
                Collection.LIKES,
                {"target_kind": str(kind), "target_id": In(target_ids)},
            ),
        )

    # -------------------------------------------------------------------------
    # Leaf cascades
    # -------------------------------------------------------------------------

    async def delete_comment(self, comment_id: str, actor_id: str | None = None) -> CascadeReport:
        """Delete a comment and every like on it."""
        require_id(comment_id, "comment_id")
        report = CascadeReport(Collection.COMMENTS, comment_id)
        return await self._run(report, self._delete_comment(report, comment_id, actor_id))

    async def _delete_comment(self, report: CascadeReport, comment_id: str, actor_id: str | None) -> None:
        comment = await self._store("load_comment", self.store.find_by_id(Collection.COMMENTS, comment_id))
        if comment is not None:
            self._check_owner(comment, actor_id, "comment")

        await self._delete_likes_on(report, "likes_on_comment", TargetKind.COMMENT, [comment_id])
        deleted = await self._step(
            report, "comment", self.store.delete_by_id(Collection.COMMENTS, comment_id)
        )
        report.deleted = bool(deleted)

    async def delete_tweet(self, tweet_id: str, actor_id: str | None = None) -> CascadeReport:
        """Delete a tweet and every like on it."""
        require_id(tweet_id, "tweet_id")
        report = CascadeReport(Collection.TWEETS, tweet_id)
        return await self._run(report, self._delete_tweet(report, tweet_id, actor_id))

    async def _delete_tweet(self, report: CascadeReport, tweet_id: str, actor_id: str | None) -> None:
        tweet = await self._store("load_tweet", self.store.find_by_id(Collection.TWEETS, tweet_id))
        if tweet is not None:
            self._check_owner(tweet, actor_id, "tweet")

        await self._delete_likes_on(report, "likes_on_tweet", TargetKind.TWEET, [tweet_id])
        deleted = await self._step(
            report, "tweet", self.store.delete_by_id(Collection.TWEETS, tweet_id)
        )
        report.deleted = bool(deleted)

    async def delete_playlist(self, playlist_id: str, actor_id: str | None = None) -> CascadeReport:
        """Delete a playlist.

        Playlists only reference videos, so the videos are left untouched.
        """
        require_id(playlist_id, "playlist_id")
        report = CascadeReport(Collection.PLAYLISTS, playlist_id)
        return await self._run(report, self._delete_playlist(report, playlist_id, actor_id))

    async def _delete_playlist(self, report: CascadeReport, playlist_id: str, actor_id: str | None) -> None:
        if actor_id is not None:
            playlist = await self._store(
                "load_playlist", self.store.find_by_id(Collection.PLAYLISTS, playlist_id)
            )
            if playlist is not None:
                self._check_owner(playlist, actor_id, "playlist")

        deleted = await self._step(
            report, "playlist", self.store.delete_by_id(Collection.PLAYLISTS, playlist_id)
        )
        report.deleted = bool(deleted)

    # -------------------------------------------------------------------------
    # Video
    # -------------------------------------------------------------------------

    async def delete_video(self, video_id: str, actor_id: str | None = None) -> CascadeReport:
        """Delete a video with its likes, comments, memberships and media.

        Order:
        1. Likes on the video
        2. Likes on its comments, then the comments
        3. The id in every playlist and every watch history
        4. Media and thumbnail blobs
        5. The video document
        """
        require_id(video_id, "video_id")
        report = CascadeReport(Collection.VIDEOS, video_id)
        return await self._run(report, self._delete_video(report, video_id, actor_id))

    async def _delete_video(
        self,
        report: CascadeReport,
        video_id: str,
        actor_id: str | None,
        is_root: bool = True,
    ) -> None:
        video = await self._store("load_video", self.store.find_by_id(Collection.VIDEOS, video_id))
        if video is not None:
            self._check_owner(video, actor_id, "video")

        await self._delete_likes_on(report, "likes_on_video", TargetKind.VIDEO, [video_id])

        comment_ids = await self._ids(
            "capture_video_comments", Collection.COMMENTS, {"video_id": video_id}
        )
        if comment_ids:
            await self._delete_likes_on(report, "likes_on_comments", TargetKind.COMMENT, comment_ids)
            await self._step(
                report,
                "comments_on_video",
                self.store.delete_many(Collection.COMMENTS, {"id": In(comment_ids)}),
            )

        await self._step(
            report,
            "playlist_memberships",
            self.store.pull_all(Collection.PLAYLISTS, "videos", video_id),
        )
        await self._step(
            report,
            "watch_history_entries",
            self.store.pull_all(Collection.USERS, "watch_history", video_id),
        )

        if video is not None:
            await self._delete_blob(report, "video_media", video.get("video_url"), BlobKind.VIDEO)
            await self._delete_blob(report, "video_thumbnail", video.get("thumbnail_url"), BlobKind.IMAGE)

        deleted = await self._step(
            report, "video", self.store.delete_by_id(Collection.VIDEOS, video_id)
        )
        if is_root:
            report.deleted = bool(deleted)

    # -------------------------------------------------------------------------
    # User
    # -------------------------------------------------------------------------

    async def delete_user(self, user_id: str, actor_id: str | None = None) -> CascadeReport:
        """Delete a user and everything that exists because of them.

        Order:
        1. Likes on the user's tweets, then the tweets
        2. Each owned video, as a full video cascade
        3. Each owned playlist
        4. Likes on the user's comments, then the comments
        5. Likes the user gave
        6. Subscriptions from and to the user
        7. Avatar and cover image blobs
        8. The user document
        """
        require_id(user_id, "user_id")
        if actor_id is not None and actor_id != user_id:
            raise Unauthorized("Users can only delete their own account")

        report = CascadeReport(Collection.USERS, user_id)
        return await self._run(report, self._delete_user(report, user_id))

    async def _delete_user(self, report: CascadeReport, user_id: str) -> None:
        user = await self._store("load_user", self.store.find_by_id(Collection.USERS, user_id))

        tweet_ids = await self._ids("capture_tweets", Collection.TWEETS, {"owner_id": user_id})
        if tweet_ids:
            await self._delete_likes_on(report, "likes_on_tweets", TargetKind.TWEET, tweet_ids)
            await self._step(
                report,
                "tweets",
                self.store.delete_many(Collection.TWEETS, {"id": In(tweet_ids)}),
            )

        video_ids = await self._ids("capture_videos", Collection.VIDEOS, {"owner_id": user_id})
        for video_id in video_ids:
            await self._delete_video(report, video_id, actor_id=None, is_root=False)

        playlist_ids = await self._ids(
            "capture_playlists", Collection.PLAYLISTS, {"owner_id": user_id}
        )
        for playlist_id in playlist_ids:
            await self._step(
                report, "playlist", self.store.delete_by_id(Collection.PLAYLISTS, playlist_id)
            )

        comment_ids = await self._ids("capture_comments", Collection.COMMENTS, {"owner_id": user_id})
        if comment_ids:
            await self._delete_likes_on(report, "likes_on_comments", TargetKind.COMMENT, comment_ids)
            await self._step(
                report,
                "comments",
                self.store.delete_many(Collection.COMMENTS, {"id": In(comment_ids)}),
            )

        await self._step(
            report,
            "likes_given",
            self.store.delete_many(Collection.LIKES, {"liked_by_id": user_id}),
        )
        await self._step(
            report,
            "subscriptions_as_subscriber",
            self.store.delete_many(Collection.SUBSCRIPTIONS, {"subscriber_id": user_id}),
        )
        await self._step(
            report,
            "subscriptions_as_channel",
            self.store.delete_many(Collection.SUBSCRIPTIONS, {"channel_id": user_id}),
        )

        if user is not None:
            await self._delete_blob(report, "avatar", user.get("avatar_url"), BlobKind.IMAGE)
            await self._delete_blob(report, "cover_image", user.get("cover_image_url"), BlobKind.IMAGE)

        deleted = await self._step(report, "user", self.store.delete_by_id(Collection.USERS, user_id))
        report.deleted = bool(deleted)
