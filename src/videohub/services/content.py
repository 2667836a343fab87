"""Owning mutation handlers: create and update entities.

Creation is always one atomic insert. Media is stored before the document
that points at it; if the insert then fails, the freshly stored blobs are
deleted again so no orphaned media is left behind. Deletion lives in the
integrity coordinator.
"""

from typing import Any

from videohub.adapters.blob.base import BlobStore
from videohub.adapters.store.base import EntityStore, Increment
from videohub.domain.enums import BlobKind, Collection
from videohub.domain.ids import require_id
from videohub.domain.models import Comment, Playlist, Tweet, User, Video
from videohub.errors import Conflict, InvalidOperation, NotFound, UpstreamFailure, VideoHubError
from videohub.logging import get_logger
from videohub.services.base import StoreBackedService

logger = get_logger(__name__)


def _required_text(value: str | None, label: str) -> str:
    if value is None or not value.strip():
        raise InvalidOperation(f"{label} is required")
    return value.strip()


class ContentService(StoreBackedService):
    """Creates and updates users, videos, tweets, comments and playlists."""

    def __init__(
        self,
        store: EntityStore,
        blobs: BlobStore,
        store_timeout: float | None = None,
        blob_timeout: float | None = None,
    ) -> None:
        super().__init__(store, blobs, store_timeout, blob_timeout)

    async def _discard_blobs(self, urls: list[tuple[str, BlobKind]]) -> None:
        """Best-effort removal of blobs whose document was never written."""
        for url, kind in urls:
            try:
                await self._blob("discard_blob", self.blobs.delete(url, kind))
            except UpstreamFailure as e:
                logger.warning("orphan_blob_left", url=url, error=e.message)

    async def _insert(
        self,
        collection: Collection,
        document: dict[str, Any],
        blobs: list[tuple[str, BlobKind]] | None = None,
    ) -> dict[str, Any]:
        """Insert a document; on failure, discard the blobs stored for it."""
        try:
            doc_id = await self._store(f"insert_{collection}", self.store.insert(collection, document))
        except VideoHubError:
            await self._discard_blobs(blobs or [])
            raise
        doc = await self._store(f"reload_{collection}", self.store.find_by_id(collection, doc_id))
        return doc or {**document, "id": doc_id}

    async def _patch(
        self,
        collection: Collection,
        doc_id: str,
        patch: dict[str, Any],
        label: str,
    ) -> dict[str, Any]:
        doc = await self._store(f"update_{label}", self.store.update_by_id(collection, doc_id, patch))
        if doc is None:
            raise NotFound(f"{label.capitalize()} {doc_id} not found")
        return doc

    async def _replace_blob(self, old_url: str | None, kind: BlobKind, step: str) -> None:
        """Delete a blob that a document no longer points at."""
        if not old_url:
            return
        try:
            await self._blob(step, self.blobs.delete(old_url, kind))
        except UpstreamFailure as e:
            logger.warning("old_blob_delete_failed", url=old_url, error=e.message)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def register_user(
        self,
        username: str,
        email: str,
        full_name: str,
        avatar: bytes,
        cover_image: bytes | None = None,
    ) -> User:
        """Register a user with an avatar and an optional cover image.

        Raises:
            InvalidOperation: If a field or the avatar is missing
            Conflict: If the username or email is taken
        """
        username = _required_text(username, "username").lower()
        email = _required_text(email, "email")
        full_name = _required_text(full_name, "full_name")
        if not avatar:
            raise InvalidOperation("avatar is required")

        for field_name, value in (("username", username), ("email", email)):
            taken = await self._store(
                "check_unique_user", self.store.find_one(Collection.USERS, {field_name: value})
            )
            if taken is not None:
                raise Conflict("User with email or username already exists")

        avatar_url = await self._blob("store_avatar", self.blobs.store(avatar, BlobKind.IMAGE))
        stored = [(avatar_url, BlobKind.IMAGE)]
        cover_url = ""
        if cover_image:
            try:
                cover_url = await self._blob(
                    "store_cover_image", self.blobs.store(cover_image, BlobKind.IMAGE)
                )
            except VideoHubError:
                await self._discard_blobs(stored)
                raise
            stored.append((cover_url, BlobKind.IMAGE))

        user = User(
            id="",
            username=username,
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            cover_image_url=cover_url,
        )
        doc = await self._insert(Collection.USERS, user.to_document(), stored)
        logger.info("user_registered", user_id=doc["id"], username=username)
        return User.from_document(doc)

    async def update_account(
        self,
        user_id: str,
        full_name: str | None = None,
        email: str | None = None,
    ) -> User:
        """Change a user's display name and/or email."""
        require_id(user_id, "user_id")
        patch: dict[str, Any] = {}
        if full_name is not None:
            patch["full_name"] = _required_text(full_name, "full_name")
        if email is not None:
            patch["email"] = _required_text(email, "email")
        if not patch:
            raise InvalidOperation("Nothing to update")

        doc = await self._patch(Collection.USERS, user_id, patch, "user")
        return User.from_document(doc)

    async def _replace_user_image(self, user_id: str, data: bytes, field: str) -> User:
        require_id(user_id, "user_id")
        if not data:
            raise InvalidOperation(f"{field} file is required")
        user = await self._get(Collection.USERS, user_id, "user")

        new_url = await self._blob(f"store_{field}", self.blobs.store(data, BlobKind.IMAGE))
        try:
            doc = await self._patch(Collection.USERS, user_id, {field: new_url}, "user")
        except VideoHubError:
            await self._discard_blobs([(new_url, BlobKind.IMAGE)])
            raise

        await self._replace_blob(user.get(field), BlobKind.IMAGE, f"delete_old_{field}")
        return User.from_document(doc)

    async def replace_avatar(self, user_id: str, data: bytes) -> User:
        """Point the user at a new avatar, then drop the old one."""
        return await self._replace_user_image(user_id, data, "avatar_url")

    async def replace_cover_image(self, user_id: str, data: bytes) -> User:
        """Point the user at a new cover image, then drop the old one."""
        return await self._replace_user_image(user_id, data, "cover_image_url")

    # -------------------------------------------------------------------------
    # Videos
    # -------------------------------------------------------------------------

    async def publish_video(
        self,
        owner_id: str,
        title: str,
        description: str,
        video_data: bytes,
        thumbnail_data: bytes,
        duration_seconds: float = 0.0,
    ) -> Video:
        """Upload a video and its thumbnail and publish it.

        Raises:
            InvalidOperation: If the title, description or media is missing
            NotFound: If the owner does not exist
        """
        require_id(owner_id, "owner_id")
        title = _required_text(title, "title")
        description = _required_text(description, "description")
        if not video_data or not thumbnail_data:
            raise InvalidOperation("Video file and thumbnail are required")
        await self._get(Collection.USERS, owner_id, "owner")

        video_url = await self._blob("store_video", self.blobs.store(video_data, BlobKind.VIDEO))
        stored = [(video_url, BlobKind.VIDEO)]
        try:
            thumbnail_url = await self._blob(
                "store_thumbnail", self.blobs.store(thumbnail_data, BlobKind.IMAGE)
            )
        except VideoHubError:
            await self._discard_blobs(stored)
            raise
        stored.append((thumbnail_url, BlobKind.IMAGE))

        video = Video(
            id="",
            owner_id=owner_id,
            title=title,
            description=description,
            video_url=video_url,
            thumbnail_url=thumbnail_url,
            duration_seconds=duration_seconds,
        )
        doc = await self._insert(Collection.VIDEOS, video.to_document(), stored)
        logger.info("video_published", video_id=doc["id"], owner_id=owner_id)
        return Video.from_document(doc)

    async def update_video(
        self,
        actor_id: str,
        video_id: str,
        title: str | None = None,
        description: str | None = None,
        thumbnail_data: bytes | None = None,
    ) -> Video:
        """Edit a video's details; a new thumbnail replaces the old one."""
        require_id(actor_id, "actor_id")
        require_id(video_id, "video_id")
        video = await self._get(Collection.VIDEOS, video_id, "video")
        self._check_owner(video, actor_id, "video")

        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = _required_text(title, "title")
        if description is not None:
            patch["description"] = _required_text(description, "description")
        if thumbnail_data:
            patch["thumbnail_url"] = await self._blob(
                "store_thumbnail", self.blobs.store(thumbnail_data, BlobKind.IMAGE)
            )
        if not patch:
            raise InvalidOperation("Nothing to update")

        try:
            doc = await self._patch(Collection.VIDEOS, video_id, patch, "video")
        except VideoHubError:
            if "thumbnail_url" in patch:
                await self._discard_blobs([(patch["thumbnail_url"], BlobKind.IMAGE)])
            raise

        if "thumbnail_url" in patch:
            await self._replace_blob(video.get("thumbnail_url"), BlobKind.IMAGE, "delete_old_thumbnail")
        return Video.from_document(doc)

    async def toggle_publish_status(self, actor_id: str, video_id: str) -> Video:
        """Publish an unpublished video or unpublish a published one."""
        require_id(actor_id, "actor_id")
        require_id(video_id, "video_id")
        video = await self._get(Collection.VIDEOS, video_id, "video")
        self._check_owner(video, actor_id, "video")

        doc = await self._patch(
            Collection.VIDEOS,
            video_id,
            {"is_published": not video.get("is_published", True)},
            "video",
        )
        return Video.from_document(doc)

    async def record_view(self, user_id: str, video_id: str) -> Video:
        """Count a view and move the video to the end of the watch history."""
        require_id(user_id, "user_id")
        require_id(video_id, "video_id")
        await self._get(Collection.USERS, user_id, "user")
        doc = await self._patch(Collection.VIDEOS, video_id, {"views": Increment(1)}, "video")
        await self._store(
            "add_to_watch_history",
            self.store.add_to_set(
                Collection.USERS, user_id, "watch_history", video_id, move_to_end=True
            ),
        )
        return Video.from_document(doc)

    # -------------------------------------------------------------------------
    # Tweets and comments
    # -------------------------------------------------------------------------

    async def create_tweet(self, owner_id: str, content: str) -> Tweet:
        require_id(owner_id, "owner_id")
        content = _required_text(content, "content")
        await self._get(Collection.USERS, owner_id, "owner")

        tweet = Tweet(id="", owner_id=owner_id, content=content)
        doc = await self._insert(Collection.TWEETS, tweet.to_document())
        return Tweet.from_document(doc)

    async def update_tweet(self, actor_id: str, tweet_id: str, content: str) -> Tweet:
        require_id(actor_id, "actor_id")
        require_id(tweet_id, "tweet_id")
        content = _required_text(content, "content")
        tweet = await self._get(Collection.TWEETS, tweet_id, "tweet")
        self._check_owner(tweet, actor_id, "tweet")

        doc = await self._patch(Collection.TWEETS, tweet_id, {"content": content}, "tweet")
        return Tweet.from_document(doc)

    async def add_comment(self, actor_id: str, video_id: str, content: str) -> Comment:
        """Comment on a video that exists right now."""
        require_id(actor_id, "actor_id")
        require_id(video_id, "video_id")
        content = _required_text(content, "content")
        await self._get(Collection.USERS, actor_id, "user")
        await self._get(Collection.VIDEOS, video_id, "video")

        comment = Comment(id="", owner_id=actor_id, video_id=video_id, content=content)
        doc = await self._insert(Collection.COMMENTS, comment.to_document())
        return Comment.from_document(doc)

    async def update_comment(self, actor_id: str, comment_id: str, content: str) -> Comment:
        require_id(actor_id, "actor_id")
        require_id(comment_id, "comment_id")
        content = _required_text(content, "content")
        comment = await self._get(Collection.COMMENTS, comment_id, "comment")
        self._check_owner(comment, actor_id, "comment")

        doc = await self._patch(Collection.COMMENTS, comment_id, {"content": content}, "comment")
        return Comment.from_document(doc)

    # -------------------------------------------------------------------------
    # Playlists
    # -------------------------------------------------------------------------

    async def create_playlist(self, owner_id: str, name: str, description: str = "") -> Playlist:
        require_id(owner_id, "owner_id")
        name = _required_text(name, "name")
        await self._get(Collection.USERS, owner_id, "owner")

        playlist = Playlist(id="", owner_id=owner_id, name=name, description=description or "")
        doc = await self._insert(Collection.PLAYLISTS, playlist.to_document())
        return Playlist.from_document(doc)

    async def update_playlist(
        self,
        actor_id: str,
        playlist_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Playlist:
        require_id(actor_id, "actor_id")
        require_id(playlist_id, "playlist_id")
        playlist = await self._get(Collection.PLAYLISTS, playlist_id, "playlist")
        self._check_owner(playlist, actor_id, "playlist")

        patch: dict[str, Any] = {}
        if name is not None:
            patch["name"] = _required_text(name, "name")
        if description is not None:
            patch["description"] = description
        if not patch:
            raise InvalidOperation("Nothing to update")

        doc = await self._patch(Collection.PLAYLISTS, playlist_id, patch, "playlist")
        return Playlist.from_document(doc)

    async def add_video_to_playlist(self, actor_id: str, playlist_id: str, video_id: str) -> Playlist:
        """Add an existing video to a playlist; adding it twice is a no-op."""
        require_id(actor_id, "actor_id")
        require_id(playlist_id, "playlist_id")
        require_id(video_id, "video_id")
        playlist = await self._get(Collection.PLAYLISTS, playlist_id, "playlist")
        self._check_owner(playlist, actor_id, "playlist")
        await self._get(Collection.VIDEOS, video_id, "video")

        doc = await self._store(
            "add_playlist_video",
            self.store.add_to_set(Collection.PLAYLISTS, playlist_id, "videos", video_id),
        )
        if doc is None:
            raise NotFound(f"Playlist {playlist_id} not found")
        return Playlist.from_document(doc)

    async def remove_video_from_playlist(
        self,
        actor_id: str,
        playlist_id: str,
        video_id: str,
    ) -> Playlist:
        """Remove a video from a playlist; removing an absent video is a no-op."""
        require_id(actor_id, "actor_id")
        require_id(playlist_id, "playlist_id")
        require_id(video_id, "video_id")
        playlist = await self._get(Collection.PLAYLISTS, playlist_id, "playlist")
        self._check_owner(playlist, actor_id, "playlist")

        doc = await self._store(
            "pull_playlist_video",
            self.store.pull(Collection.PLAYLISTS, playlist_id, "videos", video_id),
        )
        if doc is None:
            raise NotFound(f"Playlist {playlist_id} not found")
        return Playlist.from_document(doc)
