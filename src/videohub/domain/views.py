"""Denormalized read views assembled from several collections."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from videohub.domain.enums import TargetKind
from videohub.domain.models import Comment, Playlist, Tweet, User, Video

T = TypeVar("T")


@dataclass
class OwnerSummary:
    """Public projection of a user embedded in other views."""

    id: str
    full_name: str
    username: str
    avatar_url: str = ""

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "OwnerSummary":
        return cls(
            id=doc["id"],
            full_name=doc.get("full_name", ""),
            username=doc.get("username", ""),
            avatar_url=doc.get("avatar_url") or "",
        )


@dataclass
class CommentView:
    """A comment in a video's comment feed."""

    id: str
    video_id: str
    content: str
    created_at: datetime | None
    owner: OwnerSummary | None
    like_count: int = 0
    liked_by: list[str] = field(default_factory=list)


@dataclass
class TweetView:
    """A tweet with its owner and likers."""

    tweet: Tweet
    owner: OwnerSummary | None
    like_count: int = 0
    liked_by: list[str] = field(default_factory=list)


@dataclass
class VideoCard:
    """A video in a listing, with its owner and likers."""

    video: Video
    owner: OwnerSummary | None
    like_count: int = 0
    liked_by: list[str] = field(default_factory=list)


@dataclass
class VideoDetail:
    """A single video with engagement counts."""

    video: Video
    owner: OwnerSummary | None
    like_count: int
    comment_count: int


@dataclass
class ChannelProfile:
    """A user's public channel page."""

    id: str
    username: str
    full_name: str
    email: str
    avatar_url: str
    cover_image_url: str
    subscriber_count: int
    subscribed_to_count: int
    video_count: int
    is_subscribed_by_viewer: bool


@dataclass
class ChannelStats:
    """Totals for a channel's own dashboard."""

    channel_id: str
    total_views: int
    subscriber_count: int
    video_count: int
    total_video_likes: int


@dataclass
class WatchedVideo:
    """An entry of a user's watch history."""

    video: Video
    owner: OwnerSummary | None


@dataclass
class CountedList(Generic[T]):
    """A full list together with its size."""

    count: int
    items: list[T]

    @classmethod
    def of(cls, items: list[T]) -> "CountedList[T]":
        return cls(count=len(items), items=items)


@dataclass
class ContentLikes:
    """All likes received by one piece of the user's content."""

    kind: TargetKind
    content_id: str
    label: str
    liked_by: list[OwnerSummary] = field(default_factory=list)


@dataclass
class UserDashboard:
    """Everything the current user owns, plus who liked it."""

    user: User
    tweets: CountedList[Tweet]
    comments: CountedList[Comment]
    videos: CountedList[Video]
    playlists: CountedList[Playlist]
    subscriber_count: int
    subscribed_to: list[OwnerSummary]
    likes_on_content: list[ContentLikes]


@dataclass
class LikedItem:
    """A piece of content the actor has liked."""

    like_id: str
    kind: TargetKind
    content: Video | Comment | Tweet
    owner: OwnerSummary | None


@dataclass
class PlaylistView:
    """A playlist with its video references resolved."""

    playlist: Playlist
    owner: OwnerSummary | None
    videos: list[Video] = field(default_factory=list)
