"""Domain models - pure Python classes independent of the entity store.

Each model converts to and from the plain dict documents the store adapters
exchange. ``to_document`` omits ``id`` and the timestamps, which the store
assigns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from videohub.domain.enums import TargetKind
from videohub.errors import InvalidOperation


@dataclass
class User:
    """A registered user; doubles as a channel."""

    id: str
    username: str
    email: str
    full_name: str
    avatar_url: str = ""
    cover_image_url: str = ""
    watch_history: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "User":
        return cls(
            id=doc["id"],
            username=doc["username"],
            email=doc["email"],
            full_name=doc.get("full_name", ""),
            avatar_url=doc.get("avatar_url") or "",
            cover_image_url=doc.get("cover_image_url") or "",
            watch_history=list(doc.get("watch_history") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "cover_image_url": self.cover_image_url,
            "watch_history": list(self.watch_history),
        }


@dataclass
class Video:
    """An uploaded video."""

    id: str
    owner_id: str
    title: str
    description: str
    video_url: str
    thumbnail_url: str
    duration_seconds: float = 0.0
    views: int = 0
    is_published: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Video":
        return cls(
            id=doc["id"],
            owner_id=doc["owner_id"],
            title=doc.get("title", ""),
            description=doc.get("description", ""),
            video_url=doc.get("video_url") or "",
            thumbnail_url=doc.get("thumbnail_url") or "",
            duration_seconds=float(doc.get("duration_seconds") or 0.0),
            views=int(doc.get("views") or 0),
            is_published=bool(doc.get("is_published", True)),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "video_url": self.video_url,
            "thumbnail_url": self.thumbnail_url,
            "duration_seconds": self.duration_seconds,
            "views": self.views,
            "is_published": self.is_published,
        }


@dataclass
class Comment:
    """A comment left on a video."""

    id: str
    owner_id: str
    video_id: str
    content: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Comment":
        return cls(
            id=doc["id"],
            owner_id=doc["owner_id"],
            video_id=doc["video_id"],
            content=doc.get("content", ""),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "video_id": self.video_id,
            "content": self.content,
        }


@dataclass
class Tweet:
    """A short text post on a user's channel."""

    id: str
    owner_id: str
    content: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Tweet":
        return cls(
            id=doc["id"],
            owner_id=doc["owner_id"],
            content=doc.get("content", ""),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {"owner_id": self.owner_id, "content": self.content}


def target_kind(value: TargetKind | str) -> TargetKind:
    """Coerce ``value`` to a ``TargetKind``.

    Raises:
        InvalidOperation: If it names no likeable kind of content.
    """
    try:
        return TargetKind(value)
    except ValueError as e:
        kinds = ", ".join(TargetKind)
        raise InvalidOperation(f"Unknown target kind {value!r}; expected one of {kinds}") from e


@dataclass(frozen=True)
class LikeTarget:
    """The single piece of content a like points at."""

    kind: TargetKind
    id: str

    def __post_init__(self) -> None:
        # Accept plain strings such as "video" from callers
        object.__setattr__(self, "kind", target_kind(self.kind))

    def to_filter(self) -> dict[str, Any]:
        """Store filter matching likes on this target."""
        return {"target_kind": str(self.kind), "target_id": self.id}


@dataclass
class Like:
    """A user's like on exactly one video, comment or tweet."""

    id: str
    liked_by_id: str
    target: LikeTarget
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Like":
        return cls(
            id=doc["id"],
            liked_by_id=doc["liked_by_id"],
            target=LikeTarget(kind=TargetKind(doc["target_kind"]), id=doc["target_id"]),
            created_at=doc.get("created_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {"liked_by_id": self.liked_by_id, **self.target.to_filter()}


@dataclass
class Playlist:
    """A named, ordered set of video references owned by a user."""

    id: str
    owner_id: str
    name: str
    description: str = ""
    videos: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Playlist":
        return cls(
            id=doc["id"],
            owner_id=doc["owner_id"],
            name=doc.get("name", ""),
            description=doc.get("description") or "",
            videos=list(doc.get("videos") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "videos": list(self.videos),
        }


@dataclass
class Subscription:
    """A subscriber following a channel."""

    id: str
    subscriber_id: str
    channel_id: str
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.subscriber_id == self.channel_id:
            raise InvalidOperation("A user cannot subscribe to their own channel")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Subscription":
        return cls(
            id=doc["id"],
            subscriber_id=doc["subscriber_id"],
            channel_id=doc["channel_id"],
            created_at=doc.get("created_at"),
        )

    def to_document(self) -> dict[str, Any]:
        return {"subscriber_id": self.subscriber_id, "channel_id": self.channel_id}
