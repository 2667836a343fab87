"""Domain enumerations."""

from enum import StrEnum


class Collection(StrEnum):
    """Entity store collections."""

    USERS = "users"
    VIDEOS = "videos"
    COMMENTS = "comments"
    TWEETS = "tweets"
    LIKES = "likes"
    PLAYLISTS = "playlists"
    SUBSCRIPTIONS = "subscriptions"


class TargetKind(StrEnum):
    """Kinds of content a like can point at."""

    VIDEO = "video"
    COMMENT = "comment"
    TWEET = "tweet"

    @property
    def collection(self) -> Collection:
        """Collection holding content of this kind."""
        return {
            TargetKind.VIDEO: Collection.VIDEOS,
            TargetKind.COMMENT: Collection.COMMENTS,
            TargetKind.TWEET: Collection.TWEETS,
        }[self]


class BlobKind(StrEnum):
    """Kinds of binary media held by the blob store."""

    VIDEO = "video"
    IMAGE = "image"


class ToggleState(StrEnum):
    """End state reached by a toggle."""

    ADDED = "added"
    REMOVED = "removed"


class SortDirection(StrEnum):
    """Sort direction for store queries."""

    ASC = "asc"
    DESC = "desc"
