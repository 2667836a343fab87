"""Domain models, enums and view types."""

from videohub.domain.enums import BlobKind, Collection, SortDirection, TargetKind, ToggleState
from videohub.domain.ids import is_valid_id, new_id, require_id
from videohub.domain.models import (
    Comment,
    Like,
    LikeTarget,
    Playlist,
    Subscription,
    Tweet,
    User,
    Video,
)
from videohub.domain.pagination import Page, PageRequest

__all__ = [
    # Enums
    "BlobKind",
    "Collection",
    "SortDirection",
    "TargetKind",
    "ToggleState",
    # Ids
    "is_valid_id",
    "new_id",
    "require_id",
    # Models
    "Comment",
    "Like",
    "LikeTarget",
    "Playlist",
    "Subscription",
    "Tweet",
    "User",
    "Video",
    # Pagination
    "Page",
    "PageRequest",
]
