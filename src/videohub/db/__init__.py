"""Database layer."""

from videohub.db.models import (
    MODELS,
    Base,
    CommentModel,
    LikeModel,
    PlaylistModel,
    SubscriptionModel,
    TweetModel,
    UserModel,
    VideoModel,
)
from videohub.db.session import build_engine, get_engine, get_session_context, init_db

__all__ = [
    "Base",
    "MODELS",
    "build_engine",
    "get_engine",
    "get_session_context",
    "init_db",
    # Models
    "CommentModel",
    "LikeModel",
    "PlaylistModel",
    "SubscriptionModel",
    "TweetModel",
    "UserModel",
    "VideoModel",
]
