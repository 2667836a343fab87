"""Pytest configuration and fixtures."""

import os
from typing import Any

import pytest

# Set test environment before importing app modules
os.environ["STORE_BACKEND"] = "memory"
os.environ["BLOB_BACKEND"] = "stub"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["STORE_TIMEOUT_SECONDS"] = "5"
os.environ["BLOB_TIMEOUT_SECONDS"] = "5"


class Seeder:
    """Writes fixture documents straight into an entity store."""

    def __init__(self, store) -> None:
        self.store = store
        self._n = 0

    def _next(self) -> int:
        self._n += 1
        return self._n

    async def user(self, name: str | None = None, **fields: Any) -> str:
        from videohub.domain.enums import Collection

        n = self._next()
        name = name or f"user{n}"
        doc = {
            "username": name.lower(),
            "email": f"{name.lower()}@example.com",
            "full_name": name.capitalize(),
            "avatar_url": "",
            "cover_image_url": "",
            "watch_history": [],
        }
        doc.update(fields)
        return await self.store.insert(Collection.USERS, doc)

    async def video(self, owner_id: str, title: str | None = None, **fields: Any) -> str:
        from videohub.domain.enums import Collection

        n = self._next()
        doc = {
            "owner_id": owner_id,
            "title": title or f"Video {n}",
            "description": f"Description {n}",
            "video_url": "",
            "thumbnail_url": "",
            "duration_seconds": 10.0,
            "views": 0,
            "is_published": True,
        }
        doc.update(fields)
        return await self.store.insert(Collection.VIDEOS, doc)

    async def comment(self, owner_id: str, video_id: str, content: str = "Nice video") -> str:
        from videohub.domain.enums import Collection

        return await self.store.insert(
            Collection.COMMENTS,
            {"owner_id": owner_id, "video_id": video_id, "content": content},
        )

    async def tweet(self, owner_id: str, content: str = "Hello") -> str:
        from videohub.domain.enums import Collection

        return await self.store.insert(
            Collection.TWEETS, {"owner_id": owner_id, "content": content}
        )

    async def like(self, actor_id: str, kind: str, target_id: str) -> str:
        from videohub.domain.enums import Collection

        return await self.store.insert(
            Collection.LIKES,
            {"liked_by_id": actor_id, "target_kind": kind, "target_id": target_id},
        )

    async def playlist(self, owner_id: str, videos: list[str] | None = None, name: str = "Mix") -> str:
        from videohub.domain.enums import Collection

        return await self.store.insert(
            Collection.PLAYLISTS,
            {"owner_id": owner_id, "name": name, "description": "", "videos": list(videos or [])},
        )

    async def subscription(self, subscriber_id: str, channel_id: str) -> str:
        from videohub.domain.enums import Collection

        return await self.store.insert(
            Collection.SUBSCRIPTIONS,
            {"subscriber_id": subscriber_id, "channel_id": channel_id},
        )


@pytest.fixture
def store():
    """Get an empty in-memory entity store."""
    from videohub.adapters.store.memory import InMemoryEntityStore

    return InMemoryEntityStore()


@pytest.fixture
def sql_store(tmp_path):
    """Get an entity store backed by a fresh SQLite file."""
    from videohub.adapters.store.sql import SqlEntityStore
    from videohub.db.session import build_engine, init_db

    engine = build_engine(f"sqlite:///{tmp_path / 'videohub.db'}")
    init_db(engine)
    yield SqlEntityStore(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request, tmp_path):
    """Get each entity store implementation in turn."""
    if request.param == "memory":
        from videohub.adapters.store.memory import InMemoryEntityStore

        yield InMemoryEntityStore()
        return

    from videohub.adapters.store.sql import SqlEntityStore
    from videohub.db.session import build_engine, init_db

    engine = build_engine(f"sqlite:///{tmp_path / 'videohub.db'}")
    init_db(engine)
    yield SqlEntityStore(engine)
    engine.dispose()


@pytest.fixture
def blobs():
    """Get a stub blob store."""
    from videohub.adapters.blob.stub import StubBlobStore

    return StubBlobStore()


@pytest.fixture
def seed(store) -> Seeder:
    """Get a seeder writing into the in-memory store."""
    return Seeder(store)


@pytest.fixture
def coordinator(store, blobs):
    """Get an integrity coordinator over the in-memory store."""
    from videohub.services.integrity import IntegrityCoordinator

    return IntegrityCoordinator(store, blobs)


@pytest.fixture
def toggles(store):
    """Get a toggle engine over the in-memory store."""
    from videohub.services.toggles import ToggleEngine

    return ToggleEngine(store)


@pytest.fixture
def assembler(store):
    """Get an aggregation assembler over the in-memory store."""
    from videohub.services.aggregation import AggregationAssembler

    return AggregationAssembler(store)


@pytest.fixture
def content(store, blobs):
    """Get a content service over the in-memory store."""
    from videohub.services.content import ContentService

    return ContentService(store, blobs)


@pytest.fixture
def any_seed(any_store) -> Seeder:
    """Get a seeder writing into whichever store ``any_store`` provides."""
    return Seeder(any_store)


@pytest.fixture
def sql_seed(sql_store) -> Seeder:
    """Get a seeder writing into the SQL store."""
    return Seeder(sql_store)
