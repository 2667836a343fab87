"""Stub blob store for testing."""

import asyncio
import hashlib

from videohub.adapters.blob.base import BlobStore
from videohub.domain.enums import BlobKind
from videohub.logging import get_logger

logger = get_logger(__name__)


class StubBlobStore(BlobStore):
    """Keeps blobs in memory and records every delete."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[tuple[str, BlobKind]] = []
        self._counter = 0

    @property
    def name(self) -> str:
        return "stub"

    async def store(self, data: bytes, kind: BlobKind) -> str:
        await asyncio.sleep(0)
        self._counter += 1
        digest = hashlib.sha256(data).hexdigest()[:12]
        url = f"stub://{BlobKind(kind)}/{digest}-{self._counter}"
        self.blobs[url] = data
        logger.debug("stub_blob_stored", url=url, size=len(data))
        return url

    async def delete(self, url: str | None, kind: BlobKind) -> bool:
        if not url:
            return False
        await asyncio.sleep(0)
        self.deleted.append((url, BlobKind(kind)))
        return self.blobs.pop(url, None) is not None
