"""Local filesystem blob store."""

import hashlib
from pathlib import Path
from urllib.parse import unquote, urlparse
from uuid import uuid4

from videohub.adapters.blob.base import BlobStore
from videohub.config import settings
from videohub.domain.enums import BlobKind
from videohub.errors import UpstreamFailure
from videohub.logging import get_logger

logger = get_logger(__name__)


class LocalBlobStore(BlobStore):
    """Stores blobs as files under a base directory.

    Layout:
    - <base_path>/videos: uploaded video media
    - <base_path>/images: avatars, cover images and thumbnails

    URLs are absolute ``file://`` URLs of the written files.
    """

    def __init__(
        self,
        base_path: Path | None = None,
        create_dirs: bool = True,
    ) -> None:
        """Initialize the local blob store.

        Args:
            base_path: Base directory for blobs. Defaults to settings.blob_base_path
            create_dirs: Whether to create directories if they don't exist
        """
        self.base_path = (base_path or Path(settings.blob_base_path)).absolute()

        if create_dirs:
            self._ensure_dirs()

    @property
    def name(self) -> str:
        return "local"

    def _ensure_dirs(self) -> None:
        """Create storage directories."""
        for kind in BlobKind:
            self._get_subdir(kind).mkdir(parents=True, exist_ok=True)

    def _get_subdir(self, kind: BlobKind) -> Path:
        """Get subdirectory for a blob kind."""
        subdir = {BlobKind.VIDEO: "videos", BlobKind.IMAGE: "images"}[BlobKind(kind)]
        return self.base_path / subdir

    def _compute_checksum(self, data: bytes) -> str:
        """Compute SHA256 checksum of data."""
        return hashlib.sha256(data).hexdigest()

    def _guess_extension(self, kind: BlobKind) -> str:
        return ".mp4" if BlobKind(kind) == BlobKind.VIDEO else ".jpg"

    def path_for(self, url: str) -> Path | None:
        """Map a blob URL back to its file, or None if it is not ours."""
        parsed = urlparse(url)
        if parsed.scheme != "file":
            return None
        path = Path(unquote(parsed.path))
        if not path.is_relative_to(self.base_path):
            return None
        return path

    async def store(self, data: bytes, kind: BlobKind) -> str:
        checksum = self._compute_checksum(data)
        filename = f"{checksum[:16]}_{uuid4().hex[:8]}{self._guess_extension(kind)}"
        file_path = self._get_subdir(kind) / filename

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)
        except OSError as e:
            logger.error("blob_store_failed", path=str(file_path), error=str(e))
            raise UpstreamFailure(f"Could not write blob: {e}") from e

        logger.info(
            "blob_stored",
            kind=str(kind),
            file_path=str(file_path),
            file_size=len(data),
        )
        return file_path.as_uri()

    async def delete(self, url: str | None, kind: BlobKind) -> bool:
        if not url:
            return False

        file_path = self.path_for(url)
        if file_path is None:
            logger.warning("blob_delete_foreign_url", url=url[:100])
            return False

        try:
            if not file_path.exists():
                return False
            file_path.unlink()
        except OSError as e:
            logger.error("blob_delete_failed", path=str(file_path), error=str(e))
            raise UpstreamFailure(f"Could not delete blob: {e}") from e

        logger.info("blob_deleted", kind=str(kind), file_path=str(file_path))
        return True

    async def health_check(self) -> bool:
        return self.base_path.is_dir()
