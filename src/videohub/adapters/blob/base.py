"""Base interface for blob store adapters."""

from abc import ABC, abstractmethod

from videohub.domain.enums import BlobKind


class BlobStore(ABC):
    """Abstract base class for binary media storage.

    Blobs are addressed by the opaque URL ``store`` returns. The blob store is
    a failure domain of its own: callers must not assume a blob exists just
    because a document points at it.

    Implementations:
    - StubBlobStore: Keeps blobs in memory for testing
    - LocalBlobStore: Writes blobs under a local directory
    - CloudinaryBlobStore: Uploads to Cloudinary over its REST API
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name identifier."""
        ...

    @abstractmethod
    async def store(self, data: bytes, kind: BlobKind) -> str:
        """Store binary data.

        Args:
            data: Raw bytes to store
            kind: Whether the data is a video or an image

        Returns:
            URL of the stored blob

        Raises:
            UpstreamFailure: If the backend rejects or cannot take the upload
        """
        ...

    @abstractmethod
    async def delete(self, url: str | None, kind: BlobKind) -> bool:
        """Delete a stored blob.

        Returns False without contacting the backend when ``url`` is empty,
        and False when the backend has no such blob.

        Raises:
            UpstreamFailure: If the backend cannot be reached
        """
        ...

    async def health_check(self) -> bool:
        """Check if the blob store is available.

        Returns:
            True if the store is operational, False otherwise
        """
        return True
