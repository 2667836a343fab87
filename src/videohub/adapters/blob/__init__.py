"""Blob store adapters."""

from videohub.adapters.blob.base import BlobStore
from videohub.adapters.blob.cloudinary import CloudinaryBlobStore, public_id_from_url
from videohub.adapters.blob.local import LocalBlobStore
from videohub.adapters.blob.stub import StubBlobStore
from videohub.config import settings


def get_blob_store() -> BlobStore:
    """Get the configured blob store."""
    backend = getattr(settings, "blob_backend", "stub").lower()

    if backend == "cloudinary":
        return CloudinaryBlobStore()
    elif backend == "local":
        return LocalBlobStore()
    else:
        return StubBlobStore()


__all__ = [
    "BlobStore",
    "CloudinaryBlobStore",
    "LocalBlobStore",
    "StubBlobStore",
    "get_blob_store",
    "public_id_from_url",
]
