"""Cloudinary blob store over the Cloudinary upload REST API."""

import hashlib
import time
from typing import Any

import httpx

from videohub.adapters.blob.base import BlobStore
from videohub.config import settings
from videohub.domain.enums import BlobKind
from videohub.errors import UpstreamFailure
from videohub.logging import get_logger

logger = get_logger(__name__)


def public_id_from_url(url: str) -> str:
    """Extract the public id Cloudinary needs to destroy an asset.

    ``https://res.cloudinary.com/demo/video/upload/v1/abc123.mp4`` -> ``abc123``
    """
    return url.split("?")[0].rstrip("/").split("/")[-1].split(".")[0]


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Sign request parameters the way Cloudinary expects.

    Parameters are sorted by name, joined as ``k=v`` with ``&`` and the API
    secret is appended before hashing with SHA-1.
    """
    payload = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] is not None)
    return hashlib.sha1(f"{payload}{api_secret}".encode()).hexdigest()


class CloudinaryBlobStore(BlobStore):
    """Stores blobs on Cloudinary.

    Videos go to the ``video`` resource type, everything else to ``image``.
    """

    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key or settings.cloudinary_api_key
        self.api_secret = api_secret or settings.cloudinary_api_secret
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

        if not (self.cloud_name and self.api_key and self.api_secret):
            logger.warning("Cloudinary credentials not configured")

    @property
    def name(self) -> str:
        return "cloudinary"

    def _endpoint(self, kind: BlobKind, action: str) -> str:
        return f"{self.base_url}/{self.cloud_name}/{BlobKind(kind)}/{action}"

    def _signed(self, params: dict[str, Any]) -> dict[str, Any]:
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise UpstreamFailure("Cloudinary credentials not configured")
        params = {**params, "timestamp": int(time.time())}
        return {
            **params,
            "api_key": self.api_key,
            "signature": sign_params(params, self.api_secret),
        }

    async def _post(
        self,
        url: str,
        data: dict[str, Any],
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, data=data, files=files)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            try:
                detail = e.response.json().get("error", {}).get("message", e.response.text)
            except ValueError:
                detail = e.response.text
            logger.error(
                "cloudinary_request_failed",
                status_code=e.response.status_code,
                error=detail,
            )
            raise UpstreamFailure(f"Cloudinary error {e.response.status_code}: {detail}") from e
        except httpx.HTTPError as e:
            logger.error("cloudinary_request_failed", error=str(e))
            raise UpstreamFailure(f"Cloudinary unreachable: {e}") from e

    async def store(self, data: bytes, kind: BlobKind) -> str:
        body = await self._post(
            self._endpoint(kind, "upload"),
            data=self._signed({}),
            files={"file": ("upload", data)},
        )
        url = body.get("secure_url") or body.get("url")
        if not url:
            raise UpstreamFailure("Cloudinary upload returned no URL")

        logger.info("blob_stored", kind=str(kind), url=url, public_id=body.get("public_id"))
        return url

    async def delete(self, url: str | None, kind: BlobKind) -> bool:
        if not url:
            return False

        public_id = public_id_from_url(url)
        body = await self._post(
            self._endpoint(kind, "destroy"),
            data=self._signed({"public_id": public_id}),
        )
        deleted = body.get("result") == "ok"
        logger.info("blob_deleted", kind=str(kind), public_id=public_id, deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)
