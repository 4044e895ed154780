from __future__ import annotations

import hashlib
import time
import httpx
import structlog
from typing import Any, Dict, Optional

from bidding_api.core.config import settings


class ImageStoreError(Exception):
    """Raised when the image host rejects a call or cannot be reached."""


class CloudinarySAO:
    """Service Access Object for the Cloudinary upload REST API."""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        request_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cloud_name = cloud_name or settings.cloudinary_cloud_name
        self._api_key = api_key or settings.cloudinary_api_key
        self._api_secret = api_secret or settings.cloudinary_api_secret
        self._base_url = (base_url or settings.cloudinary_api_base_url).rstrip("/")
        self._timeout = request_timeout or settings.cloudinary_timeout
        self._transport = transport
        self._logger = structlog.get_logger().bind(component="CloudinarySAO")

    @property
    def base_url(self) -> str:
        return f"{self._base_url}/{self._cloud_name}"

    def _ensure_configured(self) -> None:
        if not (self._cloud_name and self._api_key and self._api_secret):
            raise ImageStoreError("Cloudinary credentials are not configured")

    def sign(self, params: Dict[str, Any]) -> str:
        """
        Cloudinary request signature: SHA-1 of the sorted ``key=value`` pairs
        joined with ``&``, followed by the API secret.
        """
        to_sign = "&".join(
            f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, "")
        )
        return hashlib.sha1(f"{to_sign}{self._api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "timestamp": int(time.time())}
        return {**params, "api_key": self._api_key, "signature": self.sign(params)}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def upload(
        self,
        content: bytes,
        filename: str,
        folder: str,
        resource_type: str = "image",
    ) -> Dict[str, Any]:
        """
        Upload ``content`` into ``folder``. The returned payload carries
        ``secure_url`` and ``public_id``.
        """
        self._ensure_configured()
        data = self._signed({"folder": folder})

        async with self._client() as client:
            try:
                response = await client.post(
                    f"/{resource_type}/upload",
                    data=data,
                    files={"file": (filename or "upload", content)},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                self._logger.error(
                    "Cloudinary upload rejected",
                    status_code=exc.response.status_code,
                    body=exc.response.text[:200],
                    folder=folder,
                )
                raise ImageStoreError("Image upload was rejected") from exc
            except httpx.HTTPError as exc:
                self._logger.error("Cloudinary upload failed", error=str(exc), folder=folder)
                raise ImageStoreError("Image host unreachable") from exc

            payload = response.json()
            if not payload.get("secure_url") or not payload.get("public_id"):
                raise ImageStoreError("Image host returned an incomplete response")

            self._logger.info("Uploaded image", public_id=payload["public_id"], folder=folder)
            return payload

    async def destroy(self, public_id: str, resource_type: str = "image") -> Dict[str, Any]:
        """Delete an uploaded asset by its ``public_id``."""
        self._ensure_configured()
        data = self._signed({"public_id": public_id})

        async with self._client() as client:
            try:
                response = await client.post(f"/{resource_type}/destroy", data=data)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ImageStoreError(f"Could not delete image {public_id}") from exc

            payload = response.json()
            if payload.get("result") not in ("ok", "not found"):
                raise ImageStoreError(f"Unexpected destroy result for {public_id}: {payload.get('result')}")
            return payload


cloudinary_sao = CloudinarySAO()
