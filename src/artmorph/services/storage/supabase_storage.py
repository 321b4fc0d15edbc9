"""Supabase Storage client for generated and uploaded images."""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from artmorph.services.exceptions import StorageError


class SupabaseStorageClient:
    """Object storage client speaking the Supabase Storage REST API."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Supabase Storage client.

        Args:
            base_url: Supabase project URL (SUPABASE_URL)
            service_role_key: Service role key (SUPABASE_SERVICE_ROLE_KEY)
            timeout_seconds: Per-request timeout
            transport: httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.storage_url = f"{self.base_url}/storage/v1"
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Authorization": f"Bearer {service_role_key}",
            "apikey": service_role_key,
        }
        self._transport = transport

    def _object_url(self, bucket: str, path: str, kind: str = "object") -> str:
        return f"{self.storage_url}/{kind}/{quote(bucket)}/{quote(path)}"

    async def _request(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, headers=self.headers, transport=self._transport
            ) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise StorageError(f"{action} timed out after {self.timeout_seconds:g}s: {e}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"{action} failed: network error: {e}") from e

        if response.status_code >= 400:
            raise StorageError(f"{action} failed ({response.status_code}): {response.text[:300]}")
        return response

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Upload bytes to ``bucket/path`` without overwriting.

        Returns:
            The stored object path
        """
        await self._request(
            "POST",
            self._object_url(bucket, path),
            "Upload",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        response = await self._request("GET", self._object_url(bucket, path), "Download")
        return response.content

    async def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        """Create a time-limited public URL for a private object."""
        response = await self._request(
            "POST",
            self._object_url(bucket, path, kind="object/sign"),
            "Signed URL creation",
            json={"expiresIn": ttl_seconds},
        )
        signed = response.json().get("signedURL")
        if not signed:
            raise StorageError("Signed URL creation failed: response had no signedURL")
        return f"{self.storage_url}{signed}"

    async def delete(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        await self._request(
            "DELETE",
            f"{self.storage_url}/object/{quote(bucket)}",
            "Delete",
            json={"prefixes": paths},
        )
