"""Object storage interface used by the job pipeline."""

from typing import Protocol


class StorageBackend(Protocol):
    """Binary object storage (buckets of paths).

    Implementations raise ``StorageError`` on failure.
    """

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str: ...

    async def download(self, bucket: str, path: str) -> bytes: ...

    async def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str: ...

    async def delete(self, bucket: str, paths: list[str]) -> None: ...


def extension_for(content_type: str) -> str:
    """File extension for a generated image content type."""
    if "webp" in content_type:
        return ".webp"
    if "jpeg" in content_type or "jpg" in content_type:
        return ".jpg"
    return ".png"
