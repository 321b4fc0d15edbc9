"""UploadedImage repository (read-only access to input images)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.models.uploaded_image import UploadedImage


class UploadedImageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, image_id: UUID) -> UploadedImage | None:
        result = await self.session.execute(
            select(UploadedImage).where(UploadedImage.id == image_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, image_id: UUID, user_id: UUID) -> UploadedImage | None:
        """Retrieve an uploaded image only if the user owns it."""
        result = await self.session.execute(
            select(UploadedImage).where(
                UploadedImage.id == image_id,  # type: ignore[arg-type]
                UploadedImage.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()
