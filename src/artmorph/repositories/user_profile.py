"""UserProfile repository (read-only, quota-relevant fields)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.models.user_profile import UserProfile


class UserProfileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> UserProfile | None:
        result = await self.session.execute(
            select(UserProfile).where(UserProfile.id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()
