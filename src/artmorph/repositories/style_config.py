"""StyleConfig repository (read-only access to the style catalog)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.models.style_config import StyleConfig


class StyleConfigRepository:
    """Read-only lookups into the style catalog."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, style_id: UUID) -> StyleConfig | None:
        """Retrieve a style by id regardless of its active flag."""
        result = await self.session.execute(
            select(StyleConfig).where(StyleConfig.id == style_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_active_by_id(self, style_id: UUID) -> StyleConfig | None:
        """Retrieve a style only if it is active (selectable for new jobs)."""
        result = await self.session.execute(
            select(StyleConfig).where(
                StyleConfig.id == style_id,  # type: ignore[arg-type]
                StyleConfig.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        return result.scalar_one_or_none()

    async def get_many(self, style_ids: list[UUID]) -> dict[UUID, StyleConfig]:
        """Map style ids to styles; unknown ids are absent."""
        if not style_ids:
            return {}
        result = await self.session.execute(
            select(StyleConfig).where(StyleConfig.id.in_(style_ids))  # type: ignore[attr-defined]
        )
        return {style.id: style for style in result.scalars().all()}
