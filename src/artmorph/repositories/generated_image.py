"""GeneratedImage repository for the ArtMorph backend."""

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.models.generated_image import GeneratedImage


class GeneratedImageRepository:
    """Repository for GeneratedImage entities (output artifact references)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, image: GeneratedImage) -> GeneratedImage:
        """Persist a new output reference."""
        self.session.add(image)
        await self.session.flush()
        return image

    async def exists_for_job(self, job_id: UUID) -> bool:
        """Check whether any output was already stored for a job.

        Used by the worker to skip the provider after a crash between
        storing the output and completing the job.
        """
        result = await self.session.execute(
            select(func.count())
            .select_from(GeneratedImage)
            .where(GeneratedImage.job_id == job_id)  # type: ignore[arg-type]
        )
        return int(result.scalar_one()) > 0

    async def list_for_job(self, job_id: UUID) -> list[GeneratedImage]:
        """Retrieve all outputs of a job, newest first."""
        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.job_id == job_id)  # type: ignore[arg-type]
            .order_by(GeneratedImage.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def get_latest_for_jobs(self, job_ids: list[UUID]) -> dict[UUID, GeneratedImage]:
        """Map each job id to its most recent output.

        Jobs without output are absent from the returned dict.
        """
        if not job_ids:
            return {}

        result = await self.session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.job_id.in_(job_ids))  # type: ignore[attr-defined]
            .order_by(GeneratedImage.created_at.desc())  # type: ignore[attr-defined]
        )
        latest: dict[UUID, GeneratedImage] = {}
        for image in result.scalars().all():
            latest.setdefault(image.job_id, image)
        return latest

    async def delete_for_job(self, job_id: UUID) -> None:
        """Remove all output references of a job."""
        await self.session.execute(
            delete(GeneratedImage).where(GeneratedImage.job_id == job_id)  # type: ignore[arg-type]
        )
