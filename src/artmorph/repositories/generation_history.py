"""GenerationHistory repository for the ArtMorph backend."""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.models.generation_history import GenerationHistory
from artmorph.models.generation_job import GenerationStatus


class GenerationHistoryRepository:
    """Repository for the append-only job audit trail.

    There is deliberately no update method.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        job_id: UUID,
        user_id: UUID,
        status: GenerationStatus,
        message: Optional[str] = None,
    ) -> GenerationHistory:
        """Append one history entry for a job transition.

        Args:
            job_id: Job the entry belongs to
            user_id: Owner of the job
            status: Job status after the transition
            message: Free text or a small JSON payload

        Returns:
            Persisted history entry
        """
        entry = GenerationHistory(job_id=job_id, user_id=user_id, status=status, message=message)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_job(self, job_id: UUID) -> list[GenerationHistory]:
        """Retrieve a job's history in creation order (oldest first)."""
        result = await self.session.execute(
            select(GenerationHistory)
            .where(GenerationHistory.job_id == job_id)  # type: ignore[arg-type]
            .order_by(
                GenerationHistory.created_at.asc(),  # type: ignore[attr-defined]
                GenerationHistory.id.asc(),  # type: ignore[union-attr]
            )
        )
        return list(result.scalars().all())

    async def delete_for_job(self, job_id: UUID) -> None:
        """Remove a job's history. Only used when the job itself is deleted."""
        await self.session.execute(
            delete(GenerationHistory).where(GenerationHistory.job_id == job_id)  # type: ignore[arg-type]
        )
