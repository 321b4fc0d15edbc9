"""GenerationJob repository for the ArtMorph backend.

Provides data access methods for GenerationJob entities, including the
conditional-update claim used by the job worker.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from artmorph.core.timezone import utcnow
from artmorph.models.generation_job import GenerationJob, GenerationStatus


class GenerationJobRepository:
    """Repository for GenerationJob entities.

    The database row is the only coordination point between request handlers
    and the worker. ``claim`` is a compare-and-swap on ``status``: whoever
    moves the row from QUEUED to PROCESSING owns the job, everyone else sees
    zero affected rows.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, job: GenerationJob) -> GenerationJob:
        """Persist new generation job to database.

        Args:
            job: GenerationJob entity to persist

        Returns:
            Persisted job with generated ID
        """
        self.session.add(job)
        await self.session.flush()
        return job

    async def save(self, job: GenerationJob) -> GenerationJob:
        """Flush in-memory changes made through the job's ``mark_*`` methods."""
        self.session.add(job)
        await self.session.flush()
        return job

    async def get_by_id(self, job_id: UUID) -> GenerationJob | None:
        """Retrieve generation job by UUID.

        Args:
            job_id: Job's unique identifier

        Returns:
            GenerationJob if found, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob).where(GenerationJob.id == job_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, job_id: UUID, user_id: UUID) -> GenerationJob | None:
        """Retrieve a job only if it belongs to the given user.

        Args:
            job_id: Job's unique identifier
            user_id: Owning user's identifier

        Returns:
            GenerationJob if found and owned, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob).where(
                GenerationJob.id == job_id,  # type: ignore[arg-type]
                GenerationJob.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[GenerationJob]:
        """Retrieve all jobs of a user, newest first."""
        result = await self.session.execute(
            select(GenerationJob)
            .where(GenerationJob.user_id == user_id)  # type: ignore[arg-type]
            .order_by(GenerationJob.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: UUID) -> int:
        """Count the user's currently existing jobs.

        Deleted jobs are not counted, so deleting a job frees quota.
        """
        result = await self.session.execute(
            select(func.count())
            .select_from(GenerationJob)
            .where(GenerationJob.user_id == user_id)  # type: ignore[arg-type]
        )
        return int(result.scalar_one())

    async def get_oldest_queued_id(self) -> UUID | None:
        """Return the id of the oldest QUEUED job (FIFO by creation time).

        No lock is taken here; exclusivity comes from ``claim``.
        """
        result = await self.session.execute(
            select(GenerationJob.id)
            .where(GenerationJob.status == GenerationStatus.QUEUED)  # type: ignore[arg-type]
            .order_by(GenerationJob.created_at.asc())  # type: ignore[attr-defined]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def claim(self, job_id: UUID) -> bool:
        """Atomically move a job from QUEUED to PROCESSING.

        Query:
            UPDATE generation_jobs
            SET status = 'PROCESSING', started_at = now(), error_message = NULL
            WHERE id = :job_id AND status = 'QUEUED'

        A deleted job also yields zero rows, so a claim never resurrects it.

        Args:
            job_id: Job to claim

        Returns:
            True if this caller now owns the job, False if another actor
            advanced or removed it first
        """
        now = utcnow()
        result = await self.session.execute(
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,  # type: ignore[arg-type]
                GenerationJob.status == GenerationStatus.QUEUED,  # type: ignore[arg-type]
            )
            .values(
                status=GenerationStatus.PROCESSING,
                started_at=now,
                error_message=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def list_stale_processing(self, started_before: datetime) -> list[GenerationJob]:
        """Retrieve PROCESSING jobs claimed before ``started_before``, oldest first."""
        result = await self.session.execute(
            select(GenerationJob)
            .where(
                GenerationJob.status == GenerationStatus.PROCESSING,  # type: ignore[arg-type]
                GenerationJob.started_at < started_before,  # type: ignore[arg-type,operator]
            )
            .order_by(GenerationJob.started_at.asc())  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    async def apply_transition(self, job: GenerationJob, expected: GenerationStatus) -> bool:
        """Persist a ``mark_*`` transition only if the row is still in ``expected``.

        Query:
            UPDATE generation_jobs
            SET status = :status, error_message = ..., completed_at = ..., updated_at = ...
            WHERE id = :job_id AND status = :expected

        The job is detached from the session first so the unit of work never
        flushes the same change unconditionally.

        Args:
            job: Job whose in-memory state already holds the new status
            expected: Status the stored row must still have

        Returns:
            True if the row was updated, False if another actor changed or
            removed it in the meantime
        """
        if job in self.session:
            self.session.expunge(job)

        result = await self.session.execute(
            update(GenerationJob)
            .where(
                GenerationJob.id == job.id,  # type: ignore[arg-type]
                GenerationJob.status == expected,  # type: ignore[arg-type]
            )
            .values(
                status=job.status,
                error_message=job.error_message,
                completed_at=job.completed_at,
                updated_at=job.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def delete(self, job_id: UUID) -> None:
        """Delete the job row. Dependent rows must already be gone."""
        await self.session.execute(
            delete(GenerationJob).where(GenerationJob.id == job_id)  # type: ignore[arg-type]
        )
