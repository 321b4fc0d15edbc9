"""Unit of Work pattern for the ArtMorph backend.

Provides transaction management with automatic commit/rollback and access to all repositories.
Every multi-row mutation of the job pipeline (job + history, job + outputs + history)
happens inside exactly one UnitOfWork so a crash leaves either the old or the new state.
"""

from typing import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from artmorph.repositories.generated_image import GeneratedImageRepository
from artmorph.repositories.generation_history import GenerationHistoryRepository
from artmorph.repositories.generation_job import GenerationJobRepository
from artmorph.repositories.style_config import StyleConfigRepository
from artmorph.repositories.uploaded_image import UploadedImageRepository
from artmorph.repositories.user_profile import UserProfileRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages one database transaction and provides access to all repositories.
    Use as async context manager for automatic commit/rollback.

    Example:
        async with await uow_factory() as uow:
            job = await uow.jobs.get_for_user(job_id, user_id)
            job.requeue_for_retry()
            await uow.jobs.save(job)
            await uow.history.append(job.id, user_id, job.status, "Retry requested")
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

        self.profiles = UserProfileRepository(session)
        self.uploaded_images = UploadedImageRepository(session)
        self.styles = StyleConfigRepository(session)
        self.jobs = GenerationJobRepository(session)
        self.history = GenerationHistoryRepository(session)
        self.generated_images = GeneratedImageRepository(session)

    async def __aenter__(self):
        """Enter async context manager.

        Returns:
            self: UnitOfWork instance with all repositories available
        """
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.debug("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        # Errors are never swallowed here
        return False


UnitOfWorkFactory = Callable[[], Awaitable[UnitOfWork]]


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWorkFactory:
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(db_url, pool_size=20)
        uow_factory = create_uow_factory(session_factory)

        async with await uow_factory() as uow:
            await uow.jobs.add(job)
    """

    async def _create_uow() -> UnitOfWork:
        """Create a new UnitOfWork instance with a new session."""
        session = session_factory()
        return UnitOfWork(session)

    return _create_uow
