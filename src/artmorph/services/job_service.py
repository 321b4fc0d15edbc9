"""Job service: public operations of the generation job pipeline.

HTTP handlers (outside this package) call these methods with the user id
taken from the verified session. Validation and ownership failures are raised
as typed ServiceErrors and are expected outcomes, so they are not logged as
errors here.
"""

import asyncio
from collections import defaultdict
from typing import Optional
from uuid import UUID

import structlog

from artmorph.core.config import Settings
from artmorph.core.timezone import utcnow
from artmorph.models.generated_image import GeneratedImage
from artmorph.models.generation_job import GenerationJob, GenerationStatus
from artmorph.models.style_config import StyleConfig
from artmorph.schemas import HistoryEntryView, JobView
from artmorph.services.exceptions import (
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    RetryLimitExceededError,
    UnauthorizedError,
)
from artmorph.services.image_generation.prompt_composer import normalize_user_prompt
from artmorph.services.quota import GenerationLimit, QuotaGuard
from artmorph.services.storage.base import StorageBackend
from artmorph.uow import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


def _require_user(user_id: Optional[UUID]) -> UUID:
    if not user_id:
        raise UnauthorizedError("Unauthorized")
    return user_id


class JobService:
    """Façade over the Quota Guard and the job store.

    Every mutating operation runs in a single UnitOfWork, so the job row and
    its history entry are written together or not at all.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, storage: StorageBackend, settings: Settings):
        self.uow_factory = uow_factory
        self.storage = storage
        self.settings = settings
        self.quota = QuotaGuard(limit=settings.free_generation_limit)

    async def check_generation_limit(self, user_id: UUID) -> GenerationLimit:
        """Return the user's quota state (read-only).

        Raises:
            NotFoundError: If the user has no profile
        """
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            return await self.quota.check_limit(uow, user_id)

    async def create_job(
        self,
        user_id: UUID,
        input_image_id: UUID,
        style_config_id: UUID,
        prompt: Optional[str] = None,
    ) -> JobView:
        """Queue a new generation job.

        Args:
            user_id: Authenticated caller
            input_image_id: Uploaded image owned by the caller
            style_config_id: Active style preset
            prompt: Optional user text woven into the style prompt

        Returns:
            The created job (status QUEUED)

        Raises:
            InvalidInputError: Prompt too long
            NotFoundError: Image not owned by the caller, style missing or inactive,
                or profile missing
            QuotaExceededError: Free generation limit reached
        """
        user_id = _require_user(user_id)
        prompt = normalize_user_prompt(prompt, self.settings.prompt_max_length)

        async with await self.uow_factory() as uow:
            if await uow.uploaded_images.get_for_user(input_image_id, user_id) is None:
                raise NotFoundError("Input image not found")

            style = await uow.styles.get_active_by_id(style_config_id)
            if style is None:
                raise NotFoundError("Style configuration not found")

            limit = await self.quota.check_limit(uow, user_id)
            if not limit.can_generate:
                raise QuotaExceededError(limit.limit)

            job = GenerationJob(
                user_id=user_id,
                input_image_id=input_image_id,
                style_config_id=style_config_id,
                prompt=prompt,
                status=GenerationStatus.QUEUED,
                max_retries=self.settings.job_max_retries,
                queued_at=utcnow(),
            )
            await uow.jobs.add(job)
            await uow.history.append(job.id, user_id, GenerationStatus.QUEUED, "Job queued")

        logger.info(
            "job.created",
            job_id=str(job.id),
            user_id=str(user_id),
            style_key=style.key,
            quota_used=limit.used + 1,
            dev_mode=limit.is_dev_mode,
        )
        return self._to_view(job, style)

    async def list_jobs(self, user_id: UUID) -> list[JobView]:
        """All of the caller's jobs, newest first, with signed output URLs."""
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            jobs = await uow.jobs.list_for_user(user_id)
            styles = await uow.styles.get_many(list({job.style_config_id for job in jobs}))
            outputs = await uow.generated_images.get_latest_for_jobs([job.id for job in jobs])

        output_urls = await asyncio.gather(
            *(self._signed_output_url(job, outputs.get(job.id)) for job in jobs)
        )
        return [
            self._to_view(job, styles.get(job.style_config_id), output_url)
            for job, output_url in zip(jobs, output_urls)
        ]

    async def get_job(self, job_id: UUID, user_id: UUID) -> JobView:
        """One job of the caller.

        Raises:
            NotFoundError: Job missing or owned by someone else
        """
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            job = await uow.jobs.get_for_user(job_id, user_id)
            if job is None:
                raise NotFoundError("Job not found")
            style = await uow.styles.get_by_id(job.style_config_id)
            outputs = await uow.generated_images.list_for_job(job.id)

        output_url = await self._signed_output_url(job, outputs[0] if outputs else None)
        return self._to_view(job, style, output_url)

    async def get_job_history(self, job_id: UUID, user_id: UUID) -> list[HistoryEntryView]:
        """The job's audit trail in creation order.

        Raises:
            NotFoundError: Job missing or owned by someone else
        """
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            if await uow.jobs.get_for_user(job_id, user_id) is None:
                raise NotFoundError("Job not found")
            entries = await uow.history.list_for_job(job_id)

        return [HistoryEntryView.model_validate(entry) for entry in entries]

    async def retry_job(self, job_id: UUID, user_id: UUID) -> JobView:
        """Put a failed job back on the queue.

        Retries do not consume quota.

        Raises:
            NotFoundError: Job missing or owned by someone else
            InvalidStateError: Job is not FAILED
            RetryLimitExceededError: retry_count already reached max_retries
        """
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            job = await uow.jobs.get_for_user(job_id, user_id)
            if job is None:
                raise NotFoundError("Job not found")
            if job.status != GenerationStatus.FAILED:
                raise InvalidStateError("Only failed jobs can be retried")
            if job.retry_count >= job.max_retries:
                raise RetryLimitExceededError("Retry limit reached")

            job.requeue_for_retry()
            await uow.jobs.save(job)
            await uow.history.append(job.id, user_id, GenerationStatus.QUEUED, "Retry requested")
            style = await uow.styles.get_by_id(job.style_config_id)

        logger.info(
            "job.retried",
            job_id=str(job.id),
            retry_count=job.retry_count,
            max_retries=job.max_retries,
        )
        return self._to_view(job, style)

    async def delete_job(self, job_id: UUID, user_id: UUID) -> None:
        """Delete a job with its history and outputs.

        Stored output files are removed best-effort first; storage failures are
        logged and do not block the database deletion.

        Raises:
            NotFoundError: Job missing or owned by someone else
        """
        user_id = _require_user(user_id)
        async with await self.uow_factory() as uow:
            job = await uow.jobs.get_for_user(job_id, user_id)
            if job is None:
                raise NotFoundError("Job not found")
            outputs = await uow.generated_images.list_for_job(job.id)

        await self._remove_stored_outputs(job_id, outputs)

        async with await self.uow_factory() as uow:
            await uow.history.delete_for_job(job_id)
            await uow.generated_images.delete_for_job(job_id)
            await uow.jobs.delete(job_id)

        logger.info("job.deleted", job_id=str(job_id), outputs_removed=len(outputs))

    async def _remove_stored_outputs(self, job_id: UUID, outputs: list[GeneratedImage]) -> None:
        paths_by_bucket: dict[str, list[str]] = defaultdict(list)
        for output in outputs:
            paths_by_bucket[output.storage_bucket].append(output.storage_path)

        for bucket, paths in paths_by_bucket.items():
            try:
                await self.storage.delete(bucket, paths)
            except Exception as e:
                logger.warning(
                    "job.delete.storage_cleanup_failed",
                    job_id=str(job_id),
                    bucket=bucket,
                    error=str(e),
                )

    async def _signed_output_url(self, job: GenerationJob, output: Optional[GeneratedImage]) -> Optional[str]:
        if job.status != GenerationStatus.COMPLETED or output is None:
            return None
        try:
            return await self.storage.create_signed_url(
                output.storage_bucket,
                output.storage_path,
                self.settings.generated_url_ttl_seconds,
            )
        except Exception as e:
            logger.warning("job.output_url_failed", job_id=str(job.id), error=str(e))
            return None

    @staticmethod
    def _to_view(
        job: GenerationJob, style: Optional[StyleConfig], output_url: Optional[str] = None
    ) -> JobView:
        return JobView(
            id=job.id,
            status=job.status,
            input_image_id=job.input_image_id,
            style_config_id=job.style_config_id,
            style_name=style.name if style else None,
            style_key=style.key if style else None,
            prompt=job.prompt,
            error_message=job.error_message,
            retry_count=job.retry_count,
            max_retries=job.max_retries,
            output_url=output_url,
            queued_at=job.queued_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            created_at=job.created_at,
        )
