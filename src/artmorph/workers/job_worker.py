"""Generation job worker.

Polls for the oldest QUEUED job, claims it with a conditional update and runs
the image generation. The database is the only coordination medium: a job is
owned by whoever moved it from QUEUED to PROCESSING, and every later status
write is conditional on the row still being PROCESSING.

Transaction layout for one job:

1. Claim + "Job started" history (one UnitOfWork)
2. Provider call and output upload (no transaction held open)
3. COMPLETED + GeneratedImage + history with the output descriptor (one UnitOfWork)

If another actor resolved or deleted the job during step 2 (startup recovery
in another process, a user deleting it), step 3 writes nothing and the
uploaded object is removed again, so a job has an output iff it is COMPLETED.
"""

import asyncio
import json
import time
from datetime import timedelta
from typing import Optional
from uuid import UUID

import structlog

from artmorph.core.config import Settings
from artmorph.core.timezone import utcnow
from artmorph.models.generated_image import GeneratedImage
from artmorph.models.generation_job import ACTIVE_STATUSES, GenerationJob, GenerationStatus
from artmorph.services.exceptions import InvalidInputError, ServiceError
from artmorph.services.image_generation.generator import ImageGenerator, StoredOutput
from artmorph.uow import UnitOfWorkFactory

logger = structlog.get_logger(__name__)

ORPHANED_JOB_MESSAGE = "Worker restarted during processing"


def _error_message(error: Exception) -> str:
    if isinstance(error, ServiceError):
        return error.message
    return str(error) or type(error).__name__


class JobWorker:
    """Consumer of the generation queue."""

    def __init__(self, uow_factory: UnitOfWorkFactory, generator: ImageGenerator, settings: Settings):
        self.uow_factory = uow_factory
        self.generator = generator
        self.poll_interval_seconds = settings.worker_poll_interval_seconds
        self.error_backoff_seconds = settings.worker_error_backoff_seconds
        self.orphan_cutoff_seconds = settings.orphan_cutoff_seconds

    async def process_job(self, job_id: UUID) -> None:
        """Process one job exactly once.

        No-op when the job is gone, already terminal, or claimed by another
        caller. A QUEUED or PROCESSING job that already has an output is
        marked COMPLETED without calling the provider.

        Raises:
            Exception: Generation errors, after the job was recorded as FAILED
        """
        async with await self.uow_factory() as uow:
            job = await uow.jobs.get_by_id(job_id)
            if job is None:
                logger.debug("job.skipped", job_id=str(job_id), reason="not_found")
                return

            if job.status == GenerationStatus.COMPLETED:
                logger.debug("job.skipped", job_id=str(job_id), reason="already_completed")
                return

            if job.status in ACTIVE_STATUSES and await uow.generated_images.exists_for_job(job.id):
                expected = job.status
                job.mark_completed()
                if await uow.jobs.apply_transition(job, expected):
                    await uow.history.append(
                        job.id, job.user_id, GenerationStatus.COMPLETED, "Output already generated"
                    )
                    logger.info("job.short_circuited", job_id=str(job.id))
                return

            if job.status != GenerationStatus.QUEUED:
                logger.debug("job.skipped", job_id=str(job_id), reason=job.status.value)
                return

            if not await uow.jobs.claim(job.id):
                logger.info("job.claim_lost", job_id=str(job.id))
                return

            await uow.history.append(
                job.id, job.user_id, GenerationStatus.PROCESSING, "Job started"
            )

        logger.info("job.claimed", job_id=str(job.id), retry_count=job.retry_count)
        start_time = time.time()

        try:
            output = await self._generate(job)
        except Exception as e:
            await self._record_failure(job, e)
            logger.error(
                "job.failed",
                job_id=str(job.id),
                error_type=type(e).__name__,
                error_message=_error_message(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        if not await self._record_completion(job, output):
            await self._discard_output(job, output)
            return

        logger.info(
            "job.completed",
            job_id=str(job.id),
            storage_path=output.path,
            duration_seconds=time.time() - start_time,
        )

    async def _generate(self, job: GenerationJob) -> StoredOutput:
        async with await self.uow_factory() as uow:
            style = await uow.styles.get_by_id(job.style_config_id)
            input_image = await uow.uploaded_images.get_by_id(job.input_image_id)

        if style is None:
            raise InvalidInputError("Style configuration missing")
        if input_image is None:
            raise InvalidInputError("Input image missing")

        return await self.generator.generate(
            user_id=job.user_id,
            style=style,
            input_image=input_image,
            user_prompt=job.prompt,
        )

    async def _record_completion(self, job: GenerationJob, output: StoredOutput) -> bool:
        """Mark the job COMPLETED and reference its output in one transaction.

        Returns:
            False when the job is no longer PROCESSING (nothing was written)
        """
        async with await self.uow_factory() as uow:
            current = await uow.jobs.get_by_id(job.id)
            if current is None or current.status != GenerationStatus.PROCESSING:
                logger.warning(
                    "job.completion_lost",
                    job_id=str(job.id),
                    status=current.status.value if current else None,
                )
                return False

            current.mark_completed()
            if not await uow.jobs.apply_transition(current, GenerationStatus.PROCESSING):
                logger.warning("job.completion_lost", job_id=str(job.id), status=None)
                return False

            await uow.generated_images.add(
                GeneratedImage(
                    user_id=job.user_id,
                    job_id=job.id,
                    source_image_id=job.input_image_id,
                    storage_bucket=output.bucket,
                    storage_path=output.path,
                )
            )
            await uow.history.append(
                job.id,
                job.user_id,
                GenerationStatus.COMPLETED,
                json.dumps(output.descriptor()),
            )
        return True

    async def _discard_output(self, job: GenerationJob, output: StoredOutput) -> None:
        try:
            await self.generator.storage.delete(output.bucket, [output.path])
        except Exception as e:
            logger.warning(
                "job.output_cleanup_failed",
                job_id=str(job.id),
                storage_path=output.path,
                error=str(e),
            )
            return
        logger.info("job.output_discarded", job_id=str(job.id), storage_path=output.path)

    async def _record_failure(self, job: GenerationJob, error: Exception) -> None:
        message = _error_message(error)
        async with await self.uow_factory() as uow:
            current = await uow.jobs.get_by_id(job.id)
            if current is None or current.status != GenerationStatus.PROCESSING:
                logger.warning(
                    "job.failure_not_recorded",
                    job_id=str(job.id),
                    status=current.status.value if current else None,
                )
                return
            current.mark_failed(message)
            if await uow.jobs.apply_transition(current, GenerationStatus.PROCESSING):
                await uow.history.append(job.id, job.user_id, GenerationStatus.FAILED, message)

    async def run_once(self) -> Optional[UUID]:
        """Process the oldest QUEUED job, if any.

        Returns:
            The id of the job that was picked up, or None when the queue is empty
        """
        async with await self.uow_factory() as uow:
            job_id = await uow.jobs.get_oldest_queued_id()

        if job_id is None:
            return None

        await self.process_job(job_id)
        return job_id

    async def recover_orphaned_jobs(self) -> int:
        """Resolve jobs left in PROCESSING by a process that died.

        Only jobs claimed longer ago than the orphan cutoff are touched, so
        jobs still running in another live worker keep their owner. A job
        with a stored output becomes COMPLETED; anything else becomes FAILED
        so the user can retry it.

        Returns:
            Number of jobs moved out of PROCESSING
        """
        cutoff = utcnow() - timedelta(seconds=self.orphan_cutoff_seconds)
        recovered = 0
        async with await self.uow_factory() as uow:
            jobs = await uow.jobs.list_stale_processing(cutoff)
            for job in jobs:
                if await uow.generated_images.exists_for_job(job.id):
                    job.mark_completed()
                    message = "Output already generated"
                else:
                    job.mark_failed(ORPHANED_JOB_MESSAGE)
                    message = ORPHANED_JOB_MESSAGE

                if await uow.jobs.apply_transition(job, GenerationStatus.PROCESSING):
                    await uow.history.append(job.id, job.user_id, job.status, message)
                    recovered += 1

        if recovered > 0:
            logger.info("worker.recovery", orphaned_jobs_resolved=recovered)
        return recovered

    async def run(self, stop_event: asyncio.Event) -> None:
        """Main worker loop.

        Runs until ``stop_event`` is set. A job in flight is always finished
        before the loop checks the event again; sleeps are cut short by it.
        Errors are logged and followed by a backoff, never propagated.
        """
        logger.info(
            "worker.started",
            poll_interval=self.poll_interval_seconds,
            providers=[provider.name for provider in self.generator.providers.configured],
        )

        while not stop_event.is_set():
            try:
                if await self.run_once() is not None:
                    continue
                delay = self.poll_interval_seconds

            except Exception as e:
                logger.error(
                    "worker.error",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                delay = self.error_backoff_seconds

            await self._wait(stop_event, delay)

        logger.info("worker.stopped")

    @staticmethod
    async def _wait(stop_event: asyncio.Event, delay: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
