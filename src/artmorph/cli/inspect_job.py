"""CLI command printing a generation job with its history.

Usage:
    python -m artmorph.cli inspect-job 6f1c2d9e-...
"""

import sys
from uuid import UUID

import structlog

from artmorph.cli.run_worker import load_settings
from artmorph.core.database import setup_db_session
from artmorph.models.generation_history import GenerationHistory
from artmorph.models.generation_job import GenerationJob
from artmorph.uow import UnitOfWorkFactory, create_uow_factory

logger = structlog.get_logger()


def format_job(job: GenerationJob, entries: list[GenerationHistory], output_paths: list[str]) -> str:
    """Render a job report for the terminal."""
    lines = [
        "=" * 60,
        f"Job {job.id}",
        "=" * 60,
        f"User:          {job.user_id}",
        f"Status:        {job.status.value}",
        f"Style config:  {job.style_config_id}",
        f"Input image:   {job.input_image_id}",
        f"Prompt:        {job.prompt or '-'}",
        f"Retries:       {job.retry_count}/{job.max_retries}",
        f"Error:         {job.error_message or '-'}",
        f"Created:       {job.created_at.isoformat()}",
        f"Started:       {job.started_at.isoformat() if job.started_at else '-'}",
        f"Completed:     {job.completed_at.isoformat() if job.completed_at else '-'}",
    ]
    for path in output_paths:
        lines.append(f"Output:        {path}")

    lines.append("")
    lines.append(f"History ({len(entries)} entries)")
    for entry in entries:
        lines.append(
            f"  {entry.created_at.isoformat()}  {entry.status.value:<10}  {entry.message or ''}"
        )
    lines.append("=" * 60)
    return "\n".join(lines)


async def inspect(uow_factory: UnitOfWorkFactory, job_id: UUID) -> int:
    """Print the job report.

    Returns:
        Exit code: 0 (found), 1 (job not found)
    """
    async with await uow_factory() as uow:
        job = await uow.jobs.get_by_id(job_id)
        if job is None:
            print(f"Error: job {job_id} not found", file=sys.stderr)
            return 1
        entries = await uow.history.list_for_job(job_id)
        outputs = await uow.generated_images.list_for_job(job_id)

    print(format_job(job, entries, [f"{o.storage_bucket}/{o.storage_path}" for o in outputs]))
    return 0


async def async_main(job_id: UUID, verbose: bool = False) -> int:
    settings = load_settings(verbose)
    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    try:
        return await inspect(create_uow_factory(session_factory), job_id)
    except Exception as e:
        logger.error("cli.unexpected_error", error=str(e), error_type=type(e).__name__)
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1
