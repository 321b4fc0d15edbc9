"""State machine tests for GenerationJob.

Valid path: QUEUED -> PROCESSING -> COMPLETED | FAILED, and FAILED -> QUEUED on retry.
"""

from uuid import uuid4

import pytest

from artmorph.models.generation_job import GenerationJob, GenerationStatus, InvalidStateTransition


def make_job(status: GenerationStatus = GenerationStatus.QUEUED, **fields) -> GenerationJob:
    return GenerationJob(
        user_id=uuid4(),
        input_image_id=uuid4(),
        style_config_id=uuid4(),
        status=status,
        **fields,
    )


def test_processing_job_completes():
    job = make_job(GenerationStatus.PROCESSING)

    job.mark_completed()

    assert job.status == GenerationStatus.COMPLETED
    assert job.completed_at is not None
    assert job.is_terminal


def test_queued_job_completes_for_recovered_output():
    job = make_job(GenerationStatus.QUEUED)

    job.mark_completed()

    assert job.status == GenerationStatus.COMPLETED


def test_processing_job_fails_with_message():
    job = make_job(GenerationStatus.PROCESSING)

    job.mark_failed("Generation timed out (replicate). The service may be busy, please retry.")

    assert job.status == GenerationStatus.FAILED
    assert job.error_message.startswith("Generation timed out")
    assert job.completed_at is not None


def test_cannot_fail_queued_job():
    with pytest.raises(InvalidStateTransition, match="processing"):
        make_job(GenerationStatus.QUEUED).mark_failed("boom")


@pytest.mark.parametrize("status", [GenerationStatus.COMPLETED, GenerationStatus.FAILED])
def test_cannot_complete_terminal_job(status):
    with pytest.raises(InvalidStateTransition):
        make_job(status).mark_completed()


def test_requeue_resets_run_fields_and_counts_retry():
    job = make_job(GenerationStatus.PROCESSING, retry_count=1, max_retries=3)
    job.mark_failed("boom")

    job.requeue_for_retry()

    assert job.status == GenerationStatus.QUEUED
    assert job.retry_count == 2
    assert job.error_message is None
    assert job.started_at is None
    assert job.completed_at is None
    assert job.queued_at is not None


def test_requeue_only_from_failed():
    with pytest.raises(InvalidStateTransition, match="Only failed jobs"):
        make_job(GenerationStatus.COMPLETED).requeue_for_retry()


def test_requeue_respects_retry_limit():
    job = make_job(GenerationStatus.FAILED, retry_count=3, max_retries=3)

    assert job.can_retry is False
    with pytest.raises(InvalidStateTransition, match="Retry limit"):
        job.requeue_for_retry()
