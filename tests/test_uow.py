"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback
- Job row and history entry are written atomically
"""

import pytest

from artmorph.models.generation_job import GenerationJob, GenerationStatus


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory, seed):
    profile = await seed.profile()
    image = await seed.uploaded_image(profile.id)
    style = await seed.style()

    async with await uow_factory() as uow:
        job = GenerationJob(user_id=profile.id, input_image_id=image.id, style_config_id=style.id)
        await uow.jobs.add(job)
        await uow.history.append(job.id, profile.id, GenerationStatus.QUEUED, "Job queued")

    async with await uow_factory() as uow:
        found = await uow.jobs.get_by_id(job.id)
        entries = await uow.history.list_for_job(job.id)

    assert found is not None
    assert [entry.message for entry in entries] == ["Job queued"]


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory, seed):
    """Neither the job nor its history survive, and the exception propagates."""
    profile = await seed.profile()
    image = await seed.uploaded_image(profile.id)
    style = await seed.style()

    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            job = GenerationJob(
                user_id=profile.id, input_image_id=image.id, style_config_id=style.id
            )
            await uow.jobs.add(job)
            await uow.history.append(job.id, profile.id, GenerationStatus.QUEUED, "Job queued")
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.jobs.get_by_id(job.id) is None
        assert await uow.history.list_for_job(job.id) == []
        assert await uow.jobs.count_for_user(profile.id) == 0


@pytest.mark.asyncio
async def test_uow_provides_all_repositories(uow_factory):
    async with await uow_factory() as uow:
        assert uow.profiles is not None
        assert uow.uploaded_images is not None
        assert uow.styles is not None
        assert uow.jobs is not None
        assert uow.history is not None
        assert uow.generated_images is not None
