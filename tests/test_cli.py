"""CLI tests for argument parsing and the inspect-job report."""

from uuid import UUID, uuid4

import pytest

from artmorph.cli.__main__ import parse_args
from artmorph.cli.inspect_job import inspect
from artmorph.models.generation_job import GenerationStatus


def test_parse_inspect_job():
    job_id = uuid4()

    args = parse_args(["-v", "inspect-job", str(job_id)])

    assert args.command == "inspect-job"
    assert args.job_id == job_id
    assert isinstance(args.job_id, UUID)
    assert args.verbose is True


def test_parse_worker():
    assert parse_args(["worker"]).command == "worker"


def test_command_is_required():
    with pytest.raises(SystemExit):
        parse_args([])


@pytest.mark.asyncio
async def test_inspect_prints_job_and_history(uow_factory, seed, capsys):
    profile = await seed.profile()
    image = await seed.uploaded_image(profile.id)
    style = await seed.style()
    job = await seed.job(
        profile.id, image.id, style.id, status=GenerationStatus.FAILED, error_message="boom"
    )
    async with await uow_factory() as uow:
        await uow.history.append(job.id, profile.id, GenerationStatus.QUEUED, "Job queued")
        await uow.history.append(job.id, profile.id, GenerationStatus.FAILED, "boom")

    exit_code = await inspect(uow_factory, job.id)

    out = capsys.readouterr().out
    assert exit_code == 0
    assert f"Job {job.id}" in out
    assert "Status:        FAILED" in out
    assert "History (2 entries)" in out
    assert "Job queued" in out


@pytest.mark.asyncio
async def test_inspect_unknown_job(uow_factory, capsys):
    exit_code = await inspect(uow_factory, uuid4())

    assert exit_code == 1
    assert "not found" in capsys.readouterr().err
