"""Application tests: health endpoint, lifespan wiring and worker supervision."""

import asyncio
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

import artmorph.app as app_module
from artmorph.app import create_app, create_resilient_worker
from artmorph.core.timezone import utcnow
from artmorph.models.generation_job import GenerationStatus
from artmorph.services.job_service import JobService
from artmorph.workers.job_worker import JobWorker


@pytest.mark.asyncio
async def test_health_reports_healthy_database(settings, session_factory):
    app = create_app(settings)
    app.state.session_factory = session_factory

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_health_reports_unreachable_database(settings):
    app = create_app(settings)

    class BrokenSession:
        async def __aenter__(self):
            raise ConnectionError("database is down")

        async def __aexit__(self, *exc):
            return False

    app.state.session_factory = BrokenSession

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
    assert response.json()["error"]["type"] == "ConnectionError"


async def seed_processing_jobs(seed):
    profile = await seed.profile()
    image = await seed.uploaded_image(profile.id)
    style = await seed.style()
    orphan = await seed.job(
        profile.id,
        image.id,
        style.id,
        status=GenerationStatus.PROCESSING,
        started_at=utcnow() - timedelta(hours=1),
    )
    running = await seed.job(profile.id, image.id, style.id, status=GenerationStatus.PROCESSING)
    return orphan, running


@pytest.mark.asyncio
async def test_lifespan_recovers_orphans_and_starts_worker(settings, seed, uow_factory):
    orphan, running = await seed_processing_jobs(seed)

    app = create_app(settings)
    with TestClient(app) as client:
        assert isinstance(app.state.job_service, JobService)
        assert isinstance(app.state.job_worker, JobWorker)
        assert client.get("/health").status_code == 200

    async with await uow_factory() as uow:
        recovered = await uow.jobs.get_by_id(orphan.id)
        still_running = await uow.jobs.get_by_id(running.id)
    assert recovered.status == GenerationStatus.FAILED
    assert recovered.error_message == "Worker restarted during processing"
    assert still_running.status == GenerationStatus.PROCESSING


@pytest.mark.asyncio
async def test_lifespan_without_embedded_worker(settings, seed, uow_factory):
    orphan, _ = await seed_processing_jobs(seed)

    app = create_app(settings.model_copy(update={"run_embedded_worker": False}))
    with TestClient(app) as client:
        assert isinstance(app.state.job_service, JobService)
        assert app.state.job_worker is None
        assert client.get("/health").status_code == 200

    async with await uow_factory() as uow:
        untouched = await uow.jobs.get_by_id(orphan.id)
    assert untouched.status == GenerationStatus.PROCESSING


@pytest.mark.asyncio
async def test_shutdown_waits_for_restarted_worker(monkeypatch):
    monkeypatch.setattr(app_module, "RESTART_DELAY", 0)
    runs = []
    finished = []

    async def flaky_worker(stop_event):
        runs.append(len(runs))
        if len(runs) == 1:
            raise RuntimeError("worker crashed")
        await stop_event.wait()
        await asyncio.sleep(0.05)
        finished.append(True)

    shutdown_event = asyncio.Event()
    handle = create_resilient_worker(flaky_worker, "test", shutdown_event)
    first_task = handle.task

    for _ in range(100):
        if len(runs) == 2:
            break
        await asyncio.sleep(0.01)
    assert len(runs) == 2
    assert handle.task is not first_task

    shutdown_event.set()
    await asyncio.wait_for(handle.wait(), timeout=5)

    assert finished == [True]
    assert handle.task.done()
