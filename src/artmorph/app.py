"""FastAPI application factory."""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import FastAPI, Response, status
from sqlalchemy import text

# Import timezone enforcement (sets TZ=UTC)
from artmorph.core import timezone  # noqa: F401
from artmorph.core.config import Settings, configure_logging
from artmorph.core.database import setup_db_session
from artmorph.core.dependencies import build_job_service, build_job_worker, build_storage
from artmorph.uow import create_uow_factory

logger = structlog.get_logger()

RESTART_DELAY = 1  # Fixed 1 second delay between restarts


class ResilientWorker:
    """Handle on a worker that is restarted when it crashes.

    ``task`` always points at the task currently running the loop.
    """

    def __init__(self):
        self.task: Optional[asyncio.Task] = None
        self.pending_restart: Optional[asyncio.Task] = None

    async def wait(self) -> None:
        """Wait for the running task, including one restarted meanwhile."""
        while True:
            task, restart = self.task, self.pending_restart
            await asyncio.gather(
                *(t for t in (task, restart) if t is not None), return_exceptions=True
            )
            if self.task is task and self.pending_restart is restart:
                return


def create_resilient_worker(
    coro_func: Callable[[asyncio.Event], Awaitable[None]],
    worker_name: str,
    shutdown_event: asyncio.Event,
) -> ResilientWorker:
    """Create a worker task that is restarted when it crashes.

    Args:
        coro_func: Worker loop taking the shutdown event (e.g. JobWorker.run)
        worker_name: Human-readable worker name for logging
        shutdown_event: Stop token; set it to end the loop and prevent restarts

    Returns:
        Handle tracking the current task across restarts
    """
    handle = ResilientWorker()

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)

            # Shutdown may have been requested during the delay
            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            start()

        handle.pending_restart = asyncio.create_task(restart_worker())

    def start():
        handle.task = asyncio.create_task(coro_func(shutdown_event))
        handle.task.add_done_callback(on_worker_done)

    start()
    return handle


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup: configure logging, build the job pipeline and, unless the worker
    runs as its own process, resolve abandoned jobs and start the generation
    worker.
    Shutdown: set the stop token and wait for the in-flight job to finish.
    """
    settings: Settings = app.state.settings

    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)
    storage = build_storage(settings)

    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.job_service = build_job_service(uow_factory, storage, settings)
    app.state.job_worker = None
    app.state.worker_handle = None

    shutdown_event = asyncio.Event()
    if settings.run_embedded_worker:
        worker = build_job_worker(uow_factory, storage, settings)
        app.state.job_worker = worker

        try:
            await worker.recover_orphaned_jobs()
        except Exception as e:
            # Startup continues; stuck jobs are resolved on the next restart
            logger.error(
                "startup.recovery_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        app.state.worker_handle = create_resilient_worker(worker.run, "generation", shutdown_event)

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        primary_provider=settings.primary_provider,
        embedded_worker=settings.run_embedded_worker,
    )

    yield

    logger.info("application.shutdown")
    shutdown_event.set()
    if app.state.worker_handle is not None:
        await app.state.worker_handle.wait()

    await session_factory.kw["bind"].dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Explicit settings (tests); loaded from the environment otherwise

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="ArtMorph Generation Backend",
        description="Asynchronous image generation job pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app
