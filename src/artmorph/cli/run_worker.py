"""CLI commands running the long-lived processes.

``worker`` runs the generation loop without the HTTP application. When it is
deployed next to ``serve``, start the API with ``RUN_EMBEDDED_WORKER=false``.
An overlapping second process is safe: claims and completions are conditional
updates, and startup recovery only resolves jobs older than the orphan cutoff.
"""

import asyncio
import signal

import structlog
import uvicorn

from artmorph.core import timezone  # noqa: F401
from artmorph.core.config import Settings, configure_logging
from artmorph.core.database import setup_db_session
from artmorph.core.dependencies import build_job_worker, build_storage
from artmorph.uow import create_uow_factory

logger = structlog.get_logger()


def load_settings(verbose: bool = False) -> Settings:
    settings = Settings()  # type: ignore[call-arg]
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    return settings


async def async_main(verbose: bool = False) -> int:
    """Run recovery, then the worker loop until SIGINT/SIGTERM.

    Returns:
        Exit code: 0 (clean shutdown), 1 (startup error)
    """
    settings = load_settings(verbose)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)
    worker = build_job_worker(uow_factory, build_storage(settings), settings)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await worker.recover_orphaned_jobs()
    except Exception as e:
        logger.error("cli.recovery_failed", error=str(e), error_type=type(e).__name__)
        return 1

    logger.info("cli.worker_started", primary_provider=settings.primary_provider)
    await worker.run(stop_event)
    logger.info("cli.worker_stopped")
    return 0


def serve(verbose: bool = False) -> int:
    """Run the FastAPI application (worker embedded in its lifespan)."""
    settings = load_settings(verbose)
    uvicorn.run(
        "artmorph.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0
