"""Wiring of the job pipeline from settings.

Shared by the FastAPI lifespan and the CLI so both processes build the same
storage client, provider chain, service and worker.
"""

from artmorph.core.config import Settings
from artmorph.services.image_generation.generator import ImageGenerator
from artmorph.services.image_generation.provider_chain import build_provider_chain
from artmorph.services.job_service import JobService
from artmorph.services.storage.base import StorageBackend
from artmorph.services.storage.supabase_storage import SupabaseStorageClient
from artmorph.uow import UnitOfWorkFactory
from artmorph.workers.job_worker import JobWorker


def build_storage(settings: Settings) -> StorageBackend:
    return SupabaseStorageClient(
        base_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )


def build_job_service(
    uow_factory: UnitOfWorkFactory, storage: StorageBackend, settings: Settings
) -> JobService:
    return JobService(uow_factory=uow_factory, storage=storage, settings=settings)


def build_job_worker(
    uow_factory: UnitOfWorkFactory, storage: StorageBackend, settings: Settings
) -> JobWorker:
    """Worker with the default provider chain (Replicate, then the Space)."""
    generator = ImageGenerator(
        providers=build_provider_chain(settings),
        storage=storage,
        output_bucket=settings.supabase_generated_bucket,
        default_model=settings.hf_default_model,
    )
    return JobWorker(uow_factory=uow_factory, generator=generator, settings=settings)
