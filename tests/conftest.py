"""pytest fixtures for ArtMorph backend tests.

Provides:
- postgres_container: Session-scoped testcontainer PostgreSQL instance (TEST_USE_POSTGRES=1)
- utc_timezone: Autouse fixture enforcing UTC timezone
- database_url / session_factory: Function-scoped database with fresh tables
  (SQLite file via aiosqlite by default)
- uow_factory: Function-scoped UnitOfWork factory
- seed: Helpers inserting profiles, uploads, styles and jobs
- storage / provider / generator / job_service / worker: pipeline wired with in-memory fakes
"""

import os
from typing import Any, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlmodel import SQLModel

import artmorph.models  # noqa: F401
from artmorph.core.config import Settings
from artmorph.core.database import setup_db_session
from artmorph.core.timezone import utcnow
from artmorph.models.generated_image import GeneratedImage
from artmorph.models.generation_job import GenerationJob, GenerationStatus
from artmorph.models.style_config import StyleConfig
from artmorph.models.uploaded_image import UploadedImage
from artmorph.models.user_profile import UserProfile
from artmorph.services.exceptions import StorageError
from artmorph.services.image_generation.base import GenerationParams, GenerationResult
from artmorph.services.image_generation.generator import ImageGenerator
from artmorph.services.image_generation.provider_chain import ProviderChain
from artmorph.services.job_service import JobService
from artmorph.uow import create_uow_factory
from artmorph.workers.job_worker import JobWorker

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
OUTPUT_BUCKET = "generated_images"
INPUT_BUCKET = "uploads"

USE_POSTGRES = os.environ.get("TEST_USE_POSTGRES") == "1"


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container when TEST_USE_POSTGRES=1.

    Tables are created from SQLModel metadata per test, so no migrations run here.
    """
    if not USE_POSTGRES:
        yield None
        return

    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_artmorph",
    ) as container:
        yield container


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture
def database_url(postgres_container, tmp_path) -> str:
    if postgres_container is not None:
        return postgres_container.get_connection_url(driver="psycopg")
    return f"sqlite+aiosqlite:///{tmp_path / 'artmorph_test.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url):
    """Session factory over a database with freshly created tables."""
    factory = setup_db_session(database_url, pool_size=5)
    engine = factory.kw["bind"]

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def uow_factory(session_factory):
    return create_uow_factory(session_factory)


@pytest.fixture
def settings(database_url) -> Settings:
    return Settings(
        DATABASE_URL=database_url,
        APP_ENV="test",
        FREE_GENERATION_LIMIT=5,
        JOB_MAX_RETRIES=3,
        WORKER_POLL_INTERVAL_SECONDS=0.01,
        WORKER_ERROR_BACKOFF_SECONDS=0.01,
        GENERATED_URL_TTL_SECONDS=600,
        SUPABASE_GENERATED_BUCKET=OUTPUT_BUCKET,
    )


class InMemoryStorage:
    """StorageBackend keeping objects in a dict."""

    def __init__(self):
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.deleted: list[tuple[str, str]] = []
        self.fail_signing = False
        self.fail_delete = False

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.objects[(bucket, path)] = (data, content_type)
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        try:
            return self.objects[(bucket, path)][0]
        except KeyError:
            raise StorageError(f"Download failed (404): {bucket}/{path} not found") from None

    async def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        if self.fail_signing:
            raise StorageError("Signed URL creation failed (500): boom")
        return f"https://storage.test/{bucket}/{path}?expires={ttl_seconds}"

    async def delete(self, bucket: str, paths: list[str]) -> None:
        if self.fail_delete:
            raise StorageError("Delete failed (500): boom")
        for path in paths:
            self.objects.pop((bucket, path), None)
            self.deleted.append((bucket, path))


class FakeProvider:
    """Image provider returning canned bytes or raising a canned error."""

    def __init__(
        self,
        name: str = "fake",
        image: bytes = PNG_BYTES,
        content_type: str = "image/png",
        error: Optional[Exception] = None,
        configured: bool = True,
    ):
        self.name = name
        self.image = image
        self.content_type = content_type
        self.error = error
        self.configured = configured
        self.calls: list[GenerationParams] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, params: GenerationParams) -> GenerationResult:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return GenerationResult(image=self.image, content_type=self.content_type)


class Seeder:
    """Inserts rows the job pipeline reads but does not own."""

    def __init__(self, uow_factory):
        self.uow_factory = uow_factory

    async def _add(self, entity: Any) -> Any:
        async with await self.uow_factory() as uow:
            uow.session.add(entity)
            await uow.session.flush()
        return entity

    async def profile(self, is_dev_mode: bool = False) -> UserProfile:
        user_id = uuid4()
        return await self._add(
            UserProfile(id=user_id, email=f"{user_id.hex[:8]}@example.com", is_dev_mode=is_dev_mode)
        )

    async def uploaded_image(
        self, user_id: UUID, storage: Optional[InMemoryStorage] = None, data: bytes = PNG_BYTES
    ) -> UploadedImage:
        path = f"users/{user_id}/uploads/{uuid4()}.png"
        if storage is not None:
            await storage.upload(INPUT_BUCKET, path, data, "image/png")
        return await self._add(
            UploadedImage(user_id=user_id, storage_bucket=INPUT_BUCKET, storage_path=path)
        )

    async def style(self, **overrides: Any) -> StyleConfig:
        values: dict[str, Any] = {
            "key": f"style-{uuid4().hex[:8]}",
            "name": "Watercolor",
            "prompt_prefix": "watercolor painting",
            "prompt_suffix": "soft pastel palette",
            "guidance_scale": 2.5,
        }
        values.update(overrides)
        return await self._add(StyleConfig(**values))

    async def job(
        self,
        user_id: UUID,
        input_image_id: UUID,
        style_config_id: UUID,
        status: GenerationStatus = GenerationStatus.QUEUED,
        **overrides: Any,
    ) -> GenerationJob:
        values: dict[str, Any] = {"queued_at": utcnow()}
        if status in (GenerationStatus.COMPLETED, GenerationStatus.FAILED):
            values["started_at"] = utcnow()
            values["completed_at"] = utcnow()
        elif status == GenerationStatus.PROCESSING:
            values["started_at"] = utcnow()
        values.update(overrides)
        return await self._add(
            GenerationJob(
                user_id=user_id,
                input_image_id=input_image_id,
                style_config_id=style_config_id,
                status=status,
                **values,
            )
        )

    async def generated_image(self, job: GenerationJob, path: Optional[str] = None) -> GeneratedImage:
        return await self._add(
            GeneratedImage(
                user_id=job.user_id,
                job_id=job.id,
                source_image_id=job.input_image_id,
                storage_bucket=OUTPUT_BUCKET,
                storage_path=path or f"users/{job.user_id}/generated/{uuid4()}.png",
            )
        )


@pytest_asyncio.fixture
async def seed(uow_factory) -> Seeder:
    return Seeder(uow_factory)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def generator(provider, storage) -> ImageGenerator:
    return ImageGenerator(
        providers=ProviderChain([provider]),
        storage=storage,
        output_bucket=OUTPUT_BUCKET,
        default_model="black-forest-labs/FLUX.1-Kontext-dev",
    )


@pytest_asyncio.fixture
async def job_service(uow_factory, storage, settings) -> JobService:
    return JobService(uow_factory=uow_factory, storage=storage, settings=settings)


@pytest_asyncio.fixture
async def worker(uow_factory, generator, settings) -> JobWorker:
    return JobWorker(uow_factory=uow_factory, generator=generator, settings=settings)
