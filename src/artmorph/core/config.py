"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    # Generation quota and job limits
    free_generation_limit: int = Field(default=5, ge=0, alias="FREE_GENERATION_LIMIT")
    job_max_retries: int = Field(default=3, ge=0, alias="JOB_MAX_RETRIES")
    prompt_max_length: int = Field(default=1000, gt=0, alias="PROMPT_MAX_LENGTH")

    # Job worker loop
    worker_poll_interval_seconds: float = Field(default=2.0, gt=0, alias="WORKER_POLL_INTERVAL_SECONDS")
    worker_error_backoff_seconds: float = Field(default=2.0, gt=0, alias="WORKER_ERROR_BACKOFF_SECONDS")
    # PROCESSING jobs older than this are considered abandoned at startup
    job_orphan_after_seconds: float = Field(default=600.0, gt=0, alias="JOB_ORPHAN_AFTER_SECONDS")
    # Disable when the worker runs as its own process (cli worker)
    run_embedded_worker: bool = Field(default=True, alias="RUN_EMBEDDED_WORKER")

    # Replicate (primary provider)
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_model: str = Field(
        default="black-forest-labs/flux-kontext-dev", alias="REPLICATE_MODEL"
    )
    replicate_timeout_seconds: float = Field(default=120.0, gt=0, alias="REPLICATE_TIMEOUT_SECONDS")
    replicate_poll_interval_seconds: float = Field(
        default=1.0, gt=0, alias="REPLICATE_POLL_INTERVAL_SECONDS"
    )

    # Hugging Face Space (fallback provider)
    hf_api_token: str = Field(default="", alias="HF_API_TOKEN")
    hf_default_model: str = Field(
        default="black-forest-labs/FLUX.1-Kontext-dev", alias="HF_DEFAULT_MODEL"
    )
    hf_default_space: str = Field(
        default="black-forest-labs/FLUX.1-Kontext-Dev", alias="HF_DEFAULT_SPACE"
    )
    hf_request_timeout_seconds: float = Field(default=180.0, gt=0, alias="HF_REQUEST_TIMEOUT_SECONDS")

    # Shared by both providers when fetching the generated asset
    provider_download_timeout_seconds: float = Field(
        default=30.0, gt=0, alias="PROVIDER_DOWNLOAD_TIMEOUT_SECONDS"
    )

    # Supabase Storage
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")
    supabase_generated_bucket: str = Field(default="generated_images", alias="SUPABASE_GENERATED_BUCKET")
    generated_url_ttl_seconds: int = Field(default=600, gt=0, alias="GENERATED_URL_TTL_SECONDS")

    @property
    def primary_provider(self) -> str:
        """Name of the provider tried first for this configuration."""
        return "replicate" if self.replicate_api_token else "huggingface"

    @property
    def orphan_cutoff_seconds(self) -> float:
        """Minimum PROCESSING age before recovery may resolve a job.

        Never shorter than one job's worst case in the provider chain, so a
        job still owned by a live worker is not taken away from it.
        """
        generation_budget = (
            self.replicate_timeout_seconds
            + self.hf_request_timeout_seconds
            + 2 * self.provider_download_timeout_seconds
        )
        return max(self.job_orphan_after_seconds, generation_budget)

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a single message listing everything that is missing.
        Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.supabase_url:
            missing.append("SUPABASE_URL: Project URL from the Supabase dashboard")

        if not self.supabase_service_role_key:
            missing.append(
                "SUPABASE_SERVICE_ROLE_KEY: Service role key (Settings -> API) for storage access"
            )

        if not self.replicate_api_token and not self.hf_api_token:
            missing.append(
                "REPLICATE_API_TOKEN or HF_API_TOKEN: At least one image generation provider "
                "must be configured"
            )

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    if settings.app_env == "production":
        renderer_processors = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer_processors = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer_processors,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
