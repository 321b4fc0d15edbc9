"""Ordered primary/fallback strategy over image generation providers."""

from typing import Optional, Sequence

import httpx
import structlog

from artmorph.core.config import Settings
from artmorph.services.exceptions import ProviderError, ProviderFailureError
from artmorph.services.image_generation.base import (
    GenerationParams,
    GenerationResult,
    ImageProvider,
    classify_error,
)
from artmorph.services.image_generation.replicate_client import ReplicateProvider
from artmorph.services.image_generation.space_client import HuggingFaceSpaceProvider

logger = structlog.get_logger(__name__)


class ProviderChain:
    """Try each configured provider in order until one returns an image.

    Unconfigured providers are skipped without an attempt. Every failure is
    logged and the next provider is tried; when all fail, the last classified
    error is raised.
    """

    def __init__(self, providers: Sequence[ImageProvider]):
        self.providers = list(providers)

    @property
    def configured(self) -> list[ImageProvider]:
        return [provider for provider in self.providers if provider.is_configured]

    async def generate(self, params: GenerationParams) -> GenerationResult:
        """Generate an image with the first provider that succeeds.

        Raises:
            ProviderError: Classified error of the last attempted provider, or
                ProviderFailureError if no provider is configured
        """
        candidates = self.configured
        if not candidates:
            raise ProviderFailureError("No image generation provider is configured")

        last_error: Optional[ProviderError] = None
        for index, provider in enumerate(candidates):
            logger.info("provider.attempt", provider=provider.name, model=params.model)
            try:
                result = await provider.generate(params)
            except Exception as e:
                last_error = classify_error(e, provider.name)
                logger.warning(
                    "provider.failed",
                    provider=provider.name,
                    error_type=type(last_error).__name__,
                    error_message=str(last_error),
                    fallback_available=index < len(candidates) - 1,
                )
                continue

            logger.info(
                "provider.succeeded",
                provider=provider.name,
                size_bytes=len(result.image),
                content_type=result.content_type,
            )
            return result

        assert last_error is not None
        raise last_error


def build_provider_chain(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> ProviderChain:
    """Build the default chain: Replicate first (if its token is set), then the Space."""
    return ProviderChain(
        [
            ReplicateProvider(
                api_token=settings.replicate_api_token,
                model=settings.replicate_model,
                timeout_seconds=settings.replicate_timeout_seconds,
                poll_interval_seconds=settings.replicate_poll_interval_seconds,
                download_timeout_seconds=settings.provider_download_timeout_seconds,
                transport=transport,
            ),
            HuggingFaceSpaceProvider(
                api_token=settings.hf_api_token,
                space_id=settings.hf_default_space,
                timeout_seconds=settings.hf_request_timeout_seconds,
                download_timeout_seconds=settings.provider_download_timeout_seconds,
                transport=transport,
            ),
        ]
    )
