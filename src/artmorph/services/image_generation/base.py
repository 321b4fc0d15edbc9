"""Shared types for image generation providers with error classification."""

import asyncio
import base64
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from artmorph.services.exceptions import (
    ProviderBusyError,
    ProviderError,
    ProviderFailureError,
    ProviderPermissionDeniedError,
    ProviderTimeoutError,
)


@dataclass(frozen=True)
class GenerationParams:
    """Provider-neutral description of one image-to-image generation.

    ``negative_prompt``, ``control_image`` and ``controlnet_conditioning_scale``
    are only set for styles that use structural conditioning; providers must
    not send them otherwise. ``provider_options`` maps a provider name to
    extra input fields merged into that provider's request.
    """

    model: str
    prompt: str
    input_image: bytes
    negative_prompt: Optional[str] = None
    guidance_scale: Optional[float] = None
    num_inference_steps: Optional[int] = None
    strength: Optional[float] = None
    seed: Optional[int] = None
    control_image: Optional[bytes] = None
    controlnet_conditioning_scale: Optional[float] = None
    provider_options: dict[str, dict[str, Any]] = field(default_factory=dict)

    def options_for(self, provider: str) -> dict[str, Any]:
        return dict(self.provider_options.get(provider) or {})


@dataclass(frozen=True)
class GenerationResult:
    image: bytes
    content_type: str


class ImageProvider(Protocol):
    """Interface every generation backend implements."""

    name: str

    @property
    def is_configured(self) -> bool: ...

    async def generate(self, params: GenerationParams) -> GenerationResult: ...


def detect_content_type(data: bytes, default: str = "image/png") -> str:
    """Detect an image MIME type from its first bytes."""
    if data[:2] == b"\xff\xd8":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:3] == b"GIF":
        return "image/gif"
    return default


def to_data_uri(data: bytes) -> str:
    """Encode image bytes as a base64 data URI."""
    return f"data:{detect_content_type(data)};base64,{base64.b64encode(data).decode('ascii')}"


def classify_error(exception: BaseException, provider: Optional[str] = None) -> ProviderError:
    """Classify a provider exception into one of the four failure kinds.

    Args:
        exception: Original exception from an SDK, httpx or the provider itself
        provider: Provider name recorded on the classified error

    Returns:
        Classified ProviderError subclass instance

    Classification rules:
        - Already classified errors are returned unchanged
        - Timeouts (asyncio, httpx, "timed out" messages) → ProviderTimeoutError
        - 429, 503, queue/busy/capacity/GPU quota messages → ProviderBusyError
        - 401/403, license/gated/accept-terms messages → ProviderPermissionDeniedError
        - Everything else → ProviderFailureError
    """
    if isinstance(exception, ProviderError):
        return exception

    error_message = str(exception) or type(exception).__name__
    error_message_lower = error_message.lower()
    label = provider or "provider"

    if isinstance(exception, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)) or (
        "timeout" in error_message_lower
        or "timed out" in error_message_lower
        or "abort" in error_message_lower
    ):
        return ProviderTimeoutError(
            f"Generation timed out ({label}). The service may be busy, please retry.",
            provider=provider,
        )

    if (
        "429" in error_message
        or "503" in error_message
        or "rate limit" in error_message_lower
        or "queue" in error_message_lower
        or "busy" in error_message_lower
        or "capacity" in error_message_lower
        or "quota" in error_message_lower
    ):
        return ProviderBusyError(
            f"The generation service is busy ({label}). Please try again in a moment.",
            provider=provider,
        )

    if (
        "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "license" in error_message_lower
        or "gated" in error_message_lower
        or "accept the" in error_message_lower
    ):
        return ProviderPermissionDeniedError(
            f"Access to the model was denied ({label}): {error_message}. "
            "Check the API token and accept the model license if it is gated.",
            provider=provider,
        )

    return ProviderFailureError(f"Image generation failed ({label}): {error_message}", provider=provider)
