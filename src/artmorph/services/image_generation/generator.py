"""Image generation for one job: input download, prompts, provider call, output upload."""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from artmorph.models.style_config import StyleConfig
from artmorph.models.uploaded_image import UploadedImage
from artmorph.services.image_generation.base import GenerationParams
from artmorph.services.image_generation.prompt_composer import (
    compose_negative_prompt,
    compose_prompt,
)
from artmorph.services.image_generation.provider_chain import ProviderChain
from artmorph.services.storage.base import StorageBackend, extension_for

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoredOutput:
    """Where a generated image was stored."""

    bucket: str
    path: str
    content_type: str

    def descriptor(self) -> dict[str, str]:
        return {
            "storageBucket": self.bucket,
            "storagePath": self.path,
            "contentType": self.content_type,
        }


def _style_params(style: StyleConfig) -> dict[str, Any]:
    return dict(style.params or {})


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def uses_structural_conditioning(style: StyleConfig) -> bool:
    """True when the style asks for a controlnet-like conditioning image."""
    params = _style_params(style)
    return bool(
        style.controlnet_module
        or params.get("controlnetModel")
        or params.get("controlnetConditioningScale")
    )


def resolve_model_id(style: StyleConfig, default_model: str) -> str:
    """Pick the model: controlnet model when conditioning, then overrides, then defaults."""
    params = _style_params(style)
    override_model = params.get("hfModel") if isinstance(params.get("hfModel"), str) else None
    controlnet_model = (
        params.get("controlnetModel") if isinstance(params.get("controlnetModel"), str) else None
    )

    if style.controlnet_module and controlnet_model:
        return controlnet_model

    return override_model or style.base_model or default_model


class ImageGenerator:
    """Runs one generation and stores the result; writes nothing to the database."""

    def __init__(
        self,
        providers: ProviderChain,
        storage: StorageBackend,
        output_bucket: str,
        default_model: str,
    ):
        self.providers = providers
        self.storage = storage
        self.output_bucket = output_bucket
        self.default_model = default_model

    def build_params(
        self,
        style: StyleConfig,
        input_image: bytes,
        user_prompt: Optional[str] = None,
        user_negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        control_image: Optional[bytes] = None,
    ) -> GenerationParams:
        """Merge style configuration and request inputs into provider parameters.

        Conditioning inputs (control image, negative prompt, conditioning
        scale) are only set for styles that use structural conditioning; the
        input image doubles as control image when none is supplied.
        """
        params = _style_params(style)
        wants_control = uses_structural_conditioning(style)

        negative_prompt = compose_negative_prompt(style, user_negative_prompt) if wants_control else ""

        return GenerationParams(
            model=resolve_model_id(style, self.default_model),
            prompt=compose_prompt(style, user_prompt),
            input_image=input_image,
            negative_prompt=negative_prompt or None,
            guidance_scale=_first_set(style.guidance_scale, params.get("guidanceScale")),
            num_inference_steps=params.get("steps"),
            strength=_first_set(style.strength, params.get("strength")),
            seed=_first_set(seed, params.get("seed")),
            control_image=(control_image or input_image) if wants_control else None,
            controlnet_conditioning_scale=(
                _first_set(style.controlnet_weight, params.get("controlnetConditioningScale"))
                if wants_control
                else None
            ),
            provider_options={
                "replicate": dict(params.get("replicate") or {}),
                "huggingface": dict(params.get("huggingface") or {}),
            },
        )

    async def generate(
        self,
        user_id: UUID,
        style: StyleConfig,
        input_image: UploadedImage,
        user_prompt: Optional[str] = None,
        user_negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        control_image: Optional[UploadedImage] = None,
    ) -> StoredOutput:
        """Generate a styled image from an uploaded input and store it.

        Raises:
            StorageError: Input download or output upload failed
            ProviderError: Every configured provider failed
        """
        source = await self.storage.download(input_image.storage_bucket, input_image.storage_path)
        control = None
        if control_image is not None and uses_structural_conditioning(style):
            control = await self.storage.download(
                control_image.storage_bucket, control_image.storage_path
            )

        params = self.build_params(
            style,
            source,
            user_prompt=user_prompt,
            user_negative_prompt=user_negative_prompt,
            seed=seed,
            control_image=control,
        )
        logger.info(
            "generation.started",
            user_id=str(user_id),
            style_key=style.key,
            model=params.model,
            prompt_preview=params.prompt[:120],
            input_size_bytes=len(source),
            conditioning=params.control_image is not None,
        )

        result = await self.providers.generate(params)

        object_path = f"users/{user_id}/generated/{uuid4()}{extension_for(result.content_type)}"
        await self.storage.upload(self.output_bucket, object_path, result.image, result.content_type)

        return StoredOutput(
            bucket=self.output_bucket, path=object_path, content_type=result.content_type
        )
