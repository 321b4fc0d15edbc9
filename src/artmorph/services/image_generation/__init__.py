"""Image generation: prompt composition, providers and the per-job generator."""

from artmorph.services.image_generation.base import (
    GenerationParams,
    GenerationResult,
    ImageProvider,
    classify_error,
)
from artmorph.services.image_generation.generator import ImageGenerator, StoredOutput
from artmorph.services.image_generation.provider_chain import ProviderChain, build_provider_chain
from artmorph.services.image_generation.replicate_client import ReplicateProvider
from artmorph.services.image_generation.space_client import HuggingFaceSpaceProvider

__all__ = [
    "GenerationParams",
    "GenerationResult",
    "ImageProvider",
    "classify_error",
    "ImageGenerator",
    "StoredOutput",
    "ProviderChain",
    "build_provider_chain",
    "ReplicateProvider",
    "HuggingFaceSpaceProvider",
]
