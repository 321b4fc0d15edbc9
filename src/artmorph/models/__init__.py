"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from artmorph.models.generated_image import GeneratedImage
from artmorph.models.generation_history import GenerationHistory
from artmorph.models.generation_job import (
    GenerationJob,
    GenerationStatus,
    InvalidStateTransition,
)
from artmorph.models.style_config import StyleConfig
from artmorph.models.uploaded_image import UploadedImage
from artmorph.models.user_profile import UserProfile

__all__ = [
    "UserProfile",
    "UploadedImage",
    "StyleConfig",
    "GenerationJob",
    "GenerationStatus",
    "InvalidStateTransition",
    "GenerationHistory",
    "GeneratedImage",
]
