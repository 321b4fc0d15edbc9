"""Repository layer for the ArtMorph backend.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from artmorph.repositories.generated_image import GeneratedImageRepository
from artmorph.repositories.generation_history import GenerationHistoryRepository
from artmorph.repositories.generation_job import GenerationJobRepository
from artmorph.repositories.style_config import StyleConfigRepository
from artmorph.repositories.uploaded_image import UploadedImageRepository
from artmorph.repositories.user_profile import UserProfileRepository

__all__ = [
    "UserProfileRepository",
    "UploadedImageRepository",
    "StyleConfigRepository",
    "GenerationJobRepository",
    "GenerationHistoryRepository",
    "GeneratedImageRepository",
]
