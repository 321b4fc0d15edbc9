"""GeneratedImage entity - Stored output of a successful generation."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow


class GeneratedImage(SQLModel, table=True):
    """Reference to a generated image in object storage (location, not bytes)."""

    __tablename__ = "generated_images"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    job_id: UUID = Field(foreign_key="generation_jobs.id", index=True)
    source_image_id: Optional[UUID] = Field(default=None)
    storage_bucket: str = Field(max_length=255)
    storage_path: str = Field(max_length=1024)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
