"""UploadedImage entity - Source image a user uploaded for restyling."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow


class UploadedImage(SQLModel, table=True):
    """Location of an uploaded input image in object storage."""

    __tablename__ = "uploaded_images"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="user_profiles.id", index=True)
    storage_bucket: str = Field(max_length=255)
    storage_path: str = Field(max_length=1024)
    mime_type: str = Field(default="image/png", max_length=100)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
