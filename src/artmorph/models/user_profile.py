"""UserProfile entity - Quota-relevant view of an account."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow


class UserProfile(SQLModel, table=True):
    """Profile row keyed by the identity provider's user id.

    Owned by the profile service; the job pipeline only reads ``is_dev_mode``.
    """

    __tablename__ = "user_profiles"  # type: ignore[assignment]

    id: UUID = Field(primary_key=True)
    email: str = Field(max_length=320, index=True)
    display_name: Optional[str] = Field(default=None, max_length=255)
    is_dev_mode: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
