"""GenerationHistory entity - Append-only audit trail of job transitions."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow
from artmorph.models.generation_job import GenerationStatus


class GenerationHistory(SQLModel, table=True):
    """One row per job status transition.

    Rows are never updated. They disappear only together with their job.
    The integer id breaks ties between entries written in the same instant.
    """

    __tablename__ = "generation_history"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    job_id: UUID = Field(foreign_key="generation_jobs.id", index=True)
    user_id: UUID = Field(index=True)
    status: GenerationStatus
    message: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
