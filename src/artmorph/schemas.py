"""Plain data returned by JobService to the transport layer."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from artmorph.models.generation_job import GenerationStatus


class JobView(BaseModel):
    """A job as shown to its owner.

    Raw storage paths are never exposed; completed jobs carry a short-lived
    signed ``output_url`` instead.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: GenerationStatus
    input_image_id: UUID
    style_config_id: UUID
    style_name: Optional[str] = None
    style_key: Optional[str] = None
    prompt: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 0
    output_url: Optional[str] = Field(default=None, description="Signed URL, COMPLETED jobs only")
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class HistoryEntryView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: UUID
    status: GenerationStatus
    message: Optional[str] = None
    created_at: datetime
