"""GenerationJob entity - One user request to restyle an uploaded image."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow


class GenerationStatus(str, Enum):
    """Generation job lifecycle status."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ACTIVE_STATUSES = (GenerationStatus.QUEUED, GenerationStatus.PROCESSING)
TERMINAL_STATUSES = (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid job state transition."""

    pass


class GenerationJob(SQLModel, table=True):
    """GenerationJob is the durable queue entry for one image transformation.

    Status changes go through the ``mark_*`` methods so the state machine
    QUEUED -> PROCESSING -> COMPLETED | FAILED (and FAILED -> QUEUED on retry)
    is enforced in one place. The worker's claim step is the exception: it is
    a conditional UPDATE issued by the repository.
    """

    __tablename__ = "generation_jobs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="user_profiles.id", index=True)
    input_image_id: UUID = Field(foreign_key="uploaded_images.id")
    style_config_id: UUID = Field(foreign_key="style_configs.id")
    status: GenerationStatus = Field(default=GenerationStatus.QUEUED, index=True)
    prompt: Optional[str] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    queued_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    started_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_retry(self) -> bool:
        return self.status == GenerationStatus.FAILED and self.retry_count < self.max_retries

    def mark_completed(self) -> None:
        """Transition from queued/processing to completed.

        QUEUED is accepted for the crash-recovery path where the output was
        stored but the job row was never advanced.

        Raises:
            InvalidStateTransition: If the job is already terminal
        """
        if self.status not in ACTIVE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Job must be queued or processing."
            )
        now = utcnow()
        self.status = GenerationStatus.COMPLETED
        self.completed_at = now
        self.updated_at = now

    def mark_failed(self, error_message: str) -> None:
        """Transition from processing to failed.

        Args:
            error_message: Human-readable failure reason shown to the user

        Raises:
            InvalidStateTransition: If the job is not processing
        """
        if self.status != GenerationStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark failed from {self.status.value}. Job must be in processing state."
            )
        now = utcnow()
        self.status = GenerationStatus.FAILED
        self.error_message = error_message
        self.completed_at = now
        self.updated_at = now

    def requeue_for_retry(self) -> None:
        """Transition from failed back to queued, consuming one retry.

        Raises:
            InvalidStateTransition: If the job is not failed or has no retries left
        """
        if self.status != GenerationStatus.FAILED:
            raise InvalidStateTransition(
                f"Cannot retry from {self.status.value}. Only failed jobs can be retried."
            )
        if self.retry_count >= self.max_retries:
            raise InvalidStateTransition(
                f"Retry limit reached ({self.retry_count}/{self.max_retries})."
            )
        now = utcnow()
        self.status = GenerationStatus.QUEUED
        self.retry_count += 1
        self.error_message = None
        self.queued_at = now
        self.started_at = None
        self.completed_at = None
        self.updated_at = now
