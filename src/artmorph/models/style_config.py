"""StyleConfig entity - Administrator-curated style preset."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from artmorph.core.timezone import utcnow


class StyleConfig(SQLModel, table=True):
    """Prompt template and generation parameters for one style.

    ``prompt_template`` may hold ``template``, ``prefix``, ``suffix`` and
    ``negative`` keys; the flat ``prompt_*`` columns are used when a key is
    absent. ``params`` carries free-form generation overrides (``steps``,
    ``seed``, ``hfModel``, ``controlnetModel``, ``replicate`` options, ...).
    """

    __tablename__ = "style_configs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    key: str = Field(max_length=100, unique=True, index=True)
    name: str = Field(max_length=255)
    base_model: Optional[str] = Field(default=None, max_length=255)
    prompt_template: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    prompt_prefix: Optional[str] = Field(default=None)
    prompt_suffix: Optional[str] = Field(default=None)
    negative_prompt: Optional[str] = Field(default=None)
    controlnet_module: Optional[str] = Field(default=None, max_length=100)
    controlnet_weight: Optional[float] = Field(default=None)
    guidance_scale: Optional[float] = Field(default=None)
    strength: Optional[float] = Field(default=None)
    params: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
