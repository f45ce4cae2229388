"""Pydantic schemas for questionnaire definitions."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PromptSchema(BaseModel):
    """A single 1-5 scale question."""

    text: str = Field(..., max_length=500)
    type: str = "scale"
    label_min: str | None = Field(None, max_length=100)
    label_max: str | None = Field(None, max_length=100)


class QuestionnaireCreate(BaseModel):
    """Schema for creating a questionnaire definition."""

    pathology_label: str = Field(..., max_length=255)
    prompts: list[PromptSchema]
    default_send_delay_days: int | None = None
    is_favorite: bool = False


class QuestionnaireRead(BaseModel):
    """Schema for reading a questionnaire definition."""

    id: str
    pathology_label: str
    prompts: list[dict[str, Any]]
    default_send_delay_days: int | None = None
    is_favorite: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
