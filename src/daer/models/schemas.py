# src/daer/models/schemas.py
"""Request and response schemas for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from .base_model import DaerBaseModel
from .enums import GenerationMode, ProviderName, TaskStatus, TaskType


class TaskRead(DaerBaseModel):
    id: UUID
    novel_id: UUID
    chapter_id: UUID | None = None
    type: TaskType
    status: TaskStatus
    progress: int
    result: dict[str, Any] | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias="task_metadata"
    )
    created_at: datetime
    updated_at: datetime


class OutlineVersionRead(DaerBaseModel):
    id: UUID
    novel_id: UUID
    version: int
    content: str
    generation_mode: str | None = None
    generation_context: dict[str, Any] | None = None
    is_locked: bool
    created_at: datetime


class OutlineVersionCreate(DaerBaseModel):
    content: str = Field(min_length=1)
    mode: GenerationMode = GenerationMode.MANUAL
    context: dict[str, Any] | None = None


class LockRequest(DaerBaseModel):
    is_locked: bool


class ChapterRead(DaerBaseModel):
    id: UUID
    volume_id: UUID
    novel_id: UUID
    title: str
    order: int
    outline: str | None = None
    detail_outline: str | None = None
    content: str | None = None
    word_count: int
    status: str
    created_at: datetime
    updated_at: datetime


class ChapterUpdate(DaerBaseModel):
    title: str | None = None
    content: str | None = None


class TitleRequest(DaerBaseModel):
    outline: str = ""


class ChapterPlanningRequest(DaerBaseModel):
    outline: str = ""
    additional_requirements: str = ""


class ContentRequest(DaerBaseModel):
    modified_outline: str | None = None
    additional_instructions: str | None = None


class BackgroundExpandRequest(DaerBaseModel):
    instructions: str | None = None


class ChatRequest(DaerBaseModel):
    novel_id: UUID
    message: str = Field(min_length=1)
    previous_content: str | None = None


class AIParameters(DaerBaseModel):
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None


class AIConfigCreate(DaerBaseModel):
    provider: ProviderName
    model: str = Field(min_length=1)
    api_key: str = Field(min_length=1)
    base_url: str | None = None
    parameters: AIParameters = Field(default_factory=AIParameters)
    is_default: bool = False


class AIConfigUpdate(DaerBaseModel):
    provider: ProviderName | None = None
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    parameters: AIParameters | None = None
    is_default: bool | None = None


class AIConfigRead(DaerBaseModel):
    """Stored AI configuration with the API key masked."""

    id: UUID
    provider: str
    model: str
    api_key: str
    base_url: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    is_default: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> AIConfigRead:
        read = cls.model_validate(row)
        return read.model_copy(update={"api_key": mask_key(row.api_key)})


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"


__all__ = [
    "AIConfigCreate",
    "AIConfigRead",
    "AIConfigUpdate",
    "AIParameters",
    "BackgroundExpandRequest",
    "ChapterPlanningRequest",
    "ChapterRead",
    "ChapterUpdate",
    "ChatRequest",
    "ContentRequest",
    "LockRequest",
    "OutlineVersionCreate",
    "OutlineVersionRead",
    "TaskRead",
    "TitleRequest",
    "mask_key",
]
