# src/daer/models/task.py
"""Job payload exchanged between the API and the worker."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import Field

from .base_model import DaerBaseModel
from .enums import TaskType


class JobPayload(DaerBaseModel):
    """Document stored in ``jobs.payload``.

    Serialized as ``{taskId, novelId, chapterId?, type, input?}``.
    """

    task_id: UUID
    novel_id: UUID
    chapter_id: UUID | None = None
    type: TaskType
    input: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = ["JobPayload"]
