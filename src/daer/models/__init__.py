# src/daer/models/__init__.py
"""Data models: ORM tables, wire schemas and typed agent results."""

from .base import Base
from .base_model import DaerBaseModel, LenientModel
from .enums import (
    ChapterStatus,
    GenerationMode,
    NovelStatus,
    ProviderName,
    TaskStatus,
    TaskType,
)
from .results import (
    AgentResult,
    AgentResultAdapter,
    ChapterDetailResult,
    ChapterOutlineResult,
    ChapterPlan,
    ChapterStructure,
    ConsistencyReport,
    ConsistencyResult,
    ContentResult,
    OutlineResult,
    PlanningResult,
    TitlesResult,
    VolumePlan,
)
from .task import JobPayload

__all__ = [
    "AgentResult",
    "AgentResultAdapter",
    "Base",
    "ChapterDetailResult",
    "ChapterOutlineResult",
    "ChapterPlan",
    "ChapterStatus",
    "ChapterStructure",
    "ConsistencyReport",
    "ConsistencyResult",
    "ContentResult",
    "DaerBaseModel",
    "GenerationMode",
    "JobPayload",
    "LenientModel",
    "NovelStatus",
    "OutlineResult",
    "PlanningResult",
    "ProviderName",
    "TaskStatus",
    "TaskType",
    "TitlesResult",
    "VolumePlan",
]
